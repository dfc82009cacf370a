"""HTTP layer of CreatorTent.

``main.create_app`` assembles the FastAPI application: routers from
``routes``, the middleware stack from ``middleware`` and the exception
handlers that turn ``CreatorTentError`` subclasses into JSON error bodies.
"""
