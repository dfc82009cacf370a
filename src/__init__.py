"""CreatorTent - shared workspaces for creators and their managers.

A tent pairs a client with a manager. Inside it they issue and approve
invoices, keep a rate card, and connect Gmail, Outlook or Yahoo mailboxes
whose inquiries are triaged by an LLM and answered automatically.

Layers:
- **api**: FastAPI application, routes, middleware and schemas
- **core**: configuration, logging, tracing, errors and crypto helpers
- **domain**: tents, invoices, rates, profiles, notifications and email
- **infrastructure**: async SQLAlchemy persistence and the outbound HTTP client
"""
