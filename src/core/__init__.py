"""Cross-cutting building blocks shared by every layer.

- **config**: settings loaded from the environment
- **context**: correlation and user IDs for the current request
- **exceptions**: ``CreatorTentError`` hierarchy with error codes
- **error_context**: redaction of secrets before logging
- **logging** / **observability**: loguru sinks and OpenTelemetry tracing
- **currency** / **encryption**: money formatting and AES for stored secrets
"""
