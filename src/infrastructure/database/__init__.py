"""Async SQLAlchemy persistence for tents, invoices, rates and mail data.

- **base**: declarative base with id and timestamp columns
- **session**: engine, session factory and health check
- **repository**: generic async repository the domain repositories extend
- **dependencies**: ``DatabaseSession`` for route handlers
"""

from src.infrastructure.database.base import Base, BaseModel
from src.infrastructure.database.dependencies import DatabaseSession, get_db
from src.infrastructure.database.repository import BaseRepository
from src.infrastructure.database.session import (
    check_database_connection,
    close_database,
    get_async_session,
    get_engine,
)

__all__ = [
    "Base",
    "BaseModel",
    "BaseRepository",
    "DatabaseSession",
    "check_database_connection",
    "close_database",
    "get_async_session",
    "get_db",
    "get_engine",
]
