"""FastAPI dependencies shared by the route modules."""

from typing import Annotated

from fastapi import Depends

from src.api.dependencies.auth import AuthenticatedUser, CurrentUser, get_current_user
from src.domain.email.analyzer import EmailAnalyzer, get_email_analyzer

Analyzer = Annotated[EmailAnalyzer, Depends(get_email_analyzer)]

__all__ = ["Analyzer", "AuthenticatedUser", "CurrentUser", "get_current_user"]
