"""Mailbox provider clients."""

from src.domain.email.providers.base import FetchedEmail, OutgoingEmail
from src.domain.email.providers.gmail import GmailClient
from src.domain.email.providers.outlook import OutlookClient
from src.domain.email.providers.yahoo import YahooMailClient

__all__ = [
    "FetchedEmail",
    "GmailClient",
    "OutgoingEmail",
    "OutlookClient",
    "YahooMailClient",
]
