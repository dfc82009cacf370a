"""Import every ORM model so ``Base.metadata`` knows all tables.

Alembic's ``env.py`` and the test database fixtures import this module.
"""

from src.domain.email.models import (
    AutoReplyLog,
    EmailConnection,
    EmailInquiry,
    EmailSyncLog,
    OAuthConfiguration,
)
from src.domain.invoices.models import Invoice, InvoiceActivity, InvoiceItem
from src.domain.notifications.models import Notification
from src.domain.profiles.models import Profile
from src.domain.rates.models import UserRates
from src.domain.tents.models import Tent, TentActivityLog, TentMember

__all__ = [
    "AutoReplyLog",
    "EmailConnection",
    "EmailInquiry",
    "EmailSyncLog",
    "Invoice",
    "InvoiceActivity",
    "InvoiceItem",
    "Notification",
    "OAuthConfiguration",
    "Profile",
    "Tent",
    "TentActivityLog",
    "TentMember",
    "UserRates",
]
