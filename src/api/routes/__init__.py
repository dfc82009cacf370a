"""Route modules, one ``APIRouter`` per area of the API."""

from src.api.routes import (
    cron,
    email,
    health,
    invoices,
    notifications,
    profile,
    rates,
    tents,
)

ROUTERS = (
    health.router,
    profile.router,
    tents.router,
    invoices.router,
    notifications.router,
    rates.router,
    email.router,
    cron.router,
)

__all__ = ["ROUTERS"]
