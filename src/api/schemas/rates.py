"""Rate card schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import Field

from src.api.schemas.base import RequestModel, ResponseModel
from src.domain.rates.models import DEFAULT_REPLY_TEMPLATE


class ServiceRate(RequestModel):
    service: str
    rate: float = Field(ge=0)
    currency: str | None = None
    notes: str | None = None


class SaveRatesRequest(RequestModel):
    tent_id: int | None = None
    service_rates: list[ServiceRate] = Field(default_factory=list)
    default_currency: str = "PHP"
    auto_reply_enabled: bool = False
    auto_reply_delay_minutes: int = Field(default=5, ge=0)
    reply_template: str | None = None
    email_signature: str = "Best regards"
    min_seriousness_score: int = Field(default=5, ge=1, le=10)
    additional_notes: str | None = None

    def to_values(self) -> dict[str, Any]:
        """Column values for ``user_rates``, without the tent id."""
        return {
            "service_rates": [
                rate.model_dump(exclude_none=True) for rate in self.service_rates
            ],
            "default_currency": self.default_currency,
            "auto_reply_enabled": self.auto_reply_enabled,
            "auto_reply_delay_minutes": self.auto_reply_delay_minutes,
            "reply_template": self.reply_template or DEFAULT_REPLY_TEMPLATE,
            "email_signature": self.email_signature,
            "min_seriousness_score": self.min_seriousness_score,
            "additional_notes": self.additional_notes,
        }


class RatesOut(ResponseModel):
    id: int
    user_id: uuid.UUID
    tent_id: int | None
    service_rates: list[dict[str, Any]]
    default_currency: str
    auto_reply_enabled: bool
    auto_reply_delay_minutes: int
    reply_template: str
    email_signature: str
    min_seriousness_score: int
    additional_notes: str | None
    updated_at: datetime
