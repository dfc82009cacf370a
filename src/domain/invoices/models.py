"""Invoice, line item and invoice activity models."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.base import BaseModel

Money = Numeric(12, 2)


class InvoiceStatus(StrEnum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"


PENDING_STATUSES = frozenset({InvoiceStatus.SUBMITTED, InvoiceStatus.AWAITING_APPROVAL})
APPROVED_STATUSES = frozenset({InvoiceStatus.APPROVED, InvoiceStatus.COMPLETED})
EDITABLE_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.REJECTED})


class Invoice(BaseModel):
    __tablename__ = "invoices"

    tent_id: Mapped[int] = mapped_column(
        ForeignKey("tents.id", ondelete="CASCADE"), index=True, nullable=False
    )
    invoice_number: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False
    )
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str | None] = mapped_column(String(320))
    description: Mapped[str | None] = mapped_column(Text)
    currency: Mapped[str] = mapped_column(String(3), default="PHP", nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, default=Decimal(0), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(
        Money, default=Decimal(0), nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Money, default=Decimal(0), nullable=False
    )
    due_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(
        String(32), default=InvoiceStatus.DRAFT, index=True, nullable=False
    )

    submitted_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    processed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    prepared_by_name: Mapped[str | None] = mapped_column(String(255))
    processing_notes: Mapped[str | None] = mapped_column(Text)
    approved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class InvoiceItem(BaseModel):
    __tablename__ = "invoice_items"

    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), index=True, nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)


class InvoiceActivity(BaseModel):
    """One row per status change or edit of an invoice."""

    __tablename__ = "invoice_activity"

    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(32))
    to_status: Mapped[str | None] = mapped_column(String(32))
    note: Mapped[str | None] = mapped_column(Text)
