"""Invoice request and response schemas.

Money is accepted as JSON numbers and rendered as floats with two decimals.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from src.api.schemas.base import RequestModel, ResponseModel


class InvoiceItemIn(RequestModel):
    description: str
    unit_price: Decimal = Field(ge=0)
    quantity: Decimal = Field(default=Decimal(1), gt=0)


class CreateInvoiceRequest(RequestModel):
    client_name: str
    items: list[InvoiceItemIn]
    client_email: str | None = None
    description: str | None = None
    currency: str = Field(default="PHP", min_length=3, max_length=3)
    tax_amount: Decimal = Field(default=Decimal(0), ge=0)
    due_date: date | None = None
    status: str = "draft"


class UpdateInvoiceRequest(RequestModel):
    client_name: str | None = None
    client_email: str | None = None
    description: str | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    tax_amount: Decimal | None = Field(default=None, ge=0)
    due_date: date | None = None
    items: list[InvoiceItemIn] | None = None


class StatusChangeRequest(RequestModel):
    status: str
    note: str | None = None
    prepared_by_name: str | None = None


class InvoiceItemOut(ResponseModel):
    id: int
    description: str
    quantity: float
    unit_price: float
    amount: float


class InvoiceActivityOut(ResponseModel):
    id: int
    user_id: uuid.UUID
    action: str
    from_status: str | None
    to_status: str | None
    note: str | None
    created_at: datetime


class InvoiceOut(ResponseModel):
    id: int
    tent_id: int
    invoice_number: str
    client_name: str
    client_email: str | None
    description: str | None
    currency: str
    amount: float
    tax_amount: float
    total_amount: float
    due_date: date | None
    status: str
    submitted_by: uuid.UUID
    submitted_at: datetime | None
    processed_by: uuid.UUID | None
    processed_at: datetime | None
    prepared_by_name: str | None
    processing_notes: str | None
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class DashboardStatsOut(ResponseModel):
    total_invoices: int
    pending_invoices: int
    approved_invoices: int
    completed_revenue: float
    pending_revenue: float
