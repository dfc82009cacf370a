"""Invoice endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Query, status

from src.api.dependencies import AuthenticatedUser
from src.api.schemas.invoices import (
    CreateInvoiceRequest,
    InvoiceActivityOut,
    InvoiceItemIn,
    InvoiceItemOut,
    InvoiceOut,
    StatusChangeRequest,
    UpdateInvoiceRequest,
)
from src.core.exceptions import ValidationError
from src.domain.invoices.models import InvoiceStatus
from src.domain.invoices.service import InvoiceDraft, InvoiceService, LineItem
from src.infrastructure.database.dependencies import DatabaseSession

router = APIRouter(tags=["invoices"])


def _line_items(items: list[InvoiceItemIn]) -> list[LineItem]:
    return [
        LineItem(
            description=item.description,
            unit_price=item.unit_price,
            quantity=item.quantity,
        )
        for item in items
    ]


@router.post("/api/tents/{tent_id}/invoices", status_code=status.HTTP_201_CREATED)
async def create_invoice(
    tent_id: int,
    body: CreateInvoiceRequest,
    user: AuthenticatedUser,
    db: DatabaseSession,
) -> dict[str, Any]:
    try:
        initial_status = InvoiceStatus(body.status)
    except ValueError as e:
        raise ValidationError("Invalid invoice status", cause=e) from e

    draft = InvoiceDraft(
        client_name=body.client_name,
        items=_line_items(body.items),
        client_email=body.client_email,
        description=body.description,
        currency=body.currency.upper(),
        tax_amount=body.tax_amount,
        due_date=body.due_date,
        status=initial_status,
    )
    invoice, items = await InvoiceService(db).create_invoice(tent_id, user.id, draft)
    return {
        "invoice": InvoiceOut.model_validate(invoice),
        "items": [InvoiceItemOut.model_validate(item) for item in items],
    }


@router.get("/api/tents/{tent_id}/invoices")
async def list_invoices(
    tent_id: int,
    user: AuthenticatedUser,
    db: DatabaseSession,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> dict[str, Any]:
    invoices = await InvoiceService(db).list_invoices(
        tent_id, user.id, status_filter
    )
    return {"invoices": [InvoiceOut.model_validate(invoice) for invoice in invoices]}


@router.get("/api/invoices/{invoice_id}")
async def get_invoice(
    invoice_id: int, user: AuthenticatedUser, db: DatabaseSession
) -> dict[str, Any]:
    invoice, items, history = await InvoiceService(db).get_invoice(
        invoice_id, user.id
    )
    return {
        "invoice": InvoiceOut.model_validate(invoice),
        "items": [InvoiceItemOut.model_validate(item) for item in items],
        "activity": [InvoiceActivityOut.model_validate(entry) for entry in history],
    }


@router.patch("/api/invoices/{invoice_id}")
async def update_invoice(
    invoice_id: int,
    body: UpdateInvoiceRequest,
    user: AuthenticatedUser,
    db: DatabaseSession,
) -> dict[str, Any]:
    """Edit a draft or rejected invoice; replacing ``items`` recomputes totals."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"items"})
    if "currency" in changes:
        changes["currency"] = changes["currency"].upper()
    invoice, items = await InvoiceService(db).update_invoice(
        invoice_id,
        user.id,
        changes,
        _line_items(body.items) if body.items is not None else None,
    )
    return {
        "invoice": InvoiceOut.model_validate(invoice),
        "items": [InvoiceItemOut.model_validate(item) for item in items],
    }


@router.post("/api/invoices/{invoice_id}/status")
async def change_invoice_status(
    invoice_id: int,
    body: StatusChangeRequest,
    user: AuthenticatedUser,
    db: DatabaseSession,
) -> dict[str, Any]:
    invoice = await InvoiceService(db).change_status(
        invoice_id,
        user.id,
        body.status,
        note=body.note,
        prepared_by_name=body.prepared_by_name,
    )
    return {"success": True, "invoice": InvoiceOut.model_validate(invoice)}
