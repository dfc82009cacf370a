"""Invoice lifecycle between the client and the manager of a tent.

Status flow::

    draft -> submitted -> awaiting_approval -> approved -> completed
                 |               |
                 +-> rejected <--+
    rejected -> submitted

The manager prepares submitted invoices and completes approved ones. The
client approves prepared invoices. Either side may reject at its step.
"""

import secrets
import string
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import (
    CreatorTentError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    Severity,
    ValidationError,
)
from src.domain.invoices.models import (
    APPROVED_STATUSES,
    EDITABLE_STATUSES,
    PENDING_STATUSES,
    Invoice,
    InvoiceActivity,
    InvoiceItem,
    InvoiceStatus,
)
from src.domain.invoices.repository import (
    InvoiceActivityRepository,
    InvoiceItemRepository,
    InvoiceRepository,
)
from src.domain.notifications.models import NotificationType
from src.domain.notifications.repository import NotificationRepository
from src.domain.tents.models import ActivityType, TentMember, TentRole
from src.domain.tents.repository import TentMemberRepository
from src.domain.tents.service import TentService, require_membership
from src.infrastructure.database.base import utcnow

CENTS = Decimal("0.01")
MAX_INVOICE_NUMBER_ATTEMPTS = 5

# (from, to) -> role allowed to make the move; None means the submitter
TRANSITIONS: dict[tuple[InvoiceStatus, InvoiceStatus], TentRole | None] = {
    (InvoiceStatus.DRAFT, InvoiceStatus.SUBMITTED): None,
    (InvoiceStatus.REJECTED, InvoiceStatus.SUBMITTED): None,
    (InvoiceStatus.SUBMITTED, InvoiceStatus.AWAITING_APPROVAL): TentRole.MANAGER,
    (InvoiceStatus.SUBMITTED, InvoiceStatus.REJECTED): TentRole.MANAGER,
    (InvoiceStatus.AWAITING_APPROVAL, InvoiceStatus.APPROVED): TentRole.CLIENT,
    (InvoiceStatus.AWAITING_APPROVAL, InvoiceStatus.REJECTED): TentRole.CLIENT,
    (InvoiceStatus.APPROVED, InvoiceStatus.COMPLETED): TentRole.MANAGER,
}


def to_money(value: Decimal | float | int) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    description: str
    unit_price: Decimal
    quantity: Decimal = Decimal(1)

    @property
    def amount(self) -> Decimal:
        return to_money(self.quantity * self.unit_price)


@dataclass
class InvoiceDraft:
    client_name: str
    items: list[LineItem]
    client_email: str | None = None
    description: str | None = None
    currency: str = "PHP"
    tax_amount: Decimal = Decimal(0)
    due_date: date | None = None
    status: InvoiceStatus = InvoiceStatus.DRAFT


@dataclass(frozen=True)
class DashboardStats:
    total_invoices: int
    pending_invoices: int
    approved_invoices: int
    completed_revenue: Decimal
    pending_revenue: Decimal


def compute_totals(
    items: Iterable[LineItem], tax_amount: Decimal
) -> tuple[Decimal, Decimal]:
    """Return ``(amount, total_amount)`` for a set of line items."""
    amount = to_money(sum((item.amount for item in items), Decimal(0)))
    return amount, to_money(amount + tax_amount)


def generate_invoice_number(today: date | None = None) -> str:
    today = today or utcnow().date()
    suffix = "".join(
        secrets.choice(string.ascii_uppercase + string.digits) for _ in range(4)
    )
    return f"INV-{today:%Y%m%d}-{suffix}"


class InvoiceService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.invoices = InvoiceRepository(session)
        self.items = InvoiceItemRepository(session)
        self.history = InvoiceActivityRepository(session)
        self.members = TentMemberRepository(session)
        self.notifications = NotificationRepository(session)
        self.tents = TentService(session)

    async def _unique_number(self) -> str:
        for _ in range(MAX_INVOICE_NUMBER_ATTEMPTS):
            number = generate_invoice_number()
            if not await self.invoices.number_exists(number):
                return number
        raise CreatorTentError(
            ErrorCode.INTERNAL_ERROR,
            "Failed to generate a unique invoice number",
            severity=Severity.HIGH,
        )

    async def _load(
        self, invoice_id: int, user_id: uuid.UUID
    ) -> tuple[Invoice, TentMember]:
        invoice = await self.invoices.get_by_id(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found", context={"invoice_id": invoice_id})
        membership = await require_membership(self.members, invoice.tent_id, user_id)
        return invoice, membership

    async def _record(
        self,
        invoice: Invoice,
        user_id: uuid.UUID,
        action: str,
        from_status: str | None,
        to_status: str | None,
        note: str | None = None,
    ) -> None:
        await self.history.create(
            InvoiceActivity(
                invoice_id=invoice.id,
                user_id=user_id,
                action=action,
                from_status=from_status,
                to_status=to_status,
                note=note,
            )
        )

    async def create_invoice(
        self, tent_id: int, user_id: uuid.UUID, draft: InvoiceDraft
    ) -> tuple[Invoice, list[InvoiceItem]]:
        await require_membership(self.members, tent_id, user_id)
        if not draft.items:
            raise ValidationError("At least one line item is required")
        if draft.status not in (InvoiceStatus.DRAFT, InvoiceStatus.SUBMITTED):
            raise ValidationError("New invoices must be draft or submitted")

        amount, total = compute_totals(draft.items, to_money(draft.tax_amount))
        now = utcnow()
        invoice = await self.invoices.create(
            Invoice(
                tent_id=tent_id,
                invoice_number=await self._unique_number(),
                client_name=draft.client_name,
                client_email=draft.client_email,
                description=draft.description,
                currency=draft.currency,
                amount=amount,
                tax_amount=to_money(draft.tax_amount),
                total_amount=total,
                due_date=draft.due_date,
                status=draft.status,
                submitted_by=user_id,
                submitted_at=now if draft.status == InvoiceStatus.SUBMITTED else None,
            )
        )
        items = await self.items.replace_items(
            invoice.id,
            [
                InvoiceItem(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=to_money(item.unit_price),
                    amount=item.amount,
                )
                for item in draft.items
            ],
        )

        await self._record(invoice, user_id, "created", None, invoice.status)
        await self.tents.log_activity(
            tent_id,
            user_id,
            ActivityType.INVOICE_CREATED,
            f"Created invoice {invoice.invoice_number}",
            entity_type="invoice",
            entity_id=invoice.id,
            metadata={"total_amount": str(total), "status": invoice.status},
        )
        if invoice.status == InvoiceStatus.SUBMITTED:
            await self._notify_others(
                invoice,
                user_id,
                NotificationType.INVOICE_SUBMITTED,
                f"Invoice {invoice.invoice_number} - SUBMITTED",
                f"A new invoice for {invoice.client_name} was submitted",
            )
        logger.info("Invoice {} created in tent {}", invoice.invoice_number, tent_id)
        return invoice, items

    async def list_invoices(
        self, tent_id: int, user_id: uuid.UUID, status: str | None = None
    ) -> list[Invoice]:
        await require_membership(self.members, tent_id, user_id)
        return await self.invoices.list_for_tent(tent_id, status)

    async def get_invoice(
        self, invoice_id: int, user_id: uuid.UUID
    ) -> tuple[Invoice, list[InvoiceItem], list[InvoiceActivity]]:
        invoice, _ = await self._load(invoice_id, user_id)
        return (
            invoice,
            await self.items.list_for_invoice(invoice.id),
            await self.history.list_for_invoice(invoice.id),
        )

    async def update_invoice(
        self,
        invoice_id: int,
        user_id: uuid.UUID,
        changes: dict[str, Any],
        items: list[LineItem] | None = None,
    ) -> tuple[Invoice, list[InvoiceItem]]:
        """Edit a draft or rejected invoice. Only its submitter may do so."""
        invoice, _ = await self._load(invoice_id, user_id)
        if invoice.submitted_by != user_id:
            raise ForbiddenError("Only the submitter can edit this invoice")
        if InvoiceStatus(invoice.status) not in EDITABLE_STATUSES:
            raise ValidationError("Only draft or rejected invoices can be edited")

        stored_items = await self.items.list_for_invoice(invoice.id)
        if items is not None:
            if not items:
                raise ValidationError("At least one line item is required")
            stored_items = await self.items.replace_items(
                invoice.id,
                [
                    InvoiceItem(
                        description=item.description,
                        quantity=item.quantity,
                        unit_price=to_money(item.unit_price),
                        amount=item.amount,
                    )
                    for item in items
                ],
            )

        line_items = [
            LineItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in stored_items
        ]
        tax = to_money(changes.get("tax_amount", invoice.tax_amount))
        amount, total = compute_totals(line_items, tax)
        invoice = await self.invoices.update(
            invoice,
            {**changes, "tax_amount": tax, "amount": amount, "total_amount": total},
        )
        await self._record(invoice, user_id, "updated", invoice.status, invoice.status)
        return invoice, stored_items

    async def change_status(
        self,
        invoice_id: int,
        user_id: uuid.UUID,
        new_status: str,
        note: str | None = None,
        prepared_by_name: str | None = None,
    ) -> Invoice:
        """Move an invoice along its workflow.

        Raises:
            ValidationError: The move is not allowed from the current status,
                or a required signature or note is missing.
            ForbiddenError: The caller's role may not make this move.
        """
        invoice, membership = await self._load(invoice_id, user_id)
        try:
            current = InvoiceStatus(invoice.status)
            target = InvoiceStatus(new_status)
        except ValueError as e:
            raise ValidationError("Invalid status transition", cause=e) from e

        if (current, target) not in TRANSITIONS:
            raise ValidationError(
                "Invalid status transition",
                context={"from": current.value, "to": target.value},
            )
        required_role = TRANSITIONS[(current, target)]
        if required_role is None:
            if invoice.submitted_by != user_id:
                raise ForbiddenError("Only the submitter can submit this invoice")
        elif membership.tent_role != required_role:
            raise ForbiddenError(
                f"Only the tent {required_role} can move an invoice to {target}"
            )

        now = utcnow()
        changes: dict[str, Any] = {"status": target}
        if target is InvoiceStatus.SUBMITTED:
            changes["submitted_at"] = now
        elif target is InvoiceStatus.AWAITING_APPROVAL:
            if not prepared_by_name:
                raise ValidationError("Signature required")
            changes |= {
                "processed_by": user_id,
                "processed_at": now,
                "prepared_by_name": prepared_by_name,
            }
            if note:
                changes["processing_notes"] = note
        elif target is InvoiceStatus.REJECTED:
            if not note:
                raise ValidationError("Notes required")
            changes["processing_notes"] = note
        elif target is InvoiceStatus.APPROVED:
            changes |= {"approved_by": user_id, "approved_at": now}
        elif target is InvoiceStatus.COMPLETED:
            changes["completed_at"] = now

        invoice = await self.invoices.update(invoice, changes)
        await self._record(invoice, user_id, "status_changed", current, target, note)
        await self.tents.log_activity(
            invoice.tent_id,
            user_id,
            ActivityType.INVOICE_STATUS_CHANGED,
            f"Invoice {invoice.invoice_number} moved from {current} to {target}",
            entity_type="invoice",
            entity_id=invoice.id,
            metadata={"from": current.value, "to": target.value},
        )

        title = f"Invoice {invoice.invoice_number} - {target.value.upper()}"
        message = note or f"Invoice {invoice.invoice_number} is now {target.value}"
        recipients = await self._status_recipients(invoice, target, user_id)
        for recipient in recipients:
            await self.notifications.notify(
                recipient,
                NotificationType.INVOICE_STATUS,
                title,
                message,
                {"invoice_id": invoice.id, "status": target.value},
            )
        logger.info(
            "Invoice {} moved {} -> {}", invoice.invoice_number, current, target
        )
        return invoice

    async def _other_members(self, tent_id: int, actor: uuid.UUID) -> list[uuid.UUID]:
        return [
            member.user_id
            for member in await self.members.list_members(tent_id)
            if member.user_id != actor
        ]

    async def _status_recipients(
        self, invoice: Invoice, target: InvoiceStatus, actor: uuid.UUID
    ) -> list[uuid.UUID]:
        if target in (InvoiceStatus.AWAITING_APPROVAL, InvoiceStatus.COMPLETED):
            candidates = [invoice.submitted_by]
        elif target is InvoiceStatus.APPROVED and invoice.processed_by is not None:
            candidates = [invoice.processed_by]
        else:
            candidates = await self._other_members(invoice.tent_id, actor)
        return [user for user in candidates if user != actor]

    async def _notify_others(
        self,
        invoice: Invoice,
        actor: uuid.UUID,
        type_: NotificationType,
        title: str,
        message: str,
    ) -> None:
        for recipient in await self._other_members(invoice.tent_id, actor):
            await self.notifications.notify(
                recipient, type_, title, message, {"invoice_id": invoice.id}
            )

    async def dashboard_stats(self, tent_id: int, user_id: uuid.UUID) -> DashboardStats:
        await require_membership(self.members, tent_id, user_id)
        totals = {
            InvoiceStatus(status): value
            for status, value in (await self.invoices.totals_by_status(tent_id)).items()
        }

        def count(statuses: Iterable[InvoiceStatus]) -> int:
            return sum(totals.get(status, (0, Decimal(0)))[0] for status in statuses)

        def revenue(statuses: Iterable[InvoiceStatus]) -> Decimal:
            return to_money(
                sum(
                    (totals.get(status, (0, Decimal(0)))[1] for status in statuses),
                    Decimal(0),
                )
            )

        return DashboardStats(
            total_invoices=sum(c for c, _ in totals.values()),
            pending_invoices=count(PENDING_STATUSES),
            approved_invoices=count(APPROVED_STATUSES),
            completed_revenue=revenue([InvoiceStatus.COMPLETED]),
            pending_revenue=revenue(PENDING_STATUSES),
        )
