"""Invoice persistence."""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.invoices.models import Invoice, InvoiceActivity, InvoiceItem
from src.infrastructure.database.repository import BaseRepository


class InvoiceRepository(BaseRepository[Invoice]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Invoice)

    async def list_for_tent(
        self, tent_id: int, status: str | None = None
    ) -> list[Invoice]:
        stmt = select(Invoice).where(Invoice.tent_id == tent_id)
        if status:
            stmt = stmt.where(Invoice.status == status)
        result = await self.session.execute(stmt.order_by(Invoice.id.desc()))
        return list(result.scalars().all())

    async def number_exists(self, invoice_number: str) -> bool:
        return await self.count(invoice_number=invoice_number) > 0

    async def totals_by_status(self, tent_id: int) -> dict[str, tuple[int, Decimal]]:
        """Return ``{status: (invoice count, sum of total_amount)}`` for a tent."""
        stmt = (
            select(Invoice.status, func.count(), func.sum(Invoice.total_amount))
            .where(Invoice.tent_id == tent_id)
            .group_by(Invoice.status)
        )
        result = await self.session.execute(stmt)
        return {
            status: (count, Decimal(str(total or 0)))
            for status, count, total in result.tuples()
        }


class InvoiceItemRepository(BaseRepository[InvoiceItem]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, InvoiceItem)

    async def list_for_invoice(self, invoice_id: int) -> list[InvoiceItem]:
        return await self.filter_by(invoice_id=invoice_id)

    async def replace_items(
        self, invoice_id: int, items: list[InvoiceItem]
    ) -> list[InvoiceItem]:
        for existing in await self.list_for_invoice(invoice_id):
            await self.session.delete(existing)
        created = []
        for item in items:
            item.invoice_id = invoice_id
            created.append(await self.create(item))
        return created


class InvoiceActivityRepository(BaseRepository[InvoiceActivity]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, InvoiceActivity)

    async def list_for_invoice(self, invoice_id: int) -> list[InvoiceActivity]:
        return await self.filter_by(invoice_id=invoice_id)
