"""Integration tests for the invoice workflow between client and manager."""

import re
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import pytest
import pytest_check
from httpx import AsyncClient

type HeadersFor = Callable[[uuid.UUID], dict[str, str]]
type TentFlow = Callable[..., Awaitable[dict[str, Any]]]

INVOICE_PAYLOAD = {
    "clientName": "Glow Skincare",
    "clientEmail": "ap@glow.ph",
    "items": [
        {"description": "Reel", "unitPrice": 5000, "quantity": 2},
        {"description": "Story", "unitPrice": 1500},
    ],
    "taxAmount": 600,
}


@pytest.fixture
async def shared_tent(
    create_tent: TentFlow,
    join_tent: TentFlow,
    creator_id: uuid.UUID,
    partner_id: uuid.UUID,
) -> int:
    """A locked tent: the creator manages, the partner is the client."""
    created = await create_tent(creator_id, role="manager")
    await join_tent(partner_id, created["inviteCode"])
    return created["tent"]["id"]


async def move(
    client: AsyncClient,
    headers: dict[str, str],
    invoice_id: int,
    status: str,
    **extra: str,
) -> httpx.Response:
    return await client.post(
        f"/api/invoices/{invoice_id}/status",
        json={"status": status, **extra},
        headers=headers,
    )


@pytest.mark.integration
class TestCreateInvoice:
    async def test_totals_and_number(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        partner_id: uuid.UUID,
    ) -> None:
        response = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json=INVOICE_PAYLOAD,
            headers=headers_for(partner_id),
        )

        assert response.status_code == 201
        invoice = response.json()["invoice"]
        with pytest_check.check:
            assert re.fullmatch(r"INV-\d{8}-[A-Z0-9]{4}", invoice["invoice_number"])
        with pytest_check.check:
            assert invoice["amount"] == 11500
        with pytest_check.check:
            assert invoice["tax_amount"] == 600
        with pytest_check.check:
            assert invoice["total_amount"] == 12100
        with pytest_check.check:
            assert invoice["status"] == "draft"
        with pytest_check.check:
            assert invoice["currency"] == "PHP"
        with pytest_check.check:
            assert [item["amount"] for item in response.json()["items"]] == [
                10000,
                1500,
            ]

    async def test_requires_items(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        partner_id: uuid.UUID,
    ) -> None:
        response = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json={"clientName": "Glow", "items": []},
            headers=headers_for(partner_id),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "At least one line item is required"

    @pytest.mark.parametrize("status", ["approved", "paid"])
    async def test_initial_status(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        partner_id: uuid.UUID,
        status: str,
    ) -> None:
        response = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json={**INVOICE_PAYLOAD, "status": status},
            headers=headers_for(partner_id),
        )

        assert response.status_code == 400

    async def test_outsider_forbidden(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        outsider_id: uuid.UUID,
    ) -> None:
        response = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json=INVOICE_PAYLOAD,
            headers=headers_for(outsider_id),
        )

        assert response.status_code == 403


@pytest.mark.integration
class TestInvoiceWorkflow:
    """draft -> submitted -> awaiting_approval -> approved -> completed."""

    async def test_full_lifecycle(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        creator_id: uuid.UUID,
        partner_id: uuid.UUID,
    ) -> None:
        client_headers = headers_for(partner_id)
        manager_headers = headers_for(creator_id)
        created = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json=INVOICE_PAYLOAD,
            headers=client_headers,
        )
        invoice_id = created.json()["invoice"]["id"]

        submitted = await move(client, client_headers, invoice_id, "submitted")
        prepared = await move(
            client,
            manager_headers,
            invoice_id,
            "awaiting_approval",
            preparedByName="Mika Reyes",
        )
        approved = await move(client, client_headers, invoice_id, "approved")
        completed = await move(client, manager_headers, invoice_id, "completed")

        assert submitted.json()["invoice"]["submitted_at"] is not None
        assert prepared.json()["invoice"]["prepared_by_name"] == "Mika Reyes"
        assert prepared.json()["invoice"]["processed_by"] == str(creator_id)
        assert approved.json()["invoice"]["approved_by"] == str(partner_id)
        assert completed.json()["invoice"]["status"] == "completed"
        assert completed.json()["invoice"]["completed_at"] is not None

        detail = await client.get(f"/api/invoices/{invoice_id}", headers=client_headers)
        transitions = [
            (entry["from_status"], entry["to_status"])
            for entry in detail.json()["activity"]
        ]
        assert transitions == [
            (None, "draft"),
            ("draft", "submitted"),
            ("submitted", "awaiting_approval"),
            ("awaiting_approval", "approved"),
            ("approved", "completed"),
        ]

        stats = await client.get(
            f"/api/tents/{shared_tent}/stats", headers=manager_headers
        )
        assert stats.json()["stats"] == {
            "total_invoices": 1,
            "pending_invoices": 0,
            "approved_invoices": 1,
            "completed_revenue": 12100.0,
            "pending_revenue": 0.0,
        }

    async def test_status_notifications(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        creator_id: uuid.UUID,
        partner_id: uuid.UUID,
    ) -> None:
        client_headers = headers_for(partner_id)
        created = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json={**INVOICE_PAYLOAD, "status": "submitted"},
            headers=client_headers,
        )
        invoice_id = created.json()["invoice"]["id"]
        await move(
            client,
            headers_for(creator_id),
            invoice_id,
            "awaiting_approval",
            preparedByName="Mika",
        )

        manager_inbox = await client.get(
            "/api/notifications", headers=headers_for(creator_id)
        )
        client_inbox = await client.get("/api/notifications", headers=client_headers)

        manager_types = [n["type"] for n in manager_inbox.json()["notifications"]]
        assert "invoice_submitted" in manager_types
        client_notifications = client_inbox.json()["notifications"]
        assert [n["type"] for n in client_notifications] == ["invoice_status"]
        assert client_notifications[0]["data"]["status"] == "awaiting_approval"

    @pytest.mark.parametrize(
        ("actor", "target", "extra", "code", "message"),
        [
            ("client", "approved", {}, 400, "Invalid status transition"),
            ("manager", "submitted", {}, 403, "Only the submitter can submit"),
            ("client", "completed", {}, 400, "Invalid status transition"),
            ("client", "bogus", {}, 400, "Invalid status transition"),
        ],
    )
    async def test_rejected_moves_from_draft(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        creator_id: uuid.UUID,
        partner_id: uuid.UUID,
        actor: str,
        target: str,
        extra: dict[str, str],
        code: int,
        message: str,
    ) -> None:
        created = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json=INVOICE_PAYLOAD,
            headers=headers_for(partner_id),
        )
        actor_id = partner_id if actor == "client" else creator_id

        response = await move(
            client,
            headers_for(actor_id),
            created.json()["invoice"]["id"],
            target,
            **extra,
        )

        assert response.status_code == code
        assert response.json()["message"].startswith(message)

    async def test_prepare_requires_signature(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        creator_id: uuid.UUID,
        partner_id: uuid.UUID,
    ) -> None:
        created = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json={**INVOICE_PAYLOAD, "status": "submitted"},
            headers=headers_for(partner_id),
        )
        invoice_id = created.json()["invoice"]["id"]

        unsigned = await move(
            client, headers_for(creator_id), invoice_id, "awaiting_approval"
        )
        by_client = await move(
            client,
            headers_for(partner_id),
            invoice_id,
            "awaiting_approval",
            preparedByName="Ana",
        )

        assert unsigned.status_code == 400
        assert unsigned.json()["message"] == "Signature required"
        assert by_client.status_code == 403

    async def test_reject_and_resubmit(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        creator_id: uuid.UUID,
        partner_id: uuid.UUID,
    ) -> None:
        client_headers = headers_for(partner_id)
        manager_headers = headers_for(creator_id)
        created = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json={**INVOICE_PAYLOAD, "status": "submitted"},
            headers=client_headers,
        )
        invoice_id = created.json()["invoice"]["id"]

        without_note = await move(client, manager_headers, invoice_id, "rejected")
        rejected = await move(
            client, manager_headers, invoice_id, "rejected", note="Wrong TIN"
        )
        edited = await client.patch(
            f"/api/invoices/{invoice_id}",
            json={
                "taxAmount": 0,
                "items": [{"description": "Reel", "unitPrice": 4000}],
            },
            headers=client_headers,
        )
        resubmitted = await move(client, client_headers, invoice_id, "submitted")

        assert without_note.json()["message"] == "Notes required"
        assert rejected.json()["invoice"]["processing_notes"] == "Wrong TIN"
        assert edited.status_code == 200
        assert edited.json()["invoice"]["total_amount"] == 4000
        assert len(edited.json()["items"]) == 1
        assert resubmitted.json()["invoice"]["status"] == "submitted"


@pytest.mark.integration
class TestInvoiceEditing:
    async def test_only_submitter_edits(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        creator_id: uuid.UUID,
        partner_id: uuid.UUID,
    ) -> None:
        created = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json=INVOICE_PAYLOAD,
            headers=headers_for(partner_id),
        )

        response = await client.patch(
            f"/api/invoices/{created.json()['invoice']['id']}",
            json={"clientName": "Other"},
            headers=headers_for(creator_id),
        )

        assert response.status_code == 403

    async def test_submitted_invoice_is_locked(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        partner_id: uuid.UUID,
    ) -> None:
        created = await client.post(
            f"/api/tents/{shared_tent}/invoices",
            json={**INVOICE_PAYLOAD, "status": "submitted"},
            headers=headers_for(partner_id),
        )

        response = await client.patch(
            f"/api/invoices/{created.json()['invoice']['id']}",
            json={"clientName": "Other"},
            headers=headers_for(partner_id),
        )

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Only draft or rejected invoices can be edited"
        )

    async def test_list_with_status_filter(
        self,
        client: AsyncClient,
        headers_for: HeadersFor,
        shared_tent: int,
        partner_id: uuid.UUID,
    ) -> None:
        headers = headers_for(partner_id)
        url = f"/api/tents/{shared_tent}/invoices"
        await client.post(url, json=INVOICE_PAYLOAD, headers=headers)
        await client.post(
            url, json={**INVOICE_PAYLOAD, "status": "submitted"}, headers=headers
        )

        everything = await client.get(url, headers=headers)
        drafts = await client.get(url, params={"status": "draft"}, headers=headers)

        assert len(everything.json()["invoices"]) == 2
        assert [i["status"] for i in drafts.json()["invoices"]] == ["draft"]

    async def test_missing_invoice(
        self, client: AsyncClient, headers_for: HeadersFor, partner_id: uuid.UUID
    ) -> None:
        response = await client.get(
            "/api/invoices/404", headers=headers_for(partner_id)
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Invoice not found"
