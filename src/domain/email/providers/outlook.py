"""Microsoft Graph mail client for Outlook inbox sync."""

from datetime import UTC, datetime
from typing import Any

import httpx
from loguru import logger

from src.core.config import EmailSyncConfig
from src.core.exceptions import ExternalServiceError
from src.core.observability import trace_operation
from src.domain.email.providers.base import FetchedEmail, parse_iso_datetime

GRAPH_MESSAGES_URL = "https://graph.microsoft.com/v1.0/me/messages"
MESSAGE_FIELDS = "id,conversationId,subject,from,receivedDateTime,body,bodyPreview"


def build_filter(since: datetime) -> str:
    stamp = since.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"isRead eq false and receivedDateTime ge {stamp}"


def parse_message(message: dict[str, Any]) -> FetchedEmail:
    sender = (message.get("from") or {}).get("emailAddress") or {}
    body = message.get("body") or {}
    content = body.get("content") or ""
    is_html = body.get("contentType", "").lower() == "html"
    return FetchedEmail(
        message_id=message["id"],
        thread_id=message.get("conversationId"),
        from_email=sender.get("address", ""),
        from_name=sender.get("name") or None,
        subject=message.get("subject") or "",
        body_text=message.get("bodyPreview", "") if is_html else content,
        body_html=content if is_html else None,
        received_at=parse_iso_datetime(message.get("receivedDateTime")),
    )


class OutlookClient:
    def __init__(
        self, http: httpx.AsyncClient, access_token: str, config: EmailSyncConfig
    ) -> None:
        self.http = http
        self.config = config
        self.headers = {"Authorization": f"Bearer {access_token}"}

    async def fetch_unread(self, since: datetime) -> list[FetchedEmail]:
        with trace_operation("outlook.fetch_unread"):
            try:
                response = await self.http.get(
                    GRAPH_MESSAGES_URL,
                    params={
                        "$filter": build_filter(since),
                        "$top": self.config.api_max_results,
                        "$select": MESSAGE_FIELDS,
                    },
                    headers=self.headers,
                )
                response.raise_for_status()
                emails = [parse_message(item) for item in response.json()["value"]]
            except (httpx.HTTPError, ValueError, KeyError) as e:
                logger.error("Outlook fetch failed: {}", e)
                raise ExternalServiceError(
                    "Failed to fetch Outlook messages", service="outlook", cause=e
                ) from e
        logger.info("Fetched {} unread Outlook messages", len(emails))
        return emails
