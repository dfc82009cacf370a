"""Gmail REST API client for inbox sync and replies."""

from datetime import datetime
from typing import Any

import httpx
from loguru import logger

from src.core.config import EmailSyncConfig
from src.core.exceptions import ExternalServiceError
from src.core.observability import trace_operation
from src.domain.email.providers.base import (
    FetchedEmail,
    OutgoingEmail,
    b64url_decode,
    b64url_encode,
    build_mime,
    parse_date,
    parse_sender,
)

GMAIL_API_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
EXCLUDED_CATEGORIES = ("promotions", "social", "forums")


def build_query(since: datetime) -> str:
    excluded = " ".join(f"-category:{name}" for name in EXCLUDED_CATEGORIES)
    return f"is:unread after:{int(since.timestamp())} {excluded}"


def _header(headers: list[dict[str, str]], name: str) -> str | None:
    wanted = name.lower()
    for header in headers:
        if header.get("name", "").lower() == wanted:
            return header.get("value")
    return None


def extract_bodies(payload: dict[str, Any]) -> tuple[str, str | None]:
    """Collect the first ``text/plain`` and ``text/html`` parts of a message.

    Multipart payloads are walked depth first. Part data is base64url.
    """
    text: str | None = None
    html: str | None = None
    stack = [payload]
    while stack:
        part = stack.pop(0)
        mime_type = part.get("mimeType", "")
        data = (part.get("body") or {}).get("data")
        if data and mime_type == "text/plain" and text is None:
            text = b64url_decode(data).decode("utf-8", errors="replace")
        elif data and mime_type == "text/html" and html is None:
            html = b64url_decode(data).decode("utf-8", errors="replace")
        stack[0:0] = part.get("parts") or []
    return text or "", html


def parse_message(message: dict[str, Any]) -> FetchedEmail:
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    from_email, from_name = parse_sender(_header(headers, "From"))
    body_text, body_html = extract_bodies(payload)
    return FetchedEmail(
        message_id=message["id"],
        thread_id=message.get("threadId"),
        from_email=from_email,
        from_name=from_name,
        subject=_header(headers, "Subject") or "",
        body_text=body_text or message.get("snippet", ""),
        body_html=body_html,
        received_at=parse_date(_header(headers, "Date")),
    )


class GmailClient:
    def __init__(
        self, http: httpx.AsyncClient, access_token: str, config: EmailSyncConfig
    ) -> None:
        self.http = http
        self.config = config
        self.headers = {"Authorization": f"Bearer {access_token}"}

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self.http.get(
            f"{GMAIL_API_URL}{path}", params=params, headers=self.headers
        )
        response.raise_for_status()
        return response.json()

    async def fetch_unread(self, since: datetime) -> list[FetchedEmail]:
        """List unread primary-inbox messages received after ``since``."""
        with trace_operation("gmail.fetch_unread"):
            try:
                listing = await self._get(
                    "/messages",
                    {
                        "q": build_query(since),
                        "maxResults": self.config.api_max_results,
                    },
                )
                emails = []
                for ref in listing.get("messages") or []:
                    message = await self._get(
                        f"/messages/{ref['id']}", {"format": "full"}
                    )
                    emails.append(parse_message(message))
            except (httpx.HTTPError, ValueError, KeyError) as e:
                logger.error("Gmail fetch failed: {}", e)
                raise ExternalServiceError(
                    "Failed to fetch Gmail messages", service="gmail", cause=e
                ) from e
        logger.info("Fetched {} unread Gmail messages", len(emails))
        return emails

    async def send(self, message: OutgoingEmail, sender: str) -> str:
        """Send a reply through ``users.messages.send`` and return its id."""
        raw = b64url_encode(build_mime(message, sender).as_bytes())
        body: dict[str, Any] = {"raw": raw}
        if message.thread_id:
            body["threadId"] = message.thread_id
        with trace_operation("gmail.send"):
            try:
                response = await self.http.post(
                    f"{GMAIL_API_URL}/messages/send", json=body, headers=self.headers
                )
                response.raise_for_status()
                return str(response.json().get("id", ""))
            except (httpx.HTTPError, ValueError) as e:
                raise ExternalServiceError(
                    "Failed to send Gmail message", service="gmail", cause=e
                ) from e
