"""Unit tests for the Gmail, Outlook and Yahoo mailbox clients."""

import base64
import imaplib
from datetime import UTC, datetime, timedelta
from email.message import EmailMessage
from typing import Any

import httpx
import orjson
import pytest
from pytest_mock import MockerFixture

from src.core.config import EmailSyncConfig
from src.core.exceptions import ExternalServiceError
from src.domain.email.providers import gmail, outlook
from src.domain.email.providers.base import (
    FetchedEmail,
    OutgoingEmail,
    b64url_decode,
    b64url_encode,
    build_mime,
    parse_date,
    parse_iso_datetime,
    parse_sender,
)
from src.domain.email.providers.gmail import GmailClient
from src.domain.email.providers.outlook import OutlookClient
from src.domain.email.providers.yahoo import (
    YahooMailClient,
    imap_since,
    parse_rfc822,
)

SINCE = datetime(2025, 3, 5, 8, 30, tzinfo=UTC)


def gmail_message(message_id: str, body: str) -> dict[str, Any]:
    return {
        "id": message_id,
        "threadId": f"thread-{message_id}",
        "snippet": body[:20],
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "From", "value": "Brand Team <deals@brand.com>"},
                {"name": "Subject", "value": "Collab for spring launch"},
                {"name": "Date", "value": "Wed, 05 Mar 2025 10:15:00 +0800"},
            ],
            "parts": [
                {
                    "mimeType": "text/plain",
                    "body": {"data": b64url_encode(body.encode())},
                },
                {
                    "mimeType": "text/html",
                    "body": {"data": b64url_encode(f"<p>{body}</p>".encode())},
                },
            ],
        },
    }


@pytest.mark.unit
class TestHeaderHelpers:
    def test_parse_sender_with_name(self) -> None:
        assert parse_sender("Brand Team <deals@brand.com>") == (
            "deals@brand.com",
            "Brand Team",
        )

    def test_parse_sender_bare_address(self) -> None:
        assert parse_sender("deals@brand.com") == ("deals@brand.com", None)

    def test_parse_sender_missing(self) -> None:
        assert parse_sender(None) == ("", None)

    def test_parse_date(self) -> None:
        parsed = parse_date("Wed, 05 Mar 2025 10:15:00 +0800")

        assert parsed == datetime(2025, 3, 5, 2, 15, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, "", "yesterday-ish"])
    def test_parse_date_falls_back_to_now(self, value: str | None) -> None:
        parsed = parse_date(value)

        assert datetime.now(UTC) - parsed < timedelta(seconds=5)

    def test_parse_iso_datetime(self) -> None:
        assert parse_iso_datetime("2025-03-05T02:15:00Z") == datetime(
            2025, 3, 5, 2, 15, tzinfo=UTC
        )

    def test_b64url_round_trip_without_padding(self) -> None:
        encoded = b64url_encode(b"rate card?")

        assert "=" not in encoded
        assert b64url_decode(encoded) == b"rate card?"

    def test_sender_label(self) -> None:
        email = FetchedEmail(
            message_id="m1",
            from_email="deals@brand.com",
            subject="Hi",
            body_text="",
            received_at=SINCE,
            from_name="Brand Team",
        )

        assert email.sender == "Brand Team <deals@brand.com>"

    def test_build_mime_reply_headers(self) -> None:
        mime = build_mime(
            OutgoingEmail(
                to="deals@brand.com",
                subject="Re: Collab",
                body="Thanks!",
                in_reply_to="<abc@brand.com>",
            ),
            "creator@gmail.com",
        )

        assert mime["From"] == "creator@gmail.com"
        assert mime["In-Reply-To"] == "<abc@brand.com>"
        assert mime["References"] == "<abc@brand.com>"
        assert mime.get_content().strip() == "Thanks!"


@pytest.mark.unit
class TestGmail:
    """Gmail REST parsing and requests."""

    def test_build_query(self) -> None:
        query = gmail.build_query(SINCE)

        assert query == (
            f"is:unread after:{int(SINCE.timestamp())} "
            "-category:promotions -category:social -category:forums"
        )

    def test_parse_message(self) -> None:
        email = gmail.parse_message(gmail_message("m1", "Can you quote a reel?"))

        assert email.message_id == "m1"
        assert email.thread_id == "thread-m1"
        assert email.from_email == "deals@brand.com"
        assert email.from_name == "Brand Team"
        assert email.subject == "Collab for spring launch"
        assert email.body_text == "Can you quote a reel?"
        assert email.body_html == "<p>Can you quote a reel?</p>"

    def test_snippet_when_no_text_part(self) -> None:
        message = {"id": "m2", "snippet": "Short preview", "payload": {"headers": []}}

        email = gmail.parse_message(message)

        assert email.body_text == "Short preview"
        assert email.subject == ""

    def test_nested_parts(self) -> None:
        payload = {
            "mimeType": "multipart/mixed",
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "parts": [
                        {
                            "mimeType": "text/plain",
                            "body": {"data": b64url_encode(b"nested text")},
                        }
                    ],
                },
                {"mimeType": "application/pdf", "body": {"attachmentId": "a1"}},
            ],
        }

        assert gmail.extract_bodies(payload) == ("nested text", None)

    async def test_fetch_unread(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.endswith("/messages"):
                return httpx.Response(200, json={"messages": [{"id": "m1"}]})
            return httpx.Response(200, json=gmail_message("m1", "Rates please"))

        client = GmailClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            "ya29",
            EmailSyncConfig(),
        )

        emails = await client.fetch_unread(SINCE)

        assert [email.message_id for email in emails] == ["m1"]
        assert requests[0].url.params["q"] == gmail.build_query(SINCE)
        assert requests[1].url.params["format"] == "full"
        assert requests[0].headers["Authorization"] == "Bearer ya29"

    async def test_fetch_without_messages(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"resultSizeEstimate": 0})

        client = GmailClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            "ya29",
            EmailSyncConfig(),
        )

        assert await client.fetch_unread(SINCE) == []

    async def test_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"code": 401}})

        client = GmailClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            "expired",
            EmailSyncConfig(),
        )

        with pytest.raises(ExternalServiceError, match="Failed to fetch Gmail"):
            await client.fetch_unread(SINCE)

    async def test_send(self) -> None:
        sent: dict[str, Any] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent.update(orjson.loads(request.content))
            return httpx.Response(200, json={"id": "sent-1"})

        client = GmailClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            "ya29",
            EmailSyncConfig(),
        )

        message_id = await client.send(
            OutgoingEmail(
                to="deals@brand.com",
                subject="Re: Collab",
                body="My rates are attached.",
                thread_id="thread-m1",
            ),
            "creator@gmail.com",
        )

        assert message_id == "sent-1"
        assert sent["threadId"] == "thread-m1"
        raw = base64.urlsafe_b64decode(sent["raw"] + "=" * (-len(sent["raw"]) % 4))
        assert b"To: deals@brand.com" in raw


@pytest.mark.unit
class TestOutlook:
    def test_build_filter(self) -> None:
        assert outlook.build_filter(SINCE) == (
            "isRead eq false and receivedDateTime ge 2025-03-05T08:30:00Z"
        )

    def test_parse_html_message(self) -> None:
        email = outlook.parse_message(
            {
                "id": "AAMk1",
                "conversationId": "conv-1",
                "subject": "Sponsorship",
                "from": {"emailAddress": {"name": "Ana", "address": "ana@co.ph"}},
                "receivedDateTime": "2025-03-05T02:15:00Z",
                "bodyPreview": "Hello there",
                "body": {"contentType": "html", "content": "<b>Hello there</b>"},
            }
        )

        assert email.from_email == "ana@co.ph"
        assert email.from_name == "Ana"
        assert email.thread_id == "conv-1"
        assert email.body_text == "Hello there"
        assert email.body_html == "<b>Hello there</b>"
        assert email.received_at == datetime(2025, 3, 5, 2, 15, tzinfo=UTC)

    def test_parse_text_message(self) -> None:
        email = outlook.parse_message(
            {"id": "AAMk2", "body": {"contentType": "text", "content": "Plain"}}
        )

        assert email.body_text == "Plain"
        assert email.body_html is None
        assert email.from_email == ""

    async def test_fetch_unread(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["$filter"] == outlook.build_filter(SINCE)
            return httpx.Response(
                200, json={"value": [{"id": "AAMk1", "subject": "Hi"}]}
            )

        client = OutlookClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            "token",
            EmailSyncConfig(),
        )

        emails = await client.fetch_unread(SINCE)

        assert [email.subject for email in emails] == ["Hi"]

    async def test_fetch_unexpected_payload(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "throttled"})

        client = OutlookClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            "token",
            EmailSyncConfig(),
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.fetch_unread(SINCE)

        assert exc_info.value.service == "outlook"


@pytest.mark.unit
class TestYahoo:
    """IMAP parsing and the blocking client run in a worker thread."""

    @staticmethod
    def raw_message() -> bytes:
        message = EmailMessage()
        message["From"] = "Brand Team <deals@brand.com>"
        message["Subject"] = "Paid partnership"
        message["Message-ID"] = "<abc123@brand.com>"
        message["Date"] = "Wed, 05 Mar 2025 10:15:00 +0000"
        message.set_content("What are your rates for a reel?")
        message.add_alternative("<p>What are your rates?</p>", subtype="html")
        return message.as_bytes()

    def test_imap_since(self) -> None:
        assert imap_since(SINCE) == "05-Mar-2025"

    def test_parse_rfc822(self) -> None:
        email = parse_rfc822(self.raw_message(), "yahoo-1")

        assert email.message_id == "<abc123@brand.com>"
        assert email.from_email == "deals@brand.com"
        assert email.subject == "Paid partnership"
        assert email.body_text.strip() == "What are your rates for a reel?"
        assert email.body_html is not None
        assert "<p>What are your rates?</p>" in email.body_html

    def test_parse_rfc822_without_message_id(self) -> None:
        message = EmailMessage()
        message["From"] = "x@y.com"
        message.set_content("hi")

        assert parse_rfc822(message.as_bytes(), "yahoo-7").message_id == "yahoo-7"

    def test_parse_rfc822_with_unknown_charset(self) -> None:
        raw = (
            b"From: deals@brand.com\r\n"
            b'Content-Type: text/plain; charset="x-unknown-8"\r\n'
            b"\r\n"
            b"Rates for a reel? \xff\r\n"
        )

        email = parse_rfc822(raw, "yahoo-3")

        assert email.body_text.startswith("Rates for a reel? \ufffd")
        assert email.body_html is None

    def test_requires_credentials(self) -> None:
        with pytest.raises(ExternalServiceError, match="no credentials"):
            YahooMailClient(EmailSyncConfig(), "creator@yahoo.com")

    async def test_fetch_unread_with_app_password(
        self, mocker: MockerFixture
    ) -> None:
        imap = mocker.Mock()
        imap.search.return_value = ("OK", [b"1 2"])
        imap.fetch.return_value = ("OK", [(b"1 (RFC822 {100}", self.raw_message())])
        imap_cls = mocker.patch(
            "src.domain.email.providers.yahoo.imaplib.IMAP4_SSL", return_value=imap
        )
        config = EmailSyncConfig()
        client = YahooMailClient(
            config, "creator@yahoo.com", app_password="abcdabcdabcdabcd"
        )

        emails = await client.fetch_unread(SINCE)

        assert len(emails) == 2
        imap_cls.assert_called_once_with(config.imap_host, config.imap_port)
        imap.login.assert_called_once_with("creator@yahoo.com", "abcdabcdabcdabcd")
        imap.select.assert_called_once_with("INBOX", readonly=True)
        imap.search.assert_called_once_with(None, "SINCE", "05-Mar-2025", "UNSEEN")
        imap.logout.assert_called_once()

    async def test_fetch_with_oauth_token(self, mocker: MockerFixture) -> None:
        imap = mocker.Mock()
        imap.search.return_value = ("OK", [b""])
        mocker.patch(
            "src.domain.email.providers.yahoo.imaplib.IMAP4_SSL", return_value=imap
        )
        client = YahooMailClient(
            EmailSyncConfig(), "creator@yahoo.com", access_token="oauth-token"
        )

        assert await client.fetch_unread(SINCE) == []
        imap.authenticate.assert_called_once()
        assert imap.authenticate.call_args.args[0] == "XOAUTH2"
        imap.login.assert_not_called()

    async def test_login_failure(self, mocker: MockerFixture) -> None:
        imap = mocker.Mock()
        imap.login.side_effect = imaplib.IMAP4.error("AUTHENTICATE failed")
        mocker.patch(
            "src.domain.email.providers.yahoo.imaplib.IMAP4_SSL", return_value=imap
        )
        client = YahooMailClient(
            EmailSyncConfig(), "creator@yahoo.com", app_password="abcdabcdabcdabcd"
        )

        with pytest.raises(ExternalServiceError, match="Failed to fetch Yahoo"):
            await client.fetch_unread(SINCE)

        imap.logout.assert_called_once()

    async def test_unexpected_fetch_error_is_wrapped(
        self, mocker: MockerFixture
    ) -> None:
        imap = mocker.Mock()
        imap.search.return_value = ("OK", [b"1"])
        imap.fetch.side_effect = LookupError("unknown encoding: x-unknown-8")
        mocker.patch(
            "src.domain.email.providers.yahoo.imaplib.IMAP4_SSL", return_value=imap
        )
        client = YahooMailClient(
            EmailSyncConfig(), "creator@yahoo.com", app_password="abcdabcdabcdabcd"
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.fetch_unread(SINCE)

        assert isinstance(exc_info.value.cause, LookupError)
        imap.logout.assert_called_once()

    async def test_send_over_smtp(self, mocker: MockerFixture) -> None:
        smtp = mocker.MagicMock()
        smtp_cls = mocker.patch(
            "src.domain.email.providers.yahoo.smtplib.SMTP_SSL", return_value=smtp
        )
        session = smtp.__enter__.return_value
        client = YahooMailClient(
            EmailSyncConfig(), "creator@yahoo.com", app_password="abcdabcdabcdabcd"
        )

        await client.send(
            OutgoingEmail(to="deals@brand.com", subject="Re: Hi", body="Thanks")
        )

        smtp_cls.assert_called_once()
        session.login.assert_called_once_with("creator@yahoo.com", "abcdabcdabcdabcd")
        sent = session.send_message.call_args.args[0]
        assert sent["To"] == "deals@brand.com"
        assert sent["From"] == "creator@yahoo.com"
