"""Unit tests for rate-card formatting and reply composition."""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from openai import OpenAIError
from pytest_mock import MockerFixture

from src.core.config import AIConfig
from src.domain.email.analyzer import EmailAnalyzer
from src.domain.email.auto_reply import (
    NO_RATES_TEXT,
    RATES_PLACEHOLDER,
    ReplyComposer,
    format_service_rates,
)
from src.domain.email.models import EmailInquiry
from src.domain.rates.models import UserRates


def make_rates(**overrides: object) -> UserRates:
    values: dict[str, object] = {
        "service_rates": [
            {"service": "Reel", "rate": 5000, "currency": "PHP", "notes": None},
            {"service": "Story", "rate": 1500.5, "currency": "USD", "notes": "x3"},
        ],
        "default_currency": "PHP",
        "reply_template": f"Thanks for reaching out!\n{RATES_PLACEHOLDER}",
        "email_signature": "Best regards,\nMika",
        "additional_notes": None,
    }
    values.update(overrides)
    return UserRates(**values)


def make_inquiry() -> EmailInquiry:
    return EmailInquiry(
        from_email="deals@brand.com",
        from_name="Brand Team",
        subject="Spring launch",
        body_text="We need two reels in April.",
        ai_summary="Brand wants two reels.",
        inquiry_type="collaboration",
    )


@pytest.fixture
def openai_client(mocker: MockerFixture) -> Mock:
    client = mocker.Mock()
    client.chat.completions.create = mocker.AsyncMock()
    return client


@pytest.mark.unit
class TestFormatServiceRates:
    def test_rate_lines(self) -> None:
        text = format_service_rates(make_rates().service_rates, "PHP")

        assert text == "• Reel - ₱5,000\n• Story - $1,500.50 (x3)"

    def test_missing_currency_uses_default(self) -> None:
        text = format_service_rates([{"service": "Vlog", "rate": 200}], "CHF")

        assert text == "• Vlog - CHF 200"

    def test_empty_rate_card(self) -> None:
        assert format_service_rates([], "PHP") == NO_RATES_TEXT


@pytest.mark.unit
class TestReplyComposer:
    """Template filling, optional LLM rewrite and the signature."""

    async def test_template_without_llm(self) -> None:
        composer = ReplyComposer(EmailAnalyzer(config=AIConfig()))

        body = await composer.compose(make_inquiry(), make_rates())

        assert body == (
            "Thanks for reaching out!\n"
            "• Reel - ₱5,000\n"
            "• Story - $1,500.50 (x3)"
            "\n\nBest regards,\nMika"
        )

    async def test_additional_notes_as_postscript(self) -> None:
        composer = ReplyComposer(EmailAnalyzer(config=AIConfig()))

        body = await composer.compose(
            make_inquiry(), make_rates(additional_notes="Booked until May 3.")
        )

        assert body.endswith("Mika\n\nP.S. Booked until May 3.")

    async def test_only_first_placeholder_is_replaced(self) -> None:
        composer = ReplyComposer(EmailAnalyzer(config=AIConfig()))
        rates = make_rates(
            service_rates=[],
            reply_template=f"{RATES_PLACEHOLDER} / {RATES_PLACEHOLDER}",
        )

        body = await composer.compose(make_inquiry(), rates)

        assert body.startswith(f"{NO_RATES_TEXT} / {RATES_PLACEHOLDER}")

    async def test_llm_rewrite(self, openai_client: Mock) -> None:
        openai_client.chat.completions.create.return_value = SimpleNamespace(
            choices=[
                SimpleNamespace(message=SimpleNamespace(content="Hi Brand Team!"))
            ]
        )
        composer = ReplyComposer(EmailAnalyzer(config=AIConfig(), client=openai_client))

        body = await composer.compose(make_inquiry(), make_rates())

        assert body == "Hi Brand Team!\n\nBest regards,\nMika"
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["max_tokens"] == 1000
        assert "• Reel - ₱5,000" in kwargs["messages"][1]["content"]

    async def test_llm_failure_keeps_template(self, openai_client: Mock) -> None:
        openai_client.chat.completions.create.side_effect = OpenAIError("timeout")
        composer = ReplyComposer(EmailAnalyzer(config=AIConfig(), client=openai_client))

        body = await composer.compose(make_inquiry(), make_rates())

        assert body.startswith("Thanks for reaching out!\n• Reel - ₱5,000")
