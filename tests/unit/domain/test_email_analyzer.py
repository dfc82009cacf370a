"""Unit tests for LLM inquiry analysis and reply suggestions."""

from types import SimpleNamespace
from unittest.mock import Mock

import orjson
import pytest
from openai import OpenAIError
from pytest_mock import MockerFixture

from src.core.config import AIConfig
from src.domain.email.analyzer import (
    DEFAULT_SUGGESTIONS,
    EmailAnalysis,
    EmailAnalyzer,
)
from src.domain.email.models import InquiryType


def completion(content: str | None) -> SimpleNamespace:
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def openai_client(mocker: MockerFixture) -> Mock:
    client = mocker.Mock()
    client.chat.completions.create = mocker.AsyncMock()
    return client


@pytest.mark.unit
class TestEmailAnalysis:
    def test_from_payload(self) -> None:
        analysis = EmailAnalysis.from_payload(
            {
                "isBusinessInquiry": True,
                "seriousnessScore": 8,
                "inquiryType": "sponsorship",
                "summary": "Skincare brand wants three reels.",
            }
        )

        assert analysis == EmailAnalysis(
            is_business_inquiry=True,
            seriousness_score=8,
            inquiry_type=InquiryType.SPONSORSHIP,
            summary="Skincare brand wants three reels.",
        )

    @pytest.mark.parametrize(
        ("score", "expected"), [(15, 10), (0, 1), (-3, 1), ("7", 7), ("high", 1)]
    )
    def test_score_is_clamped(self, score: object, expected: int) -> None:
        analysis = EmailAnalysis.from_payload({"seriousnessScore": score})

        assert analysis.seriousness_score == expected

    def test_missing_fields_use_defaults(self) -> None:
        analysis = EmailAnalysis.from_payload({"inquiryType": "partnership"})

        assert analysis.is_business_inquiry is False
        assert analysis.inquiry_type is InquiryType.GENERAL
        assert analysis.summary == "No summary available"

    def test_fallback(self) -> None:
        analysis = EmailAnalysis.fallback("Could not analyze email")

        assert not analysis.is_business_inquiry
        assert analysis.seriousness_score == 1
        assert analysis.inquiry_type is InquiryType.GENERAL


@pytest.mark.unit
class TestEmailAnalyzer:
    """Classification through the chat completions API."""

    async def test_analyze(self, openai_client: Mock) -> None:
        openai_client.chat.completions.create.return_value = completion(
            orjson.dumps(
                {
                    "isBusinessInquiry": True,
                    "seriousnessScore": 9,
                    "inquiryType": "collaboration",
                    "summary": "Launch campaign with a clear budget.",
                }
            ).decode()
        )
        analyzer = EmailAnalyzer(config=AIConfig(), client=openai_client)

        analysis = await analyzer.analyze(
            "Brand <deals@brand.com>", "Spring launch", "Budget is 50k PHP"
        )

        assert analysis.is_business_inquiry
        assert analysis.seriousness_score == 9
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "Budget is 50k PHP" in kwargs["messages"][1]["content"]

    async def test_without_client(self) -> None:
        analyzer = EmailAnalyzer(config=AIConfig())

        analysis = await analyzer.analyze("a@b.com", "Hi", "Hello")

        assert not analyzer.is_configured
        assert analysis.summary == "AI analysis unavailable - OpenAI not configured"

    async def test_completion_requires_client(self) -> None:
        analyzer = EmailAnalyzer(config=AIConfig())

        with pytest.raises(ValueError, match="not configured"):
            await analyzer._complete_json("gpt-4o-mini", 0.2, "system", "prompt")

    def test_client_built_from_api_key(self) -> None:
        analyzer = EmailAnalyzer(config=AIConfig(openai_api_key="sk-test"))

        assert analyzer.is_configured

    @pytest.mark.parametrize(
        "outcome",
        [
            pytest.param(OpenAIError("rate limited"), id="api-error"),
            pytest.param(completion(None), id="empty"),
            pytest.param(completion("not json"), id="invalid-json"),
            pytest.param(completion("[1, 2]"), id="not-an-object"),
        ],
    )
    async def test_failures_fall_back(
        self, openai_client: Mock, outcome: object
    ) -> None:
        if isinstance(outcome, Exception):
            openai_client.chat.completions.create.side_effect = outcome
        else:
            openai_client.chat.completions.create.return_value = outcome
        analyzer = EmailAnalyzer(config=AIConfig(), client=openai_client)

        analysis = await analyzer.analyze("a@b.com", "Hi", "Hello")

        assert analysis == EmailAnalysis.fallback("Could not analyze email")


@pytest.mark.unit
class TestReplySuggestions:
    async def test_suggestions(self, openai_client: Mock) -> None:
        openai_client.chat.completions.create.return_value = completion(
            orjson.dumps(
                {"accept": "Happy to!", "needMoreInfo": "Which dates?"}
            ).decode()
        )
        analyzer = EmailAnalyzer(config=AIConfig(), client=openai_client)

        suggestions = await analyzer.reply_suggestions(
            "Collab", "Brand wants a reel", "collaboration"
        )

        assert suggestions["accept"] == "Happy to!"
        assert suggestions["needMoreInfo"] == "Which dates?"
        assert suggestions["decline"] == DEFAULT_SUGGESTIONS["decline"]
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-3.5-turbo"

    async def test_defaults_without_client(self) -> None:
        analyzer = EmailAnalyzer(config=AIConfig())

        suggestions = await analyzer.reply_suggestions("Hi", "Summary", "general")

        assert suggestions == DEFAULT_SUGGESTIONS
        assert set(suggestions) == {"accept", "needMoreInfo", "decline"}

    async def test_defaults_on_error(self, openai_client: Mock) -> None:
        openai_client.chat.completions.create.side_effect = OpenAIError("down")
        analyzer = EmailAnalyzer(config=AIConfig(), client=openai_client)

        assert await analyzer.reply_suggestions("Hi", "S", "general") == (
            DEFAULT_SUGGESTIONS
        )
