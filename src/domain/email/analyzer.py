"""LLM classification of inbound email and reply suggestions.

The analyzer never raises: when OpenAI is not configured or a call fails it
returns a conservative default that will not be stored as an inquiry.
"""

from dataclasses import dataclass
from typing import Any

import orjson
from loguru import logger
from openai import AsyncOpenAI, OpenAIError

from src.core.config import AIConfig, get_settings
from src.core.observability import trace_operation
from src.domain.email.models import InquiryType

MIN_SCORE = 1
MAX_SCORE = 10

ANALYSIS_SYSTEM_PROMPT = (
    "You are an AI assistant specialized in analyzing business emails for "
    "content creators and influencers. You help filter legitimate business "
    "opportunities from spam and irrelevant messages."
)

ANALYSIS_PROMPT = """
Analyze this email and determine if it's a legitimate business inquiry for a content creator/influencer.

From: {sender}
Subject: {subject}
Body: {body}

Please analyze and return a JSON object with the following structure:
{{
  "isBusinessInquiry": boolean (true if this appears to be a genuine business inquiry),
  "seriousnessScore": number (1-10, where 10 is extremely serious/professional),
  "inquiryType": string (one of: collaboration, booking, sponsorship, general, spam),
  "summary": string (2-3 sentence summary of the opportunity)
}}

Consider these factors for legitimacy and importance:
- Professional tone and clear business proposal
- Specific details about collaboration/project
- Company information and contact details
- Budget or compensation mentioned
- Timeline and deliverables specified
- Alignment with creator content

Filter out:
- Generic spam or mass emails
- Scams or suspicious requests
- Personal messages (not business)
- Newsletter subscriptions
- Automated notifications
"""

SUGGESTION_SYSTEM_PROMPT = (
    "You are a professional email writer for content creators and influencers."
)

SUGGESTION_PROMPT = """
Generate three professional email reply templates for this business inquiry:

Inquiry Summary: {summary}
Type: {inquiry_type}
Original Subject: {subject}

Please provide three reply options:
1. Accept/Show Interest - Professional and enthusiastic acceptance
2. Need More Information - Polite request for clarification/details
3. Decline - Professional and courteous rejection

Each reply should be 3-4 sentences, professional, and appropriate for a content creator/influencer.

Return as JSON:
{{
  "accept": "reply text",
  "needMoreInfo": "reply text",
  "decline": "reply text"
}}
"""

DEFAULT_SUGGESTIONS = {
    "accept": (
        "Thank you for reaching out! I'm very interested in this opportunity and "
        "would love to discuss the details further. Please let me know your "
        "availability for a call or meeting to explore how we can work together."
    ),
    "needMoreInfo": (
        "Thank you for your inquiry. I'm interested in learning more about this "
        "opportunity. Could you please provide additional details about the "
        "project scope, timeline, and budget? I look forward to hearing from you."
    ),
    "decline": (
        "Thank you for considering me for this opportunity. Unfortunately, I'm "
        "unable to take on this project at this time due to current commitments. "
        "I wish you the best of luck with your project."
    ),
}


@dataclass(frozen=True)
class EmailAnalysis:
    is_business_inquiry: bool
    seriousness_score: int
    inquiry_type: InquiryType
    summary: str

    @classmethod
    def fallback(cls, summary: str) -> "EmailAnalysis":
        return cls(
            is_business_inquiry=False,
            seriousness_score=MIN_SCORE,
            inquiry_type=InquiryType.GENERAL,
            summary=summary,
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "EmailAnalysis":
        """Normalize a model response: clamp the score, default unknown fields."""
        try:
            score = int(payload.get("seriousnessScore") or MIN_SCORE)
        except (TypeError, ValueError):
            score = MIN_SCORE
        try:
            inquiry_type = InquiryType(payload.get("inquiryType") or "general")
        except ValueError:
            inquiry_type = InquiryType.GENERAL
        return cls(
            is_business_inquiry=bool(payload.get("isBusinessInquiry", False)),
            seriousness_score=min(MAX_SCORE, max(MIN_SCORE, score)),
            inquiry_type=inquiry_type,
            summary=str(payload.get("summary") or "No summary available"),
        )


class EmailAnalyzer:
    """Wraps the OpenAI chat completions API.

    Args:
        config: AI settings. Defaults to the application settings.
        client: Injected client, mainly for tests. Built from the API key when
            omitted; stays ``None`` when no key is configured.
    """

    def __init__(
        self, config: AIConfig | None = None, client: AsyncOpenAI | None = None
    ) -> None:
        self.config = config or get_settings().ai_config
        if client is None and self.config.openai_api_key:
            client = AsyncOpenAI(api_key=self.config.openai_api_key)
        self.client = client

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def _complete_json(
        self, model: str, temperature: float, system: str, prompt: str
    ) -> dict[str, Any]:
        if self.client is None:
            raise ValueError("OpenAI client is not configured")
        response = await self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content
        if not content:
            raise ValueError("No response from AI")
        result = orjson.loads(content)
        if not isinstance(result, dict):
            raise TypeError("AI response is not a JSON object")
        return result

    async def analyze(self, sender: str, subject: str, body: str) -> EmailAnalysis:
        """Classify one email as a business inquiry and score its seriousness."""
        if self.client is None:
            logger.warning(
                "OpenAI API key not configured - returning default analysis"
            )
            return EmailAnalysis.fallback(
                "AI analysis unavailable - OpenAI not configured"
            )

        prompt = ANALYSIS_PROMPT.format(sender=sender, subject=subject, body=body)
        try:
            with trace_operation("llm.analyze_email", model=self.config.analysis_model):
                payload = await self._complete_json(
                    self.config.analysis_model,
                    self.config.analysis_temperature,
                    ANALYSIS_SYSTEM_PROMPT,
                    prompt,
                )
        except (OpenAIError, ValueError, TypeError) as e:
            logger.error("Error analyzing email with AI: {}", e)
            return EmailAnalysis.fallback("Could not analyze email")
        return EmailAnalysis.from_payload(payload)

    async def reply_suggestions(
        self, subject: str, summary: str, inquiry_type: str
    ) -> dict[str, str]:
        """Return ``accept``, ``needMoreInfo`` and ``decline`` reply drafts."""
        if self.client is None:
            logger.warning(
                "OpenAI API key not configured - returning default templates"
            )
            return dict(DEFAULT_SUGGESTIONS)

        prompt = SUGGESTION_PROMPT.format(
            summary=summary, inquiry_type=inquiry_type, subject=subject
        )
        try:
            with trace_operation(
                "llm.reply_suggestions", model=self.config.suggestion_model
            ):
                payload = await self._complete_json(
                    self.config.suggestion_model,
                    self.config.suggestion_temperature,
                    SUGGESTION_SYSTEM_PROMPT,
                    prompt,
                )
        except (OpenAIError, ValueError, TypeError) as e:
            logger.error("Error generating reply suggestions: {}", e)
            return dict(DEFAULT_SUGGESTIONS)
        return {
            key: str(payload.get(key) or default)
            for key, default in DEFAULT_SUGGESTIONS.items()
        }


def get_email_analyzer() -> EmailAnalyzer:
    """FastAPI dependency returning an analyzer built from settings."""
    return EmailAnalyzer()
