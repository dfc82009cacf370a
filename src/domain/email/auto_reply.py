"""Compose rate-card replies to business inquiries."""

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger
from openai import OpenAIError

from src.core.currency import format_amount
from src.core.observability import trace_operation
from src.domain.email.analyzer import EmailAnalyzer
from src.domain.email.models import EmailInquiry
from src.domain.rates.models import UserRates

RATES_PLACEHOLDER = "{{service_rates}}"
NO_RATES_TEXT = "Please contact me for current rates."

REPLY_SYSTEM_PROMPT = (
    "You are a professional assistant helping content creators respond to "
    "business inquiries. Maintain their rates and pricing exactly as provided."
)

REPLY_PROMPT = """
You are helping a content creator/influencer reply to a business inquiry.

Original Inquiry:
From: {from_name} ({from_email})
Subject: {subject}
Body: {body}
Summary: {summary}
Type: {inquiry_type}

Base Reply Template with Rates:
{base_reply}

Please enhance this reply to:
1. Address specific points mentioned in the inquiry
2. Maintain a professional but friendly tone
3. Keep all the rate information intact
4. Add relevant details based on the inquiry type
5. Make it personalized to the sender
6. If they mentioned specific platforms or deliverables, acknowledge them
7. Keep the response concise and to the point

Return only the enhanced reply body text, no explanations.
"""


def format_service_rates(
    rates: Iterable[Mapping[str, Any]], default_currency: str
) -> str:
    """Render a rate card as bullet lines, e.g. ``• Reel - ₱5,000 (1 revision)``."""
    lines = []
    for rate in rates:
        currency = rate.get("currency") or default_currency
        amount = format_amount(rate.get("rate") or 0, currency)
        line = f"• {rate.get('service', '')} - {amount}"
        if rate.get("notes"):
            line += f" ({rate['notes']})"
        lines.append(line)
    return "\n".join(lines) if lines else NO_RATES_TEXT


class ReplyComposer:
    def __init__(self, analyzer: EmailAnalyzer) -> None:
        self.analyzer = analyzer

    async def _enhance(self, inquiry: EmailInquiry, base_reply: str) -> str | None:
        client = self.analyzer.client
        if client is None:
            return None
        config = self.analyzer.config
        prompt = REPLY_PROMPT.format(
            from_name=inquiry.from_name or "",
            from_email=inquiry.from_email,
            subject=inquiry.subject,
            body=inquiry.body_text,
            summary=inquiry.ai_summary,
            inquiry_type=inquiry.inquiry_type,
            base_reply=base_reply,
        )
        try:
            with trace_operation("llm.enhance_reply", model=config.reply_model):
                response = await client.chat.completions.create(
                    model=config.reply_model,
                    messages=[
                        {"role": "system", "content": REPLY_SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=config.reply_temperature,
                    max_tokens=config.reply_max_tokens,
                )
        except OpenAIError as e:
            logger.error("Error enhancing reply with AI: {}", e)
            return None
        return response.choices[0].message.content or base_reply

    async def compose(self, inquiry: EmailInquiry, rates: UserRates) -> str:
        """Fill the reply template with the rate card and append the signature.

        When OpenAI is configured the filled template is rewritten for the
        specific inquiry; any failure keeps the filled template as is.
        """
        formatted = format_service_rates(
            rates.service_rates or [], rates.default_currency
        )
        body = rates.reply_template.replace(RATES_PLACEHOLDER, formatted, 1)

        enhanced = await self._enhance(inquiry, body)
        if enhanced:
            body = enhanced

        body += f"\n\n{rates.email_signature}"
        if rates.additional_notes:
            body += f"\n\nP.S. {rates.additional_notes}"
        return body
