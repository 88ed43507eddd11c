"""
AI Service (OpenAI)
Generates outreach copy for the approval queue.

Generation only ever happens on an explicit operator action
(CampaignService.generate_messages); the scheduler never calls this.
Every generator returns a usable fallback instead of raising, so a missing key or
an API outage still leaves the operator with editable content.
"""
import logging
import re
from typing import Optional, Dict, Any

from openai import AsyncOpenAI

from app.shared.core.config import settings
from app.shared.core.constants import (
    TIMEOUT_OPENAI,
    AI_DEFAULT_MAX_TOKENS,
    AI_DEFAULT_TEMPERATURE,
    CONNECTION_NOTE_MAX_CHARS,
)

logger = logging.getLogger("ai_service")

FOLLOW_UP_MAX_CHARS = 600
_SENTENCE = re.compile(r"[^.!?]+[.!?]+")


class AIService:
    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.model = settings.OPENAI_MODEL
        self.client = client

        if self.client is None and settings.OPENAI_API_KEY:
            try:
                self.client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=TIMEOUT_OPENAI)
                logger.info("AI Service initialized with OpenAI")
            except Exception as e:
                logger.error(f"Failed to initialize OpenAI: {e}")

        if self.client is None:
            logger.warning("⚠️ OPENAI_API_KEY not configured, AI generation will use fallbacks")

    def is_configured(self) -> bool:
        return self.client is not None

    async def generate(
        self,
        prompt: str,
        max_tokens: int = AI_DEFAULT_MAX_TOKENS,
        temperature: float = AI_DEFAULT_TEMPERATURE
    ) -> str:
        """Single chat completion. Raises if the client is missing or the response is empty."""
        if not self.client:
            raise ValueError("AI client not initialized. Check OPENAI_API_KEY in .env")

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature
        )
        if not response.choices or not response.choices[0].message.content:
            raise ValueError("Invalid response format from OpenAI")

        text = response.choices[0].message.content.strip()
        logger.debug(f"OpenAI call successful ({len(text)} chars)")
        return text

    # ============================================
    # OUTREACH COPY
    # ============================================

    async def generate_connection_request(
        self,
        lead: Dict[str, Any],
        campaign: Optional[Dict[str, Any]] = None
    ) -> str:
        """Connection note, at most 300 characters (LinkedIn limit)."""
        if not self.is_configured():
            return fallback_connection_message(lead)

        prompt = f"""You are writing a personalized LinkedIn connection request.

Lead:
- Name: {lead.get('full_name') or lead.get('first_name') or 'Unknown'}
- Title: {lead.get('title') or 'N/A'}
- Company: {lead.get('company') or 'N/A'}
{_campaign_context(campaign)}
Requirements:
- Under {CONNECTION_NOTE_MAX_CHARS} characters
- Friendly and specific to their role or company, no sales pitch
- Start with a greeting using their first name

Return ONLY the message text."""

        try:
            message = await self.generate(prompt, max_tokens=150)
        except Exception as e:
            logger.error(f"❌ AI connection request generation failed: {e}")
            return fallback_connection_message(lead)

        return fit_to_length(_with_greeting(message, lead), CONNECTION_NOTE_MAX_CHARS)

    async def generate_follow_up_message(
        self,
        lead: Dict[str, Any],
        campaign: Optional[Dict[str, Any]] = None
    ) -> str:
        if not self.is_configured():
            return fallback_follow_up_message(lead)

        prompt = f"""You are writing a personalized LinkedIn follow-up message to a new connection.

Lead:
- Name: {lead.get('full_name') or lead.get('first_name') or 'Unknown'}
- Title: {lead.get('title') or 'N/A'}
- Company: {lead.get('company') or 'N/A'}
{_campaign_context(campaign)}
Requirements:
- 3-5 sentences, conversational
- Offer something of value related to their role
- End with a light call-to-action

Return ONLY the message text."""

        try:
            message = await self.generate(prompt, max_tokens=AI_DEFAULT_MAX_TOKENS, temperature=0.85)
        except Exception as e:
            logger.error(f"❌ AI follow-up generation failed: {e}")
            return fallback_follow_up_message(lead)

        return fit_to_length(_with_greeting(message, lead), FOLLOW_UP_MAX_CHARS)

    async def generate_email_failover(self, lead: Dict[str, Any]) -> str:
        """Email body used when LinkedIn outreach falls back to email."""
        if not self.is_configured():
            return fallback_email_body(lead)

        prompt = f"""Generate a professional email for LinkedIn failover.

Lead Information:
- Name: {lead.get('full_name') or lead.get('first_name') or 'there'}
- Title: {lead.get('title') or 'N/A'}
- Company: {lead.get('company') or 'N/A'}

Context: We reached out on LinkedIn but haven't received a response. This is a respectful follow-up via email.

Requirements:
- Acknowledge the LinkedIn connection attempt
- Clear call-to-action
- 150-200 words

Generate ONLY the email body, no subject line."""

        try:
            return await self.generate(prompt, max_tokens=AI_DEFAULT_MAX_TOKENS, temperature=0.7)
        except Exception as e:
            logger.error(f"❌ AI email generation failed: {e}")
            return fallback_email_body(lead)


# ============================================
# FALLBACKS & FORMATTING
# ============================================

def _first_name(lead: Dict[str, Any]) -> str:
    return lead.get("first_name") or "there"


def fallback_connection_message(lead: Dict[str, Any]) -> str:
    return f"Hi {_first_name(lead)}, I'd love to connect and explore potential synergies between our work."


def fallback_follow_up_message(lead: Dict[str, Any]) -> str:
    return f"Hi {_first_name(lead)}, following up on my previous message. Would love to connect!"


def fallback_email_body(lead: Dict[str, Any]) -> str:
    return (
        f"Hi {_first_name(lead)},\n\n"
        "I tried reaching out on LinkedIn but wanted to follow up via email.\n\n"
        "Best regards"
    )


def _campaign_context(campaign: Optional[Dict[str, Any]]) -> str:
    if not campaign:
        return ""
    lines = ["Campaign:"]
    for label, key in (("Goal", "goal"), ("Description", "description"), ("Audience", "target_audience")):
        if campaign.get(key):
            lines.append(f"- {label}: {campaign[key]}")
    return "\n".join(lines) + "\n"


def _with_greeting(message: str, lead: Dict[str, Any]) -> str:
    message = (message or "").strip()
    if not message.lower().startswith(("hi ", "hello ")):
        message = f"Hi {_first_name(lead)}, {message}"
    return message


def fit_to_length(message: str, max_chars: int) -> str:
    """Trim to max_chars, cutting at a sentence boundary when possible."""
    if len(message) <= max_chars:
        return message

    truncated = ""
    for sentence in _SENTENCE.findall(message):
        if len(truncated + sentence) > max_chars - 3:
            break
        truncated += sentence

    truncated = truncated.strip() or message[:max_chars - 3]
    return truncated + "..."


# Singleton instance
ai_service = AIService()
