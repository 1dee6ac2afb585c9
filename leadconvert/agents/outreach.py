"""Personalized outreach message generation."""

import json
import os
from functools import lru_cache
from typing import Iterable, Optional, Tuple

from openai import OpenAI

from leadconvert import monitoring
from leadconvert.db import Interaction, Lead

SUBJECT_MARKER = "---SUBJECT---"
DEFAULT_SUBJECT = "Following up on your interest"


def _fallback(name: str, channel: str) -> str:
    if channel == "email":
        return (
            f"{SUBJECT_MARKER}{DEFAULT_SUBJECT}\n\n"
            f"Hi {name},\n\n"
            "Thank you for your interest in our services. We noticed you reached out to us "
            "recently and wanted to follow up to see if you have any questions or if there's "
            "anything we can help you with.\n\n"
            "Looking forward to hearing from you.\n\n"
            "Best regards,\nThe Team"
        )
    if channel == "whatsapp":
        return (
            f"Hi {name}, thank you for your interest in our services. Is there anything "
            "specific you'd like to know more about? We're here to help!"
        )
    return f"Hello {name}, thank you for reaching out. How can we assist you today?"


@lru_cache(maxsize=1)
def _get_client():
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None
    try:
        return OpenAI(api_key=api_key)
    except Exception as exc:
        monitoring.capture_exception(exc)
        return None


def _prompt_payload(lead: Lead, interactions: Iterable[Interaction], channel: str) -> str:
    return json.dumps(
        {
            "leadInfo": {
                "name": lead.name,
                "source": lead.source,
                "initialMessage": lead.initial_message,
                "leadScore": lead.lead_score,
                "status": lead.status,
                "tags": lead.tags or [],
            },
            "interactions": [
                {
                    "channel": item.channel,
                    "direction": item.direction,
                    "content": item.content,
                    "timestamp": item.timestamp.isoformat(),
                }
                for item in interactions
            ],
            "context": {"channel": channel, "purpose": "lead_nurturing"},
        }
    )


def compose(lead: Lead, channel: str, interactions: Optional[Iterable[Interaction]] = None) -> str:
    """Draft a personalized message for ``lead`` on ``channel``.

    Email drafts start with ``---SUBJECT---<subject>`` on the first line. Without
    an OpenAI key, or when the call fails, a fixed template is returned.
    """
    client = _get_client()
    if not client:
        return _fallback(lead.name, channel)

    instructions = (
        f"You are a personalized marketing assistant. Generate a personalized {channel} message "
        "for a lead with the following information. The message should be friendly, professional, "
        "and persuasive."
    )
    if channel == "email":
        instructions += f' Include a subject line separated by "{SUBJECT_MARKER}" at the beginning.'

    try:
        response = client.responses.create(
            model="gpt-4o-mini",
            instructions=instructions,
            input=_prompt_payload(lead, interactions or [], channel),
            max_output_tokens=300,
        )
        text = response.output_text.strip()
        if text:
            return text
    except Exception as exc:
        monitoring.capture_exception(exc)

    return _fallback(lead.name, channel)


def split_subject(message: str) -> Tuple[str, str]:
    """Return ``(subject, body)`` from a composed email draft."""
    if SUBJECT_MARKER not in message:
        return DEFAULT_SUBJECT, message.strip()
    remainder = message.split(SUBJECT_MARKER, 1)[1]
    subject, _, body = remainder.partition("\n")
    return subject.strip() or DEFAULT_SUBJECT, body.strip()
