"""Inbound provider callbacks and engagement tracking."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlmodel import select

from leadconvert import lifecycle
from leadconvert.agents.lead_scoring import LeadNotFound, score_lead
from leadconvert.db import Interaction, Lead, get_session
from leadconvert.integrations import whatsapp

logger = logging.getLogger("webhooks")

LINK_CLICK_POINTS = 10
PLACEHOLDER_NAME = "WhatsApp User"


def placeholder_email(phone: str) -> str:
    return f"whatsapp_{phone.replace('+', '')}@placeholder.com"


async def handle_whatsapp_message(
    sender: str,
    body: str,
    external_message_id: Optional[str] = None,
    status: Optional[str] = None,
) -> Dict[str, Any]:
    """Attach an inbound WhatsApp message to its lead, creating the lead on first contact.

    Every message triggers one scoring pass once the interaction is stored.
    """
    phone = whatsapp.normalize_phone(whatsapp.strip_channel_prefix(sender))
    now = datetime.utcnow()
    created = False

    async with get_session() as session:
        lead = (await session.exec(select(Lead).where(Lead.phone == phone))).first()
        if not lead:
            lead = Lead(
                name=PLACEHOLDER_NAME,
                email=placeholder_email(phone),
                phone=phone,
                source="whatsapp",
                initial_message=body,
                status="new",
            )
            session.add(lead)
            await session.flush()
            created = True

        interaction = Interaction(
            lead_id=lead.id,
            channel="whatsapp",
            direction="inbound",
            content=body or "",
            details={"messageId": external_message_id, "status": status},
            timestamp=now,
        )
        lead.last_interaction = now
        lead.last_interaction_channel = "whatsapp"
        lead.updated_at = now
        session.add(interaction)
        session.add(lead)
        await session.commit()
        await session.refresh(interaction)
        lead_id = lead.id

    logger.info(
        "whatsapp_webhook_received",
        extra={"webhook": {"lead_id": lead_id, "created": created, "message_id": external_message_id}},
    )
    result = await score_lead(lead_id)
    return {"lead_id": lead_id, "interaction": interaction, "created": created, "score": result.score}


async def handle_inbound_email(
    lead_id: int,
    content: str,
    sender: Optional[str] = None,
    subject: Optional[str] = None,
) -> Interaction:
    now = datetime.utcnow()
    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
        if not lead:
            raise LeadNotFound(f"Lead {lead_id} not found")
        interaction = Interaction(
            lead_id=lead_id,
            channel="email",
            direction="inbound",
            content=content or "",
            sentiment=None,
            intent_score=0,
            details={"from": sender, "subject": subject},
            timestamp=now,
        )
        lead.last_interaction = now
        lead.last_interaction_channel = "email"
        lead.updated_at = now
        session.add(interaction)
        session.add(lead)
        await session.commit()
        await session.refresh(interaction)

    logger.info("email_webhook_received", extra={"webhook": {"lead_id": lead_id, "from": sender}})
    await score_lead(lead_id)
    return interaction


async def _already_recorded(session, lead_id: int, event_id: Optional[str]) -> bool:
    if not event_id:
        return False
    engagements = (
        await session.exec(
            select(Interaction).where(
                Interaction.lead_id == lead_id,
                Interaction.type == "engagement",
            )
        )
    ).all()
    return any((item.details or {}).get("eventId") == event_id for item in engagements)


async def track_email_open(lead_id: int, event_id: Optional[str] = None) -> Optional[Interaction]:
    """Record an email open. Returns None when ``event_id`` was already seen."""
    now = datetime.utcnow()
    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
        if not lead:
            raise LeadNotFound(f"Lead {lead_id} not found")
        if await _already_recorded(session, lead_id, event_id):
            return None

        interaction = Interaction(
            lead_id=lead_id,
            channel="email",
            direction="inbound",
            content="Email opened",
            type="engagement",
            details={"eventId": event_id} if event_id else None,
            timestamp=now,
        )
        lead.last_engagement = now
        lead.updated_at = now
        session.add(interaction)
        session.add(lead)
        await session.commit()
        await session.refresh(interaction)

    logger.info("email_opened", extra={"webhook": {"lead_id": lead_id, "event_id": event_id}})
    return interaction


async def track_link_click(
    lead_id: int,
    url: Optional[str] = None,
    event_id: Optional[str] = None,
) -> Optional[Interaction]:
    """Record a link click and raise the lead score by ten points, capped at 100."""
    now = datetime.utcnow()
    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
        if not lead:
            raise LeadNotFound(f"Lead {lead_id} not found")
        if await _already_recorded(session, lead_id, event_id):
            return None

        details: Dict[str, Any] = {"url": url}
        if event_id:
            details["eventId"] = event_id
        interaction = Interaction(
            lead_id=lead_id,
            channel="web",
            direction="inbound",
            content=f"Clicked link: {url}",
            type="engagement",
            details=details,
            timestamp=now,
        )
        session.add(interaction)
        await session.execute(
            update(Lead)
            .where(Lead.id == lead_id)
            .values(
                lead_score=lifecycle.clamped_increment(LINK_CLICK_POINTS),
                last_engagement=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        await session.refresh(interaction)

    logger.info("link_clicked", extra={"webhook": {"lead_id": lead_id, "url": url}})
    return interaction
