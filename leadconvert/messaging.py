"""Outbound messaging gateway over the SMTP and Twilio WhatsApp integrations."""

import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from sqlmodel import select

from leadconvert import lifecycle
from leadconvert.agents import outreach
from leadconvert.agents.lead_scoring import LeadNotFound
from leadconvert.db import Interaction, Lead, get_session
from leadconvert.integrations import email as email_integration
from leadconvert.integrations import whatsapp

logger = logging.getLogger("messaging")

normalize_phone = whatsapp.normalize_phone


class MissingContactDetails(ValueError):
    """Raised when a lead lacks the address needed for a channel."""


def tracking_pixel_url(lead_id: int, token: str) -> str:
    backend_url = os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/")
    return f"{backend_url}/webhooks/email-tracker/{lead_id}/{token}"


def with_tracking_pixel(html_body: str, lead_id: int) -> Tuple[str, str]:
    token = uuid4().hex
    pixel = f'<img src="{tracking_pixel_url(lead_id, token)}" width="1" height="1" />'
    return f"{html_body}<br/><br/>{pixel}", token


async def send_email(
    to: str,
    subject: str,
    html_body: str,
    lead_id: Optional[int] = None,
    tracking_token: Optional[str] = None,
) -> Dict[str, Any]:
    result = await email_integration.send_email(to, subject, html_body)
    message_id = result.get("message_id")

    if lead_id is not None:
        details: Dict[str, Any] = {"messageId": message_id, "subject": subject}
        if tracking_token:
            details["trackingToken"] = tracking_token
        async with get_session() as session:
            session.add(
                Interaction(
                    lead_id=lead_id,
                    channel="email",
                    direction="outbound",
                    content=html_body,
                    sentiment="neutral",
                    intent_score=0,
                    details=details,
                )
            )
            await session.commit()

    logger.info("email_sent", extra={"messaging": {"lead_id": lead_id, "message_id": message_id}})
    return {"messageId": message_id}


async def send_whatsapp(phone: str, body: str, lead_id: Optional[int] = None) -> Dict[str, Any]:
    result = await whatsapp.send_message(normalize_phone(phone), body)

    if lead_id is not None:
        now = datetime.utcnow()
        async with get_session() as session:
            session.add(
                Interaction(
                    lead_id=lead_id,
                    channel="whatsapp",
                    direction="outbound",
                    content=body,
                    sentiment="neutral",
                    intent_score=0,
                    details={"messageId": result.get("external_id"), "status": result.get("delivery_status")},
                    timestamp=now,
                )
            )
            lead = await session.get(Lead, lead_id)
            if lead:
                lead.last_interaction = now
                lead.last_interaction_channel = "whatsapp"
                lead.updated_at = now
                session.add(lead)
            await session.commit()

    logger.info(
        "whatsapp_sent",
        extra={"messaging": {"lead_id": lead_id, "external_id": result.get("external_id")}},
    )
    return {"externalId": result.get("external_id"), "deliveryStatus": result.get("delivery_status")}


async def send_outreach(lead_id: int, channel: str) -> Dict[str, Any]:
    """Compose and send a personalized message, then mark the lead contacted."""
    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
        if not lead:
            raise LeadNotFound(f"Lead {lead_id} not found")
        recent = (
            await session.exec(
                select(Interaction)
                .where(Interaction.lead_id == lead_id)
                .order_by(Interaction.timestamp.desc())
                .limit(10)
            )
        ).all()

    message = outreach.compose(lead, channel, recent)
    if channel == "email":
        subject, body = outreach.split_subject(message)
        result = await send_email(lead.email, subject, body.replace("\n", "<br/>"), lead_id=lead_id)
    elif channel == "whatsapp":
        if not lead.phone:
            raise MissingContactDetails("Lead does not have a phone number")
        result = await send_whatsapp(lead.phone, message, lead_id=lead_id)
    else:
        raise ValueError(f"Unsupported channel: {channel}")

    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
        if lead and lifecycle.advance(lead, "contacted"):
            session.add(lead)
            await session.commit()

    return {"success": True, "message": f"Outreach sent successfully via {channel}", "result": result}
