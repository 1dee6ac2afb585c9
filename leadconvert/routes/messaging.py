from fastapi import APIRouter, HTTPException

from leadconvert import messaging
from leadconvert.agents.lead_scoring import LeadNotFound
from leadconvert.db import Lead, get_session
from leadconvert.schemas import EmailSendIn, OutreachIn, WhatsAppSendIn

router = APIRouter(prefix="/messaging", tags=["messaging"])


async def _load_lead(lead_id: int) -> Lead:
    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


@router.post("/whatsapp")
async def send_whatsapp(payload: WhatsAppSendIn):
    lead = await _load_lead(payload.lead_id)
    if not lead.phone:
        raise HTTPException(status_code=400, detail="Lead does not have a phone number")
    try:
        result = await messaging.send_whatsapp(lead.phone, payload.message, lead_id=lead.id)
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to send WhatsApp message: {exc}") from exc
    return {
        "message": "WhatsApp message sent successfully",
        "messageSid": result["externalId"],
        "status": result["deliveryStatus"],
    }


@router.post("/email")
async def send_email(payload: EmailSendIn):
    """Email a lead with an open-tracking pixel appended to the body."""
    lead = await _load_lead(payload.lead_id)
    html_body, token = messaging.with_tracking_pixel(payload.message, lead.id)
    try:
        result = await messaging.send_email(
            lead.email,
            payload.subject,
            html_body,
            lead_id=lead.id,
            tracking_token=token,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to send email: {exc}") from exc
    return {"message": "Email sent successfully", "messageId": result["messageId"]}


@router.post("/outreach")
async def send_outreach(payload: OutreachIn):
    try:
        return await messaging.send_outreach(payload.lead_id, payload.channel)
    except LeadNotFound as exc:
        raise HTTPException(status_code=404, detail="Lead not found") from exc
    except messaging.MissingContactDetails as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to send outreach: {exc}") from exc
