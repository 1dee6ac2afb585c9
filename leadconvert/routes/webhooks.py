import base64
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from leadconvert import monitoring, webhooks
from leadconvert.agents.lead_scoring import LeadNotFound
from leadconvert.integrations import whatsapp
from leadconvert.schemas import EmailWebhookIn

logger = logging.getLogger("webhooks")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

TRACKING_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")
EMPTY_TWIML = "<Response></Response>"


@router.post("/whatsapp")
async def whatsapp_webhook(request: Request):
    """Twilio inbound WhatsApp callback (form encoded)."""
    form = await request.form()
    params = {key: value for key, value in form.items()}

    signature = request.headers.get("X-Twilio-Signature")
    if signature:
        valid = whatsapp.verify_signature(signature, str(request.url), params)
        logger.info("whatsapp_signature_checked", extra={"webhook": {"valid": valid}})
        if not valid and monitoring.is_production():
            raise HTTPException(status_code=403, detail="Invalid request signature")

    sender = params.get("From")
    if not sender:
        raise HTTPException(status_code=400, detail="Missing sender")

    try:
        await webhooks.handle_whatsapp_message(
            sender,
            params.get("Body", ""),
            external_message_id=params.get("MessageSid") or params.get("SmsSid"),
            status=params.get("SmsStatus"),
        )
    except Exception as exc:
        monitoring.capture_exception(exc)
        raise HTTPException(status_code=500, detail="Error processing WhatsApp message") from exc

    return Response(content=EMPTY_TWIML, media_type="text/xml")


@router.post("/email")
async def email_webhook(payload: EmailWebhookIn):
    try:
        interaction = await webhooks.handle_inbound_email(
            payload.lead_id,
            payload.body or payload.text or "",
            sender=payload.sender,
            subject=payload.subject,
        )
    except LeadNotFound as exc:
        raise HTTPException(status_code=404, detail="Lead not found") from exc
    return {"message": "Email processed successfully", "id": interaction.id}


@router.get("/email-tracker/{lead_id}/{message_id}")
async def email_tracker(lead_id: str, message_id: str):
    try:
        await webhooks.track_email_open(int(lead_id), event_id=message_id)
    except Exception as exc:
        logger.warning(
            "email_tracker_failed",
            extra={"webhook": {"lead_id": lead_id, "message_id": message_id, "error": str(exc)}},
        )
    return Response(content=TRACKING_PIXEL, media_type="image/gif")
