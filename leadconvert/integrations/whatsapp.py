import os
import re
from typing import Any, Dict, Mapping, Optional

import httpx
from twilio.request_validator import RequestValidator

from leadconvert import monitoring


TWILIO_API_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"
DEFAULT_TIMEOUT = float(os.getenv("TWILIO_TIMEOUT_SECONDS", "10"))
CHANNEL_PREFIX = "whatsapp:"
_WHITESPACE = re.compile(r"\s+")


def _credentials() -> Dict[str, str]:
    account_sid = os.getenv("TWILIO_ACCOUNT_SID")
    auth_token = os.getenv("TWILIO_AUTH_TOKEN")
    sender = os.getenv("TWILIO_PHONE_NUMBER")
    if not account_sid or not auth_token or not sender:
        raise RuntimeError("Twilio WhatsApp credentials not configured")
    return {"account_sid": account_sid, "auth_token": auth_token, "sender": sender}


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)


def is_configured() -> bool:
    return all(os.getenv(name) for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"))


def normalize_phone(phone: str) -> str:
    cleaned = _WHITESPACE.sub("", phone or "")
    if not cleaned.startswith("+"):
        cleaned = f"+{cleaned}"
    return cleaned


def strip_channel_prefix(address: str) -> str:
    address = (address or "").strip()
    if address.lower().startswith(CHANNEL_PREFIX):
        return address[len(CHANNEL_PREFIX):]
    return address


def verify_signature(signature: str, url: str, params: Mapping[str, Any], auth_token: Optional[str] = None) -> bool:
    token = auth_token or os.getenv("TWILIO_AUTH_TOKEN")
    if not token or not signature:
        return False
    return RequestValidator(token).validate(url, dict(params), signature)


async def send_message(phone: str, body: str) -> Dict[str, Any]:
    creds = _credentials()
    payload = {
        "From": f"{CHANNEL_PREFIX}{normalize_phone(creds['sender'])}",
        "To": f"{CHANNEL_PREFIX}{normalize_phone(phone)}",
        "Body": body,
    }
    url = TWILIO_API_URL.format(account_sid=creds["account_sid"])

    try:
        async with _client() as client:
            response = await client.post(url, data=payload, auth=(creds["account_sid"], creds["auth_token"]))
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        monitoring.capture_exception(exc)
        raise RuntimeError(f"Twilio request failed: {exc}") from exc

    return {"external_id": data.get("sid"), "delivery_status": data.get("status")}
