import os
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Any, Dict, Optional

import aiosmtplib

from leadconvert import monitoring

DEFAULT_TIMEOUT = float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))


def _smtp_config() -> Dict[str, Any]:
    host = os.getenv("SMTP_HOST")
    username = os.getenv("SMTP_USERNAME")
    password = os.getenv("SMTP_PASSWORD")
    if not host or not username or not password:
        raise RuntimeError("SMTP configuration missing")
    return {
        "hostname": host,
        "port": int(os.getenv("SMTP_PORT", "587")),
        "username": username,
        "password": password,
        "start_tls": os.getenv("SMTP_USE_TLS", "true").lower() == "true",
        "sender": os.getenv("SMTP_FROM_EMAIL") or username,
    }


def is_configured() -> bool:
    return all(os.getenv(name) for name in ("SMTP_HOST", "SMTP_USERNAME", "SMTP_PASSWORD"))


def build_message(sender: str, to: str, subject: str, html_body: str, message_id: Optional[str] = None) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = sender
    message["To"] = to
    message["Message-ID"] = message_id or make_msgid()
    message.attach(MIMEText(html_body, "html"))
    return message


async def send_email(to: str, subject: str, html_body: str) -> Dict[str, Any]:
    config = _smtp_config()
    message = build_message(config["sender"], to, subject, html_body)
    try:
        await aiosmtplib.send(
            message,
            hostname=config["hostname"],
            port=config["port"],
            username=config["username"],
            password=config["password"],
            start_tls=config["start_tls"],
            timeout=DEFAULT_TIMEOUT,
        )
    except aiosmtplib.SMTPException as exc:
        monitoring.capture_exception(exc)
        raise RuntimeError(f"SMTP send failed: {exc}") from exc
    return {"message_id": message["Message-ID"]}
