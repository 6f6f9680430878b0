"""SMTP delivery. Blocking smtplib runs in a worker thread."""

import asyncio
import smtplib
from email.message import EmailMessage

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.services.receipts import ReceiptArtifact

log = get_logger(__name__)


def build_message(to: str, subject: str, body: str, attachments: list[ReceiptArtifact] | None = None) -> EmailMessage:
    settings = get_settings()
    msg = EmailMessage()
    msg["Subject"] = subject
    sender = settings.smtp_from_email or settings.smtp_username
    if sender:
        msg["From"] = sender
    msg["To"] = to
    msg.set_content(body)
    for a in attachments or []:
        maintype, _, subtype = a.content_type.partition("/")
        msg.add_attachment(a.content, maintype=maintype, subtype=subtype or "octet-stream", filename=a.filename)
    return msg


def _send(msg: EmailMessage) -> None:
    settings = get_settings()
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
        if settings.smtp_use_tls:
            server.starttls()
        if settings.smtp_username:
            server.login(settings.smtp_username, settings.smtp_password)
        server.send_message(msg)


async def send_email(to: str, subject: str, body: str, attachments: list[ReceiptArtifact] | None = None) -> None:
    if not to:
        raise ValidationError("Missing recipient")
    msg = build_message(to, subject, body, attachments)
    await asyncio.to_thread(_send, msg)
    log.info("email_sent", to=to, subject=subject, attachments=len(attachments or []))
