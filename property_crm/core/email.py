"""
Outbound email over SMTP.

send_email never raises: callers receive an EmailResult and decide whether a
failure matters (reminders are only marked sent on success).
"""
import logging
import smtplib
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import List, Optional, Tuple

from property_crm.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


# (filename, content, mime subtype) e.g. ("invoice.pdf", b"...", "pdf")
Attachment = Tuple[str, bytes, str]


@contextmanager
def _connection():
    if settings.SMTP_USE_SSL:
        server = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30)
    else:
        server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30)
        server.starttls()
    try:
        if settings.SMTP_USER:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
        yield server
    finally:
        try:
            server.quit()
        except smtplib.SMTPException as e:
            logger.warning("Error closing SMTP connection: %s", e)


def clean_header(value: str) -> str:
    """Header values are single-line; CR/LF would split or inject headers."""
    return " ".join((value or "").split())


def _build_message(
    to: str,
    subject: str,
    text_body: str,
    html_body: Optional[str],
    attachments: Optional[List[Attachment]],
    reply_to: Optional[str],
) -> MIMEMultipart:
    msg = MIMEMultipart("mixed")
    msg["From"] = settings.SMTP_FROM
    msg["To"] = clean_header(to)
    msg["Subject"] = clean_header(subject)
    msg["Message-ID"] = make_msgid(idstring=uuid.uuid4().hex[:12])
    if reply_to:
        msg["Reply-To"] = clean_header(reply_to)

    body = MIMEMultipart("alternative")
    body.attach(MIMEText(text_body or "", "plain"))
    if html_body:
        body.attach(MIMEText(html_body, "html"))
    msg.attach(body)

    for filename, content, subtype in attachments or []:
        part = MIMEApplication(content, _subtype=subtype)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)
    return msg


def send_email(
    to: str,
    subject: str,
    text_body: str,
    html_body: Optional[str] = None,
    attachments: Optional[List[Attachment]] = None,
    reply_to: Optional[str] = None,
) -> EmailResult:
    if not settings.SMTP_HOST:
        logger.warning("SMTP is not configured; email to %s not sent (%s)", to, subject)
        return EmailResult(success=False, error="SMTP is not configured")

    try:
        msg = _build_message(to, subject, text_body, html_body, attachments, reply_to)
        with _connection() as server:
            server.sendmail(settings.SMTP_FROM, [to], msg.as_string())
    except (smtplib.SMTPException, OSError, ValueError) as e:
        logger.exception("Failed to send email to %s", to)
        return EmailResult(success=False, error=str(e))

    logger.info("Email sent to %s: %s", to, subject)
    return EmailResult(success=True, message_id=msg["Message-ID"])
