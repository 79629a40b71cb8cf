import logging

from fastapi import APIRouter, HTTPException

from property_crm.core.config import settings
from property_crm.core.email import clean_header, send_email
from property_crm.schemas.user import ContactIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contact", tags=["contact"])


@router.post("")
def submit_contact_form(payload: ContactIn):
    """Public endpoint: forwards the message to the support inbox with reply-to set to the sender."""
    subject = clean_header(f"Contact form: {payload.subject or 'New message'} ({payload.name})")
    body = f"From: {payload.name} <{payload.email}>\n\n{payload.message}"

    result = send_email(settings.SUPPORT_EMAIL, subject, body, reply_to=payload.email)
    if not result.success:
        logger.error("Contact form email from %s failed: %s", payload.email, result.error)
        raise HTTPException(status_code=502, detail="Could not send your message, please try again later")
    return {"success": True, "message": "Thanks, we will be in touch shortly"}
