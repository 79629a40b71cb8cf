"""
Automated guest messaging: scheduling from booking events and delivery of
due messages.
"""
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from property_crm.core import template_engine
from property_crm.core.config import settings
from property_crm.core.email import send_email
from property_crm.core.invoice import format_date
from property_crm.models.booking import Booking
from property_crm.models.messaging import Automation, ScheduledMessage

logger = logging.getLogger(__name__)

CHECK_IN_TRIGGERS = ("check_in_reminder", "check_in_instructions")
CHECK_OUT_TRIGGERS = ("check_out_reminder", "check_out_instructions", "review_request", "booking_completed")
# Date-based triggers scheduled when a booking is created
BOOKING_DATE_TRIGGERS = CHECK_IN_TRIGGERS + ("check_out_reminder", "check_out_instructions", "review_request")


class DeliveryError(Exception):
    pass


def booking_context(booking: Booking) -> Dict[str, Any]:
    prop = booking.property
    return {
        "guest_name": booking.guest_name,
        "guest_email": booking.guest_email,
        "guest_phone": booking.guest_phone,
        "property_name": prop.name if prop else None,
        "property_address": prop.address if prop else None,
        "check_in_date": format_date(booking.check_in_date),
        "check_in_time": (prop.check_in_time if prop else None) or "15:00",
        "check_out_date": format_date(booking.check_out_date),
        "check_out_time": (prop.check_out_time if prop else None) or "11:00",
        "total_amount": str(booking.total_amount),
        "booking_reference": booking.booking_reference,
        "number_of_guests": str(booking.number_of_guests),
        "number_of_nights": str(booking.number_of_nights),
    }


SAMPLE_BOOKING_CONTEXT = {
    "guest_name": "Jane Smith",
    "guest_email": "jane@example.com",
    "guest_phone": "+27 82 000 0000",
    "property_name": "Sea View Cottage",
    "property_address": "12 Beach Road, Cape Town",
    "check_in_date": "01 March 2025",
    "check_in_time": "15:00",
    "check_out_date": "05 March 2025",
    "check_out_time": "11:00",
    "total_amount": "4800.00",
    "booking_reference": "BK-SAMPLE",
    "number_of_guests": "2",
    "number_of_nights": "4",
}


def calculate_scheduled_time(
    trigger: str,
    booking: Booking,
    offset_hours: Optional[int] = None,
    time_of_day: Optional[str] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Base date by trigger (now, check-in or check-out), shifted by the offset in
    hours, then pinned to the time of day when one is set.
    """
    now = now or datetime.now(timezone.utc)
    if trigger in CHECK_IN_TRIGGERS:
        base = datetime.combine(booking.check_in_date, time.min, tzinfo=timezone.utc)
    elif trigger in CHECK_OUT_TRIGGERS:
        base = datetime.combine(booking.check_out_date, time.min, tzinfo=timezone.utc)
    else:
        base = now

    if offset_hours:
        base = base + timedelta(hours=offset_hours)

    if time_of_day:
        hours, minutes = (int(part) for part in time_of_day.split(":"))
        base = base.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    return base


def _applies_to(automation: Automation, booking: Booking) -> bool:
    if automation.property_ids and booking.property_id not in automation.property_ids:
        return False
    if automation.apply_to_rental_type and automation.apply_to_rental_type != booking.booking_type:
        return False
    return True


def schedule_for_booking(
    db: Session, booking: Booking, trigger: str, now: Optional[datetime] = None
) -> List[ScheduledMessage]:
    """Create one pending message per matching active automation. Commits."""
    automations = (
        db.query(Automation)
        .filter(
            Automation.user_id == booking.user_id,
            Automation.trigger_type == trigger,
            Automation.is_active == True,  # noqa: E712
        )
        .all()
    )
    context = booking_context(booking)
    created = []
    for automation in automations:
        if not _applies_to(automation, booking):
            continue
        message = ScheduledMessage(
            user_id=booking.user_id,
            automation_id=automation.id,
            booking_id=booking.id,
            recipient_name=booking.guest_name,
            recipient_email=booking.guest_email,
            recipient_phone=booking.guest_phone,
            message_type=automation.message_type,
            subject=template_engine.render(automation.subject, context) if automation.subject else None,
            body=template_engine.render(automation.body_template, context),
            scheduled_for=calculate_scheduled_time(
                trigger, booking, automation.trigger_offset, automation.trigger_time_of_day, now
            ),
        )
        db.add(message)
        created.append(message)

    if created:
        db.commit()
        logger.info("Scheduled %d '%s' messages for booking %s", len(created), trigger, booking.id)
    return created


def schedule_booking_created(db: Session, booking: Booking) -> List[ScheduledMessage]:
    messages = schedule_for_booking(db, booking, "booking_created")
    for trigger in BOOKING_DATE_TRIGGERS:
        messages.extend(schedule_for_booking(db, booking, trigger))
    return messages


def cancel_pending_for_booking(db: Session, booking_id: int) -> int:
    count = (
        db.query(ScheduledMessage)
        .filter(ScheduledMessage.booking_id == booking_id, ScheduledMessage.status == "pending")
        .update({ScheduledMessage.status: "cancelled"}, synchronize_session=False)
    )
    db.commit()
    if count:
        logger.info("Cancelled %d pending messages for booking %s", count, booking_id)
    return count


def deliver(message_type: str, recipient: str, subject: Optional[str], body: str) -> None:
    """Send through the channel for `message_type`; raises DeliveryError on failure."""
    if message_type == "email":
        if not recipient:
            raise DeliveryError("No recipient email")
        result = send_email(
            to=recipient,
            subject=subject or "Message from Property Management",
            text_body=body,
            html_body=body,
        )
        if not result.success:
            raise DeliveryError(result.error or "Email delivery failed")
        return
    if message_type in ("sms", "whatsapp"):
        if settings.ENV == "dev":
            logger.info("%s would be sent to %s: %s", message_type.upper(), recipient, body)
            return
        raise DeliveryError(f"{message_type.upper()} provider not configured")
    if message_type == "in_app":
        return
    raise DeliveryError(f"Unsupported message type: {message_type}")


def _recipient_for(message: ScheduledMessage) -> str:
    if message.message_type == "email":
        return message.recipient_email or ""
    return message.recipient_phone or message.recipient_email or ""


def process_pending(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or datetime.now(timezone.utc)
    pending = (
        db.query(ScheduledMessage)
        .filter(ScheduledMessage.status == "pending", ScheduledMessage.scheduled_for <= now)
        .order_by(ScheduledMessage.scheduled_for)
        .all()
    )

    results = {"processed": 0, "succeeded": 0, "failed": 0}
    for message in pending:
        results["processed"] += 1
        message.status = "sending"
        db.commit()

        try:
            deliver(message.message_type, _recipient_for(message), message.subject, message.body)
        except DeliveryError as e:
            message.status = "failed"
            message.error_message = str(e)
            if message.automation is not None:
                message.automation.total_failed += 1
            db.commit()
            results["failed"] += 1
            logger.warning("Scheduled message %s failed: %s", message.id, e)
            continue

        message.status = "sent"
        message.sent_at = datetime.now(timezone.utc)
        message.error_message = None
        if message.automation is not None:
            message.automation.total_sent += 1
        db.commit()
        results["succeeded"] += 1

    logger.info("Processed %(processed)d scheduled messages (%(succeeded)d sent, %(failed)d failed)", results)
    return results
