"""
In-app notifications for landlords.

The notify_* helpers are called after the triggering change is committed; a
failure here is logged and rolled back so it never undoes that change.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from property_crm.core.invoice import format_currency
from property_crm.models.notification import Notification

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    *,
    user_id: int,
    title: str,
    message: str,
    notification_type: str = "system",
    link_url: Optional[str] = None,
) -> Optional[Notification]:
    try:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            notification_type=notification_type,
            link_url=link_url,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create %s notification for user %s", notification_type, user_id)
        return None


def notify_new_booking(db: Session, user_id: int, guest_name: str, property_name: str, booking_id: int):
    return create_notification(
        db,
        user_id=user_id,
        title="New booking",
        message=f"{guest_name} booked {property_name}",
        notification_type="booking",
        link_url=f"/bookings/{booking_id}",
    )


def notify_booking_confirmed(db: Session, user_id: int, guest_name: str, property_name: str, booking_id: int):
    return create_notification(
        db,
        user_id=user_id,
        title="Booking confirmed",
        message=f"Booking for {guest_name} at {property_name} is confirmed",
        notification_type="booking",
        link_url=f"/bookings/{booking_id}",
    )


def notify_payment_received(
    db: Session, user_id: int, payer_name: str, amount: Decimal, currency: str, payment_id: int
):
    return create_notification(
        db,
        user_id=user_id,
        title="Payment received",
        message=f"{format_currency(amount, currency)} received from {payer_name}",
        notification_type="payment",
        link_url=f"/payments/{payment_id}",
    )


def notify_maintenance_request(db: Session, user_id: int, title: str, property_name: str, request_id: int):
    return create_notification(
        db,
        user_id=user_id,
        title="New maintenance request",
        message=f"{title} at {property_name}",
        notification_type="maintenance",
        link_url=f"/maintenance/{request_id}",
    )


def notify_stale_maintenance(db: Session, user_id: int, title: str, days: int, request_id: int):
    return create_notification(
        db,
        user_id=user_id,
        title="Stale maintenance request",
        message=f"'{title}' has not been updated for {days} days",
        notification_type="maintenance",
        link_url=f"/maintenance/{request_id}",
    )
