import logging
import secrets
import time
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from property_crm.models.booking import Booking
from property_crm.models.payment import Payment

logger = logging.getLogger(__name__)

# Bookings in these states do not block the calendar
INACTIVE_BOOKING_STATUSES = ("cancelled", "no_show")


def generate_booking_reference(prefix: str = "BK") -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


def nights_between(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days


def ensure_no_overlap(
    db: Session,
    property_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[int] = None,
) -> None:
    """
    Two stays overlap when each starts before the other ends; a check-out day
    can be the next guest's check-in day.
    """
    q = db.query(Booking).filter(
        Booking.property_id == property_id,
        Booking.status.notin_(INACTIVE_BOOKING_STATUSES),
        Booking.check_in_date < check_out,
        Booking.check_out_date > check_in,
    )
    if exclude_booking_id is not None:
        q = q.filter(Booking.id != exclude_booking_id)
    clash = q.first()
    if clash:
        raise HTTPException(
            status_code=400,
            detail=f"Property is already booked for these dates (booking {clash.booking_reference})",
        )


def paid_total(db: Session, booking_id: int, exclude_payment_id: Optional[int] = None) -> Decimal:
    q = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.booking_id == booking_id,
        Payment.status == "paid",
    )
    if exclude_payment_id is not None:
        q = q.filter(Payment.id != exclude_payment_id)
    return Decimal(str(q.scalar() or 0))


def reconcile_booking(db: Session, booking: Booking) -> Booking:
    """
    Re-derive amount_paid / amount_due / payment_status from the booking's paid
    payments. Flushes but does not commit.
    """
    db.flush()
    total = Decimal(str(booking.total_amount or 0))
    paid = paid_total(db, booking.id)

    booking.amount_paid = paid
    booking.amount_due = total - paid
    if paid >= total:
        booking.payment_status = "paid"
    elif paid > 0:
        booking.payment_status = "partially_paid"
    else:
        booking.payment_status = "pending"
    return booking
