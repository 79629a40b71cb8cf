import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.api.routes.properties import get_owned_property
from property_crm.core.audit import log_audit
from property_crm.core.auth import get_landlord
from property_crm.models.booking import Booking
from property_crm.models.user import User
from property_crm.schemas.booking import BookingCreate, BookingOut, BookingUpdate
from property_crm.services import messaging
from property_crm.services.bookings import (
    INACTIVE_BOOKING_STATUSES,
    ensure_no_overlap,
    generate_booking_reference,
    nights_between,
    reconcile_booking,
)
from property_crm.services.notifications import notify_booking_confirmed, notify_new_booking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_owned_booking(db: Session, user_id: int, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id, Booking.user_id == user_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def apply_booking_filters(
    q,
    property_id: Optional[int],
    status: Optional[str],
    source: Optional[str],
    check_in_from: Optional[date],
    check_in_to: Optional[date],
    search: Optional[str],
):
    if property_id is not None:
        q = q.filter(Booking.property_id == property_id)
    if status:
        q = q.filter(Booking.status == status)
    if source:
        q = q.filter(Booking.source == source)
    if check_in_from:
        q = q.filter(Booking.check_in_date >= check_in_from)
    if check_in_to:
        q = q.filter(Booking.check_in_date <= check_in_to)

    # guest search: name/email/reference
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            Booking.guest_name.ilike(like)
            | Booking.guest_email.ilike(like)
            | Booking.booking_reference.ilike(like)
        )
    return q


def on_status_change(db: Session, owner: User, booking: Booking, previous: Optional[str]) -> None:
    """Schedule or cancel automated messages for a booking that changed status."""
    if booking.status == previous:
        return
    if booking.status == "confirmed":
        messaging.schedule_for_booking(db, booking, "booking_confirmed")
        notify_booking_confirmed(db, owner.id, booking.guest_name, booking.property_name, booking.id)
    elif booking.status == "checked_out":
        messaging.schedule_for_booking(db, booking, "booking_completed")
    elif booking.status in INACTIVE_BOOKING_STATUSES:
        messaging.cancel_pending_for_booking(db, booking.id)


@router.get("", response_model=List[BookingOut])
def list_bookings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    property_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None, description="pending|confirmed|checked_in|checked_out|cancelled|no_show"),
    source: Optional[str] = Query(None, description="direct|airbnb|booking_com|vrbo|other"),
    check_in_from: Optional[date] = Query(None),
    check_in_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="search by guest name/email/reference"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = db.query(Booking).filter(Booking.user_id == current_user.id)
    q = apply_booking_filters(q, property_id, status, source, check_in_from, check_in_to, search)
    return q.order_by(Booking.check_in_date.desc(), Booking.id.desc()).offset(offset).limit(limit).all()


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    return get_owned_booking(db, current_user.id, booking_id)


@router.post("", response_model=BookingOut, status_code=201)
def create_booking(
    payload: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    prop = get_owned_property(db, current_user.id, payload.property_id)
    if payload.status not in INACTIVE_BOOKING_STATUSES:
        ensure_no_overlap(db, prop.id, payload.check_in_date, payload.check_out_date)

    booking = Booking(
        user_id=current_user.id,
        booking_reference=generate_booking_reference(),
        number_of_nights=nights_between(payload.check_in_date, payload.check_out_date),
        amount_paid=Decimal("0"),
        amount_due=payload.total_amount,
        payment_status="paid" if payload.total_amount == 0 else "pending",
        **payload.model_dump(),
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s created for property %s", booking.booking_reference, prop.id)

    log_audit(
        db,
        actor=current_user,
        action="created",
        entity_type="booking",
        entity_id=str(booking.id),
        status=booking.status,
        due_at=booking.check_in_date,
        property_id=prop.id,
        description=f"Booking {booking.booking_reference} for {booking.guest_name}",
    )
    notify_new_booking(db, current_user.id, booking.guest_name, prop.name, booking.id)

    messaging.schedule_booking_created(db, booking)
    if booking.status == "confirmed":
        messaging.schedule_for_booking(db, booking, "booking_confirmed")

    db.refresh(booking)
    return booking


@router.patch("/{booking_id}", response_model=BookingOut)
def update_booking(
    booking_id: int,
    payload: BookingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    booking = get_owned_booking(db, current_user.id, booking_id)
    previous_status = booking.status
    data = payload.model_dump(exclude_unset=True)

    check_in = data.get("check_in_date") or booking.check_in_date
    check_out = data.get("check_out_date") or booking.check_out_date
    if check_out <= check_in:
        raise HTTPException(status_code=400, detail="check_out_date must be after check_in_date")

    new_status = data.get("status") or booking.status
    dates_changed = check_in != booking.check_in_date or check_out != booking.check_out_date
    reactivated = previous_status in INACTIVE_BOOKING_STATUSES and new_status not in INACTIVE_BOOKING_STATUSES
    if new_status not in INACTIVE_BOOKING_STATUSES and (dates_changed or reactivated):
        ensure_no_overlap(db, booking.property_id, check_in, check_out, exclude_booking_id=booking.id)

    for k, v in data.items():
        setattr(booking, k, v)
    booking.number_of_nights = nights_between(check_in, check_out)
    reconcile_booking(db, booking)

    db.commit()
    db.refresh(booking)

    log_audit(
        db,
        actor=current_user,
        action="updated",
        entity_type="booking",
        entity_id=str(booking.id),
        status=booking.status,
        due_at=booking.check_in_date,
        property_id=booking.property_id,
        description=f"Booking {booking.booking_reference} updated: {', '.join(sorted(data)) or 'no changes'}",
    )
    on_status_change(db, current_user, booking, previous_status)

    db.refresh(booking)
    return booking


@router.delete("/{booking_id}", status_code=204)
def delete_booking(booking_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    """Scheduled messages go with the booking; its payments are kept, unlinked."""
    booking = get_owned_booking(db, current_user.id, booking_id)
    reference, property_id = booking.booking_reference, booking.property_id

    db.delete(booking)
    db.commit()

    log_audit(
        db,
        actor=current_user,
        action="deleted",
        entity_type="booking",
        entity_id=str(booking_id),
        property_id=property_id,
        description=f"Booking {reference} deleted",
    )
    return None
