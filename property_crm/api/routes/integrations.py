import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.api.routes.properties import get_owned_property
from property_crm.core.audit import log_audit
from property_crm.core.auth import get_landlord
from property_crm.core.ical import CalendarFetchError, fetch_calendar, parse_ical
from property_crm.models.booking import Booking
from property_crm.models.user import User
from property_crm.schemas.booking import CalendarImportIn, CalendarImportOut
from property_crm.services.bookings import generate_booking_reference, nights_between

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])


@router.post("/calendar/import", response_model=CalendarImportOut)
def import_calendar(
    payload: CalendarImportIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    """
    Import an external iCal feed (Airbnb, Booking.com, ...) as confirmed
    bookings. Events already imported (same UID) are skipped, so the same
    feed can be re-imported safely.
    """
    prop = get_owned_property(db, current_user.id, payload.property_id)

    try:
        events = parse_ical(fetch_calendar(payload.calendar_url))
    except CalendarFetchError as e:
        raise HTTPException(status_code=400, detail=f"Could not fetch calendar: {e}")

    imported = skipped = 0
    for event in events:
        exists = (
            db.query(Booking.id)
            .filter(Booking.property_id == prop.id, Booking.external_id == event.uid)
            .first()
        )
        if exists or event.end <= event.start:
            skipped += 1
            continue

        db.add(
            Booking(
                user_id=current_user.id,
                property_id=prop.id,
                booking_reference=generate_booking_reference("IMP"),
                booking_type=prop.rental_type,
                guest_name=event.summary or "Imported guest",
                check_in_date=event.start,
                check_out_date=event.end,
                number_of_nights=nights_between(event.start, event.end),
                status="confirmed",
                payment_status="paid",
                source=event.source,
                external_id=event.uid,
                notes=event.description or None,
            )
        )
        imported += 1

    urls = list(prop.calendar_urls or [])
    if payload.calendar_url not in urls:
        urls.append(payload.calendar_url)
        prop.calendar_urls = urls
    db.commit()
    logger.info("Calendar import for property %s: %d imported, %d skipped", prop.id, imported, skipped)

    log_audit(
        db,
        actor=current_user,
        action="calendar_imported",
        entity_type="property",
        entity_id=str(prop.id),
        property_id=prop.id,
        description=f"Imported {imported} bookings from calendar ({skipped} skipped)",
    )
    return CalendarImportOut(
        message=f"Imported {imported} bookings",
        imported=imported,
        skipped=skipped,
        total=len(events),
    )
