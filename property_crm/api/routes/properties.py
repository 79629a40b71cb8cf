from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import func, case
from typing import List, Optional

from property_crm.api.deps import get_db
from property_crm.core.audit import log_audit
from property_crm.core.auth import get_landlord
from property_crm.models.booking import Booking
from property_crm.models.property import Property
from property_crm.models.tenant import Lease
from property_crm.models.user import User
from property_crm.schemas.property import (
    PropertyCreate,
    PropertyUpdate,
    PropertyOut,
    PropertyStatsOut,
)
from property_crm.services.bookings import INACTIVE_BOOKING_STATUSES

router = APIRouter(prefix="/properties", tags=["properties"])


def get_owned_property(db: Session, user_id: int, property_id: int) -> Property:
    prop = db.query(Property).filter(Property.id == property_id, Property.user_id == user_id).first()
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


def apply_property_filters(
    q, rental_type: Optional[str], is_active: Optional[bool], search: Optional[str]
):
    if rental_type:
        q = q.filter(Property.rental_type == rental_type)

    if is_active is not None:
        q = q.filter(Property.is_active == is_active)

    # basic search: name/address/city
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            Property.name.ilike(like)
            | Property.address.ilike(like)
            | Property.city.ilike(like)
        )

    return q


def _with_counts(db: Session, props: List[Property]) -> List[Property]:
    """
    Attach bookings_count / active_leases_count. Bookings and leases are
    aggregated in separate queries so one-to-many joins don't inflate counts.
    """
    ids = [p.id for p in props]
    if not ids:
        return props

    bookings = dict(
        db.query(Booking.property_id, func.count(Booking.id))
        .filter(Booking.property_id.in_(ids), Booking.status.notin_(INACTIVE_BOOKING_STATUSES))
        .group_by(Booking.property_id)
        .all()
    )
    leases = dict(
        db.query(Lease.property_id, func.count(Lease.id))
        .filter(Lease.property_id.in_(ids), Lease.is_active == True)  # noqa: E712
        .group_by(Lease.property_id)
        .all()
    )
    for prop in props:
        prop.bookings_count = int(bookings.get(prop.id, 0))
        prop.active_leases_count = int(leases.get(prop.id, 0))
    return props


@router.get("", response_model=List[PropertyOut])
def list_properties(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    rental_type: Optional[str] = Query(None, description="short_term|long_term"),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="search by name/address/city"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = db.query(Property).filter(Property.user_id == current_user.id)
    q = apply_property_filters(q, rental_type, is_active, search)
    props = q.order_by(Property.id.desc()).offset(offset).limit(limit).all()
    return _with_counts(db, props)


@router.get("/stats", response_model=PropertyStatsOut)
def properties_stats(db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    """
    For the top cards:
    - Total / active properties
    - Short-term vs long-term split
    - Long-term properties with an active lease
    """
    row = (
        db.query(
            func.count(Property.id),
            func.coalesce(func.sum(case((Property.is_active == True, 1), else_=0)), 0),  # noqa: E712
            func.coalesce(func.sum(case((Property.rental_type == "short_term", 1), else_=0)), 0),
            func.coalesce(func.sum(case((Property.rental_type == "long_term", 1), else_=0)), 0),
        )
        .filter(Property.user_id == current_user.id)
        .one()
    )

    occupied_long_term = (
        db.query(func.count(func.distinct(Lease.property_id)))
        .join(Property, Property.id == Lease.property_id)
        .filter(
            Property.user_id == current_user.id,
            Property.rental_type == "long_term",
            Lease.is_active == True,  # noqa: E712
        )
        .scalar()
        or 0
    )

    return {
        "total_properties": int(row[0] or 0),
        "active_properties": int(row[1] or 0),
        "short_term": int(row[2] or 0),
        "long_term": int(row[3] or 0),
        "occupied_long_term": int(occupied_long_term),
    }


@router.get("/{property_id}", response_model=PropertyOut)
def get_property(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    prop = get_owned_property(db, current_user.id, property_id)
    return _with_counts(db, [prop])[0]


@router.post("", response_model=PropertyOut, status_code=201)
def create_property(
    payload: PropertyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    prop = Property(user_id=current_user.id, **payload.model_dump())
    db.add(prop)
    db.commit()
    db.refresh(prop)

    log_audit(
        db,
        actor=current_user,
        action="created",
        entity_type="property",
        entity_id=str(prop.id),
        property_id=prop.id,
        description=f"Property '{prop.name}' created",
    )
    return prop


@router.patch("/{property_id}", response_model=PropertyOut)
def update_property(
    property_id: int,
    payload: PropertyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    prop = get_owned_property(db, current_user.id, property_id)

    data = payload.model_dump(exclude_unset=True)
    for k, v in data.items():
        setattr(prop, k, v)

    db.commit()
    db.refresh(prop)
    return _with_counts(db, [prop])[0]


@router.delete("/{property_id}", status_code=204)
def delete_property(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    """
    Delete a property with its bookings and leases. Payments, expenses and
    documents keep their rows with property_id cleared.
    """
    prop = get_owned_property(db, current_user.id, property_id)
    name = prop.name

    db.delete(prop)
    db.commit()

    log_audit(
        db,
        actor=current_user,
        action="deleted",
        entity_type="property",
        entity_id=str(property_id),
        description=f"Property '{name}' deleted",
    )
    return None


@router.delete("/{property_id}/calendar-urls", response_model=PropertyOut)
def remove_calendar_url(
    property_id: int,
    url: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    prop = get_owned_property(db, current_user.id, property_id)
    urls = list(prop.calendar_urls or [])
    if url not in urls:
        raise HTTPException(status_code=404, detail="Calendar URL not found")
    urls.remove(url)
    prop.calendar_urls = urls
    db.commit()
    db.refresh(prop)
    return _with_counts(db, [prop])[0]
