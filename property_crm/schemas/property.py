from pydantic import BaseModel, field_validator
from typing import Optional, List, Literal
from datetime import datetime
from decimal import Decimal

from property_crm.schemas.common import not_null

RentalType = Literal["short_term", "long_term"]


def _check_time(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    parts = v.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError("time must be HH:MM")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError("time must be HH:MM")
    return f"{hours:02d}:{minutes:02d}"


class PropertyBase(BaseModel):
    name: str
    address: str
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    property_type: str = "apartment"  # apartment|house|room|cottage
    rental_type: RentalType = "long_term"
    bedrooms: int = 1
    max_guests: Optional[int] = None
    nightly_rate: Optional[Decimal] = None
    monthly_rent: Optional[Decimal] = None
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    sync_calendar: bool = False
    is_active: bool = True

    @field_validator("check_in_time", "check_out_time")
    @classmethod
    def valid_time(cls, v):
        return _check_time(v)

    @field_validator("bedrooms")
    @classmethod
    def bedrooms_non_negative(cls, v):
        if v < 0:
            raise ValueError("bedrooms cannot be negative")
        return v


class PropertyCreate(PropertyBase):
    pass


class PropertyUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    property_type: Optional[str] = None
    rental_type: Optional[RentalType] = None
    bedrooms: Optional[int] = None
    max_guests: Optional[int] = None
    nightly_rate: Optional[Decimal] = None
    monthly_rent: Optional[Decimal] = None
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    sync_calendar: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("name", "address", "property_type", "rental_type", "bedrooms", "sync_calendar", "is_active")
    @classmethod
    def required_columns(cls, v):
        return not_null(v)

    @field_validator("check_in_time", "check_out_time")
    @classmethod
    def valid_time(cls, v):
        return _check_time(v)


class PropertyOut(PropertyBase):
    id: int
    calendar_urls: List[str] = []
    bookings_count: int = 0  # non-cancelled bookings
    active_leases_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PropertyStatsOut(BaseModel):
    total_properties: int
    active_properties: int
    short_term: int
    long_term: int
    occupied_long_term: int
