from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, Literal
from datetime import date, datetime
from decimal import Decimal

from property_crm.schemas.common import not_null

BookingStatus = Literal["pending", "confirmed", "checked_in", "checked_out", "cancelled", "no_show"]
BookingSource = Literal["direct", "airbnb", "booking_com", "vrbo", "other"]
BookingType = Literal["short_term", "long_term"]


class BookingCreate(BaseModel):
    property_id: int
    booking_type: BookingType = "short_term"
    guest_name: str = Field(min_length=1)
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = None
    number_of_guests: int = Field(default=1, ge=1)
    check_in_date: date
    check_out_date: date
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)
    status: BookingStatus = "pending"
    source: BookingSource = "direct"
    notes: Optional[str] = None
    special_requests: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self) -> "BookingCreate":
        if self.check_out_date <= self.check_in_date:
            raise ValueError("check_out_date must be after check_in_date")
        return self


class BookingUpdate(BaseModel):
    # PATCH: date ordering is checked against the stored booking in the route
    guest_name: Optional[str] = None
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = None
    number_of_guests: Optional[int] = Field(default=None, ge=1)
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    status: Optional[BookingStatus] = None
    source: Optional[BookingSource] = None
    notes: Optional[str] = None
    special_requests: Optional[str] = None

    @field_validator(
        "guest_name", "number_of_guests", "check_in_date", "check_out_date", "total_amount", "status", "source"
    )
    @classmethod
    def required_columns(cls, v):
        return not_null(v)


class BookingOut(BaseModel):
    id: int
    property_id: int
    property_name: Optional[str] = None
    booking_reference: str
    booking_type: str
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    number_of_guests: int
    check_in_date: date
    check_out_date: date
    number_of_nights: int
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    status: str
    payment_status: str
    source: str
    external_id: Optional[str] = None
    notes: Optional[str] = None
    special_requests: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CalendarImportIn(BaseModel):
    property_id: int
    calendar_url: str = Field(min_length=1)


class CalendarImportOut(BaseModel):
    message: str
    imported: int
    skipped: int
    total: int
