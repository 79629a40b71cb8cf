from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Literal
from datetime import date, datetime
from decimal import Decimal

from property_crm.schemas.common import not_null

TenantStatus = Literal["active", "inactive", "former"]


class TenantCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    id_number: Optional[str] = None
    status: TenantStatus = "active"
    monthly_rent: Optional[Decimal] = Field(default=None, ge=0)
    auto_send_reminder: bool = True
    reminder_days_before: int = Field(default=3, ge=0, le=30)

    # Optional lease created together with the tenant
    property_id: Optional[int] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    deposit_paid: Decimal = Field(default=Decimal("0"), ge=0)

    @model_validator(mode="after")
    def validate_lease_dates(self) -> "TenantCreate":
        if self.lease_start_date and self.lease_end_date and self.lease_end_date <= self.lease_start_date:
            raise ValueError("lease_end_date must be after lease_start_date")
        return self


class TenantUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    id_number: Optional[str] = None
    status: Optional[TenantStatus] = None
    monthly_rent: Optional[Decimal] = Field(default=None, ge=0)
    next_payment_due: Optional[date] = None
    auto_send_reminder: Optional[bool] = None
    reminder_days_before: Optional[int] = Field(default=None, ge=0, le=30)

    @field_validator("first_name", "last_name", "email", "status", "auto_send_reminder")
    @classmethod
    def required_columns(cls, v):
        return not_null(v)


class LeaseOut(BaseModel):
    id: int
    tenant_id: int
    property_id: int
    property_name: Optional[str] = None
    tenant_name: Optional[str] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    monthly_rent: Optional[Decimal] = None
    deposit_paid: Decimal
    is_active: bool

    class Config:
        from_attributes = True


class TenantOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: Optional[str] = None
    id_number: Optional[str] = None
    status: str
    monthly_rent: Optional[Decimal] = None
    next_payment_due: Optional[date] = None
    auto_send_reminder: bool
    reminder_days_before: Optional[int] = None
    has_portal_access: bool = False
    leases: List[LeaseOut] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PortalAccessOut(BaseModel):
    tenant_id: int
    portal_user_id: Optional[int] = None
    email: str
    enabled: bool
    email_sent: bool = False
