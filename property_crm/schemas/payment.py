from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Literal
from datetime import date, datetime
from decimal import Decimal

from property_crm.schemas.common import not_null

PaymentStatus = Literal["pending", "partially_paid", "paid", "overdue", "refunded", "failed"]
PaymentType = Literal[
    "rent", "deposit", "booking", "cleaning_fee", "utilities", "late_fee", "damage", "refund", "other"
]
PaymentMethod = Literal["eft", "cash", "card", "stripe", "other"]


class PaymentCreate(BaseModel):
    booking_id: Optional[int] = None
    tenant_id: Optional[int] = None
    property_id: Optional[int] = None
    payment_type: PaymentType = "rent"
    amount: Decimal = Field(gt=0)
    currency: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    due_date: Optional[date] = None
    status: PaymentStatus = "paid"
    invoice_number: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    bank_reference: Optional[str] = None

    @model_validator(mode="after")
    def validate_status_fields(self) -> "PaymentCreate":
        if self.status in ("refunded", "failed"):
            raise ValueError("use the refund / mark-failed endpoints for refunded or failed payments")
        return self


class PaymentUpdate(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0)
    payment_type: Optional[PaymentType] = None
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    due_date: Optional[date] = None
    status: Optional[Literal["pending", "partially_paid", "paid", "overdue"]] = None
    invoice_number: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    bank_reference: Optional[str] = None

    @field_validator("amount", "payment_type", "status")
    @classmethod
    def required_columns(cls, v):
        return not_null(v)


class PaymentOut(BaseModel):
    id: int
    booking_id: Optional[int] = None
    tenant_id: Optional[int] = None
    property_id: Optional[int] = None
    payment_reference: str
    payment_type: str
    amount: Decimal
    currency: str
    payment_method: Optional[str] = None
    payment_date: Optional[date] = None
    due_date: Optional[date] = None
    status: str
    invoice_number: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    bank_reference: Optional[str] = None
    reminder_sent: bool
    reminder_sent_at: Optional[datetime] = None
    reminder_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentSummary(BaseModel):
    total_amount: Decimal
    pending_amount: Decimal
    paid_amount: Decimal
    overdue_amount: Decimal


class PaymentListOut(BaseModel):
    items: List[PaymentOut]
    total: int
    limit: int
    offset: int
    summary: PaymentSummary


class ReasonIn(BaseModel):
    reason: str = Field(min_length=1)


class PaymentStatusBreakdown(BaseModel):
    status: str
    count: int
    amount: Decimal


class PaymentStatisticsOut(BaseModel):
    total_count: int
    total_amount: Decimal
    collected_amount: Decimal
    outstanding_amount: Decimal
    collection_rate_pct: float
    by_status: List[PaymentStatusBreakdown]


class BulkReminderIn(BaseModel):
    payment_ids: List[int] = Field(min_length=1, max_length=200)


class ReminderResult(BaseModel):
    payment_id: int
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class BulkReminderOut(BaseModel):
    sent: int
    failed: int
    results: List[ReminderResult]


class StripeIntentIn(BaseModel):
    booking_id: int
    amount: Optional[Decimal] = Field(default=None, gt=0)


class StripeIntentOut(BaseModel):
    id: str
    client_secret: str
    amount: Decimal
    currency: str
    status: str
    booking_id: Optional[int] = None
