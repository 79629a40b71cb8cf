from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Literal, Dict, Any
from datetime import datetime

from property_crm.schemas.common import not_null

TriggerType = Literal[
    "booking_created",
    "booking_confirmed",
    "check_in_reminder",
    "check_in_instructions",
    "check_out_reminder",
    "check_out_instructions",
    "review_request",
    "booking_completed",
]
MessageType = Literal["email", "sms", "whatsapp", "in_app"]


def _check_time_of_day(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    parts = v.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError("trigger_time_of_day must be HH:MM")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError("trigger_time_of_day must be HH:MM")
    return f"{hours:02d}:{minutes:02d}"


class AutomationCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    trigger_type: TriggerType
    trigger_offset: int = Field(default=0, ge=-24 * 60, le=24 * 60)
    trigger_time_of_day: Optional[str] = None
    message_type: MessageType = "email"
    subject: Optional[str] = None
    body_template: str = Field(min_length=1)
    apply_to_rental_type: Optional[Literal["short_term", "long_term"]] = None
    property_ids: List[int] = []
    is_active: bool = True

    @field_validator("trigger_time_of_day")
    @classmethod
    def valid_time_of_day(cls, v):
        return _check_time_of_day(v)

    @model_validator(mode="after")
    def email_needs_subject(self) -> "AutomationCreate":
        if self.message_type == "email" and not self.subject:
            raise ValueError("subject is required for email automations")
        return self


class AutomationUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    trigger_type: Optional[TriggerType] = None
    trigger_offset: Optional[int] = Field(default=None, ge=-24 * 60, le=24 * 60)
    trigger_time_of_day: Optional[str] = None
    message_type: Optional[MessageType] = None
    subject: Optional[str] = None
    body_template: Optional[str] = None
    apply_to_rental_type: Optional[Literal["short_term", "long_term"]] = None
    property_ids: Optional[List[int]] = None
    is_active: Optional[bool] = None

    @field_validator(
        "name", "trigger_type", "trigger_offset", "message_type", "body_template", "property_ids", "is_active"
    )
    @classmethod
    def required_columns(cls, v):
        return not_null(v)

    @field_validator("trigger_time_of_day")
    @classmethod
    def valid_time_of_day(cls, v):
        return _check_time_of_day(v)


class AutomationOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    trigger_type: str
    trigger_offset: int
    trigger_time_of_day: Optional[str] = None
    message_type: str
    subject: Optional[str] = None
    body_template: str
    apply_to_rental_type: Optional[str] = None
    property_ids: List[int] = []
    is_active: bool
    total_sent: int
    total_failed: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AutomationTestIn(BaseModel):
    booking_id: Optional[int] = None
    recipient_email: Optional[str] = None
    recipient_phone: Optional[str] = None


class AutomationTestOut(BaseModel):
    success: bool
    subject: Optional[str] = None
    body: str
    error: Optional[str] = None


class ScheduledMessageOut(BaseModel):
    id: int
    automation_id: Optional[int] = None
    booking_id: Optional[int] = None
    tenant_id: Optional[int] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_phone: Optional[str] = None
    message_type: str
    subject: Optional[str] = None
    body: str
    scheduled_for: datetime
    status: str
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RescheduleIn(BaseModel):
    scheduled_for: datetime


class ProcessResultOut(BaseModel):
    processed: int
    succeeded: int
    failed: int


class TemplatePreviewIn(BaseModel):
    template: str
    context: Dict[str, Any] = {}


class TemplatePreviewOut(BaseModel):
    rendered: str
    variables: List[str]
    valid: bool
    missing: List[str]
