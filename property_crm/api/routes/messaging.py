import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.api.routes.bookings import get_owned_booking
from property_crm.core import template_engine
from property_crm.core.auth import get_landlord, require_cron_secret
from property_crm.models.messaging import Automation, ScheduledMessage
from property_crm.models.property import Property
from property_crm.models.user import User
from property_crm.schemas.messaging import (
    AutomationCreate,
    AutomationOut,
    AutomationTestIn,
    AutomationTestOut,
    AutomationUpdate,
    ProcessResultOut,
    RescheduleIn,
    ScheduledMessageOut,
    TemplatePreviewIn,
    TemplatePreviewOut,
)
from property_crm.services import messaging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messaging", tags=["messaging"])


def get_owned_automation(db: Session, user_id: int, automation_id: int) -> Automation:
    automation = db.query(Automation).filter(Automation.id == automation_id, Automation.user_id == user_id).first()
    if not automation:
        raise HTTPException(status_code=404, detail="Automation not found")
    return automation


def get_owned_message(db: Session, user_id: int, message_id: int) -> ScheduledMessage:
    message = (
        db.query(ScheduledMessage)
        .filter(ScheduledMessage.id == message_id, ScheduledMessage.user_id == user_id)
        .first()
    )
    if not message:
        raise HTTPException(status_code=404, detail="Scheduled message not found")
    return message


def _check_property_ids(db: Session, user_id: int, property_ids: List[int]) -> None:
    if not property_ids:
        return
    owned = {
        pid for (pid,) in db.query(Property.id).filter(Property.user_id == user_id, Property.id.in_(property_ids))
    }
    unknown = sorted(set(property_ids) - owned)
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown property ids: {', '.join(map(str, unknown))}")


# ---------------------------------------------------------------------------
# Automations
# ---------------------------------------------------------------------------

@router.get("/automations", response_model=List[AutomationOut])
def list_automations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    trigger_type: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
):
    q = db.query(Automation).filter(Automation.user_id == current_user.id)
    if trigger_type:
        q = q.filter(Automation.trigger_type == trigger_type)
    if is_active is not None:
        q = q.filter(Automation.is_active == is_active)
    return q.order_by(Automation.created_at.desc(), Automation.id.desc()).all()


@router.post("/automations", response_model=AutomationOut, status_code=201)
def create_automation(
    payload: AutomationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    _check_property_ids(db, current_user.id, payload.property_ids)
    automation = Automation(user_id=current_user.id, **payload.model_dump())
    db.add(automation)
    db.commit()
    db.refresh(automation)
    logger.info("Automation %s (%s) created by user %s", automation.id, automation.trigger_type, current_user.id)
    return automation


@router.get("/automations/{automation_id}", response_model=AutomationOut)
def get_automation(automation_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    return get_owned_automation(db, current_user.id, automation_id)


@router.patch("/automations/{automation_id}", response_model=AutomationOut)
def update_automation(
    automation_id: int,
    payload: AutomationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    automation = get_owned_automation(db, current_user.id, automation_id)
    data = payload.model_dump(exclude_unset=True)
    if "property_ids" in data:
        data["property_ids"] = data["property_ids"] or []
        _check_property_ids(db, current_user.id, data["property_ids"])

    for k, v in data.items():
        setattr(automation, k, v)
    if automation.message_type == "email" and not automation.subject:
        raise HTTPException(status_code=400, detail="subject is required for email automations")

    db.commit()
    db.refresh(automation)
    return automation


@router.delete("/automations/{automation_id}", status_code=204)
def delete_automation(automation_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    """Pending messages from the automation are cancelled; sent history is kept."""
    automation = get_owned_automation(db, current_user.id, automation_id)
    db.query(ScheduledMessage).filter(
        ScheduledMessage.automation_id == automation.id,
        ScheduledMessage.status == "pending",
    ).update({ScheduledMessage.status: "cancelled"}, synchronize_session=False)
    db.delete(automation)
    db.commit()
    return None


@router.post("/automations/{automation_id}/toggle", response_model=AutomationOut)
def toggle_automation(automation_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    automation = get_owned_automation(db, current_user.id, automation_id)
    automation.is_active = not automation.is_active
    db.commit()
    db.refresh(automation)
    return automation


@router.post("/automations/{automation_id}/test", response_model=AutomationTestOut)
def test_automation(
    automation_id: int,
    payload: AutomationTestIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    """Render with a real booking (or sample data) and send it once to the given recipient."""
    automation = get_owned_automation(db, current_user.id, automation_id)

    booking = get_owned_booking(db, current_user.id, payload.booking_id) if payload.booking_id else None
    context = messaging.booking_context(booking) if booking else messaging.SAMPLE_BOOKING_CONTEXT

    if automation.message_type == "email":
        recipient = payload.recipient_email or (booking.guest_email if booking else None)
    else:
        recipient = payload.recipient_phone or (booking.guest_phone if booking else None)
    if not recipient and automation.message_type != "in_app":
        raise HTTPException(status_code=400, detail="A recipient is required to send a test message")

    subject = template_engine.render(automation.subject, context) if automation.subject else None
    body = template_engine.render(automation.body_template, context)
    if subject:
        subject = f"[TEST] {subject}"

    try:
        messaging.deliver(automation.message_type, recipient or "", subject, body)
    except messaging.DeliveryError as e:
        return AutomationTestOut(success=False, subject=subject, body=body, error=str(e))
    return AutomationTestOut(success=True, subject=subject, body=body)


# ---------------------------------------------------------------------------
# Scheduled messages
# ---------------------------------------------------------------------------

@router.get("/scheduled", response_model=List[ScheduledMessageOut])
def list_scheduled(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    status: Optional[str] = Query(None, description="pending|sending|sent|failed|cancelled"),
    booking_id: Optional[int] = Query(None),
    automation_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = db.query(ScheduledMessage).filter(ScheduledMessage.user_id == current_user.id)
    if status:
        q = q.filter(ScheduledMessage.status == status)
    if booking_id is not None:
        q = q.filter(ScheduledMessage.booking_id == booking_id)
    if automation_id is not None:
        q = q.filter(ScheduledMessage.automation_id == automation_id)
    return q.order_by(ScheduledMessage.scheduled_for, ScheduledMessage.id).offset(offset).limit(limit).all()


@router.post("/process", response_model=ProcessResultOut, dependencies=[Depends(require_cron_secret)])
def process_scheduled(db: Session = Depends(get_db)):
    return messaging.process_pending(db)


@router.get("/scheduled/{message_id}", response_model=ScheduledMessageOut)
def get_scheduled(message_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    return get_owned_message(db, current_user.id, message_id)


@router.patch("/scheduled/{message_id}/reschedule", response_model=ScheduledMessageOut)
def reschedule_message(
    message_id: int,
    payload: RescheduleIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    message = get_owned_message(db, current_user.id, message_id)
    if message.status not in ("pending", "failed"):
        raise HTTPException(status_code=400, detail=f"Cannot reschedule a {message.status} message")
    message.scheduled_for = payload.scheduled_for
    message.status = "pending"
    message.error_message = None
    db.commit()
    db.refresh(message)
    return message


@router.post("/scheduled/{message_id}/cancel", response_model=ScheduledMessageOut)
def cancel_message(message_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    message = get_owned_message(db, current_user.id, message_id)
    if message.status != "pending":
        raise HTTPException(status_code=400, detail=f"Cannot cancel a {message.status} message")
    message.status = "cancelled"
    db.commit()
    db.refresh(message)
    return message


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@router.get("/templates/variables")
def template_variables(
    context_type: str = Query("booking", description="booking|tenant|maintenance"),
    current_user: User = Depends(get_landlord),
):
    variables = template_engine.available_variables(context_type)
    if not variables:
        raise HTTPException(status_code=400, detail=f"Unknown context type: {context_type}")
    return {"context_type": context_type, "variables": variables}


@router.post("/templates/preview", response_model=TemplatePreviewOut)
def preview_template(payload: TemplatePreviewIn, current_user: User = Depends(get_landlord)):
    context = payload.context or messaging.SAMPLE_BOOKING_CONTEXT
    check = template_engine.validate_template(payload.template, context)
    return TemplatePreviewOut(
        rendered=template_engine.render(payload.template, context),
        variables=template_engine.extract_variables(payload.template),
        valid=check["valid"],
        missing=check["missing"],
    )
