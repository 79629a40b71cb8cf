"""
Payment lifecycle: creation and edits with booking reconciliation, rent
due-date advancement, refunds/failures and invoice reminders.
"""
import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from property_crm.core import rent_schedule
from property_crm.core.audit import log_audit
from property_crm.core.config import settings
from property_crm.core.email import EmailResult, send_email
from property_crm.core.invoice import format_date, render_invoice_html, render_invoice_text
from property_crm.models.booking import Booking
from property_crm.models.payment import Payment
from property_crm.models.tenant import Tenant
from property_crm.models.user import User
from property_crm.schemas.payment import PaymentCreate, PaymentUpdate
from property_crm.services.bookings import paid_total, reconcile_booking
from property_crm.services.notifications import notify_payment_received

logger = logging.getLogger(__name__)


def generate_payment_reference(db: Session, user_id: int) -> str:
    count = db.query(Payment).filter(Payment.user_id == user_id).count()
    return f"PAY-{int(time.time() * 1000)}-{count + 1:04d}"


def get_owned_payment(db: Session, user_id: int, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id, Payment.user_id == user_id).first()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


def _owned_booking(db: Session, user_id: int, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id, Booking.user_id == user_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def _owned_tenant(db: Session, user_id: int, tenant_id: int) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id, Tenant.user_id == user_id).first()
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant


def check_amount_due(
    db: Session, booking: Booking, amount: Decimal, exclude_payment_id: Optional[int] = None
) -> None:
    other_paid = paid_total(db, booking.id, exclude_payment_id=exclude_payment_id)
    amount_due = Decimal(str(booking.total_amount or 0)) - other_paid
    if Decimal(str(amount)) > amount_due:
        raise HTTPException(
            status_code=400,
            detail=f"Payment amount exceeds amount due ({amount_due:.2f})",
        )


def advance_tenant_due_date(db: Session, payment: Payment, owner: User) -> None:
    """A paid rent payment moves the tenant's next due date to the following cycle."""
    if payment.payment_type != "rent" or payment.status != "paid" or payment.tenant is None:
        return
    paid_on = payment.payment_date or rent_schedule.utc_today()
    payment.tenant.next_payment_due = rent_schedule.advance_after_payment(paid_on, owner.rental_due_day)
    logger.info(
        "Advanced next_payment_due for tenant %s to %s",
        payment.tenant_id,
        payment.tenant.next_payment_due,
    )


def _payer_name(payment: Payment) -> str:
    if payment.tenant is not None:
        return payment.tenant.full_name
    if payment.booking is not None:
        return payment.booking.guest_name
    return "Unknown payer"


def create_payment(db: Session, owner: User, payload: PaymentCreate) -> Payment:
    data = payload.model_dump()

    booking = _owned_booking(db, owner.id, payload.booking_id) if payload.booking_id else None
    tenant = _owned_tenant(db, owner.id, payload.tenant_id) if payload.tenant_id else None

    if booking is not None:
        check_amount_due(db, booking, payload.amount)

    # Property falls back to the booking, then the tenant's active lease
    if data.get("property_id") is None:
        if booking is not None:
            data["property_id"] = booking.property_id
        elif tenant is not None and tenant.active_lease is not None:
            data["property_id"] = tenant.active_lease.property_id

    data["currency"] = data.get("currency") or settings.DEFAULT_CURRENCY
    if data["status"] == "paid" and data.get("payment_date") is None:
        data["payment_date"] = rent_schedule.utc_today()

    payment = Payment(
        user_id=owner.id,
        payment_reference=generate_payment_reference(db, owner.id),
        **data,
    )
    db.add(payment)
    db.flush()

    if booking is not None:
        reconcile_booking(db, booking)
    advance_tenant_due_date(db, payment, owner)

    db.commit()
    db.refresh(payment)
    logger.info("Payment %s created for user %s (%s)", payment.payment_reference, owner.id, payment.amount)

    log_audit(
        db,
        actor=owner,
        action="created",
        entity_type="payment",
        entity_id=str(payment.id),
        status=payment.status,
        due_at=payment.due_date,
        property_id=payment.property_id,
        description=f"Payment {payment.payment_reference} created: {payment.amount} {payment.currency}",
    )
    if payment.status == "paid":
        notify_payment_received(db, owner.id, _payer_name(payment), payment.amount, payment.currency, payment.id)
    return payment


def update_payment(db: Session, owner: User, payment: Payment, payload: PaymentUpdate) -> Payment:
    data = payload.model_dump(exclude_unset=True)
    was_paid = payment.status == "paid"

    if payment.booking is not None and ("amount" in data or data.get("status") == "paid"):
        amount = data.get("amount") or payment.amount
        check_amount_due(db, payment.booking, amount, exclude_payment_id=payment.id)

    for k, v in data.items():
        setattr(payment, k, v)

    if payment.status == "paid" and payment.payment_date is None:
        payment.payment_date = rent_schedule.utc_today()

    if payment.booking is not None:
        reconcile_booking(db, payment.booking)
    if not was_paid and payment.status == "paid":
        advance_tenant_due_date(db, payment, owner)

    db.commit()
    db.refresh(payment)
    log_audit(
        db,
        actor=owner,
        action="updated",
        entity_type="payment",
        entity_id=str(payment.id),
        status=payment.status,
        due_at=payment.due_date,
        property_id=payment.property_id,
        description=f"Payment {payment.payment_reference} updated: {', '.join(sorted(data)) or 'no changes'}",
    )
    if not was_paid and payment.status == "paid":
        notify_payment_received(db, owner.id, _payer_name(payment), payment.amount, payment.currency, payment.id)
    return payment


def delete_payment(db: Session, owner: User, payment: Payment) -> None:
    booking = payment.booking
    payment_id, reference, property_id = payment.id, payment.payment_reference, payment.property_id

    db.delete(payment)
    if booking is not None:
        reconcile_booking(db, booking)
    db.commit()
    logger.info("Payment %s deleted by user %s", reference, owner.id)
    log_audit(
        db,
        actor=owner,
        action="deleted",
        entity_type="payment",
        entity_id=str(payment_id),
        property_id=property_id,
        description=f"Payment {reference} deleted",
    )


def _append_note(existing: Optional[str], label: str, reason: str) -> str:
    note = f"{label}: {reason}"
    return f"{existing}\n\n{note}" if existing else note


def refund_payment(db: Session, owner: User, payment: Payment, reason: str) -> Payment:
    if payment.status != "paid":
        raise HTTPException(status_code=400, detail="Only paid payments can be refunded")
    payment.status = "refunded"
    payment.notes = _append_note(payment.notes, "Refund reason", reason)
    if payment.booking is not None:
        reconcile_booking(db, payment.booking)
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s refunded by user %s", payment.payment_reference, owner.id)
    log_audit(
        db,
        actor=owner,
        action="refunded",
        entity_type="payment",
        entity_id=str(payment.id),
        status=payment.status,
        property_id=payment.property_id,
        description=f"Payment {payment.payment_reference} refunded: {reason}",
    )
    return payment


def mark_payment_failed(db: Session, owner: User, payment: Payment, reason: str) -> Payment:
    payment.status = "failed"
    payment.notes = _append_note(payment.notes, "Failure reason", reason)
    if payment.booking is not None:
        reconcile_booking(db, payment.booking)
    db.commit()
    db.refresh(payment)
    logger.warning("Payment %s marked as failed: %s", payment.payment_reference, reason)
    log_audit(
        db,
        actor=owner,
        action="failed",
        entity_type="payment",
        entity_id=str(payment.id),
        status=payment.status,
        property_id=payment.property_id,
        description=f"Payment {payment.payment_reference} marked failed: {reason}",
    )
    return payment


def reminder_recipient(payment: Payment) -> Optional[str]:
    if payment.tenant is not None and payment.tenant.email:
        return payment.tenant.email
    if payment.booking is not None and payment.booking.guest_email:
        return payment.booking.guest_email
    return None


def email_payment_reminder(db: Session, payment: Payment) -> EmailResult:
    """
    Email the invoice for `payment` and, only when delivery succeeds, record
    the reminder. Commits on success.
    """
    recipient = reminder_recipient(payment)
    if not recipient:
        return EmailResult(success=False, error="No recipient email")

    owner = payment.owner
    result = send_email(
        to=recipient,
        subject=f"Rent Payment Reminder - Due {format_date(payment.due_date)}",
        text_body=render_invoice_text(payment),
        html_body=render_invoice_html(payment),
        reply_to=owner.email,
    )
    if result.success:
        payment.reminder_sent = True
        payment.reminder_sent_at = datetime.now(timezone.utc)
        payment.reminder_count = (payment.reminder_count or 0) + 1
        db.commit()
        logger.info("Payment reminder sent for %s to %s", payment.payment_reference, recipient)
    else:
        logger.error("Failed to send payment reminder for %s: %s", payment.payment_reference, result.error)
    return result


def send_manual_reminder(db: Session, owner: User, payment: Payment) -> EmailResult:
    if not reminder_recipient(payment):
        raise HTTPException(status_code=400, detail="Tenant has no email address")
    if payment.status == "paid":
        raise HTTPException(status_code=400, detail="Payment is already paid")

    result = email_payment_reminder(db, payment)
    if result.success:
        log_audit(
            db,
            actor=owner,
            action="reminder_sent",
            entity_type="payment",
            entity_id=str(payment.id),
            status=payment.status,
            due_at=payment.due_date,
            property_id=payment.property_id,
            description=f"Reminder sent for {payment.payment_reference}",
        )
    return result
