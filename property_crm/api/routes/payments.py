"""
Payments: CRUD, refunds, invoices, reminders and the scheduled billing jobs.

Cron endpoints authenticate with the shared CRON_SECRET and accept an
optional `today` so a missed run can be replayed for a given date.
"""
import io
import logging
import time
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, PlainTextResponse, StreamingResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.core import rent_schedule
from property_crm.core.auth import get_landlord, require_cron_secret
from property_crm.core.config import settings
from property_crm.core.invoice import (
    invoice_number,
    render_invoice_html,
    render_invoice_pdf,
    render_invoice_text,
)
from property_crm.models.booking import Booking
from property_crm.models.payment import Payment
from property_crm.models.user import User
from property_crm.schemas.payment import (
    BulkReminderIn,
    BulkReminderOut,
    PaymentCreate,
    PaymentListOut,
    PaymentOut,
    PaymentStatisticsOut,
    PaymentSummary,
    PaymentUpdate,
    ReasonIn,
    ReminderResult,
    StripeIntentIn,
    StripeIntentOut,
)
from property_crm.services import billing
from property_crm.services import payments as payment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

COLLECTED_STATUSES = ("paid",)
OUTSTANDING_STATUSES = ("pending", "partially_paid", "overdue")


def apply_payment_filters(
    q,
    booking_id: Optional[int],
    tenant_id: Optional[int],
    property_id: Optional[int],
    status: Optional[str],
    payment_type: Optional[str],
    start_date: Optional[date],
    end_date: Optional[date],
):
    if booking_id is not None:
        q = q.filter(Payment.booking_id == booking_id)
    if tenant_id is not None:
        q = q.filter(Payment.tenant_id == tenant_id)
    if property_id is not None:
        q = q.filter(Payment.property_id == property_id)
    if status:
        q = q.filter(Payment.status == status)
    if payment_type:
        q = q.filter(Payment.payment_type == payment_type)

    # Date range applies to the payment date, falling back to the due date for unpaid rows
    effective_date = func.coalesce(Payment.payment_date, Payment.due_date)
    if start_date:
        q = q.filter(effective_date >= start_date)
    if end_date:
        q = q.filter(effective_date <= end_date)
    return q


def _amounts_by_status(q) -> dict:
    rows = (
        q.with_entities(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
        .group_by(Payment.status)
        .all()
    )
    return {status: (int(count), Decimal(str(amount))) for status, count, amount in rows}


def _summary(by_status: dict) -> PaymentSummary:
    def amount(*statuses):
        return sum((by_status.get(s, (0, Decimal("0")))[1] for s in statuses), Decimal("0"))

    return PaymentSummary(
        total_amount=sum((v[1] for v in by_status.values()), Decimal("0")),
        pending_amount=amount("pending", "partially_paid"),
        paid_amount=amount("paid"),
        overdue_amount=amount("overdue"),
    )


@router.get("", response_model=PaymentListOut)
def list_payments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    booking_id: Optional[int] = Query(None),
    tenant_id: Optional[int] = Query(None),
    property_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None, description="pending|partially_paid|paid|overdue|refunded|failed"),
    payment_type: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Paged payments plus a summary computed over every match, not just the page."""
    q = db.query(Payment).filter(Payment.user_id == current_user.id)
    q = apply_payment_filters(q, booking_id, tenant_id, property_id, status, payment_type, start_date, end_date)

    total = q.count()
    items = (
        q.order_by(func.coalesce(Payment.payment_date, Payment.due_date).desc(), Payment.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return PaymentListOut(
        items=items,
        total=total,
        limit=limit,
        offset=offset,
        summary=_summary(_amounts_by_status(q.order_by(None))),
    )


@router.get("/statistics", response_model=PaymentStatisticsOut)
def payment_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    property_id: Optional[int] = Query(None),
):
    q = db.query(Payment).filter(Payment.user_id == current_user.id)
    q = apply_payment_filters(q, None, None, property_id, None, None, start_date, end_date)
    by_status = _amounts_by_status(q)

    collected = sum((by_status.get(s, (0, Decimal("0")))[1] for s in COLLECTED_STATUSES), Decimal("0"))
    outstanding = sum((by_status.get(s, (0, Decimal("0")))[1] for s in OUTSTANDING_STATUSES), Decimal("0"))
    billable = collected + outstanding

    return PaymentStatisticsOut(
        total_count=sum(v[0] for v in by_status.values()),
        total_amount=sum((v[1] for v in by_status.values()), Decimal("0")),
        collected_amount=collected,
        outstanding_amount=outstanding,
        collection_rate_pct=round(float(collected / billable * 100), 2) if billable else 0.0,
        by_status=[
            {"status": status, "count": count, "amount": amount}
            for status, (count, amount) in sorted(by_status.items())
        ],
    )


@router.get("/summary")
def payment_period_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    """Amounts per status for one calendar month (defaults to the current month)."""
    today = rent_schedule.utc_today()
    year = year or today.year
    month = month or today.month
    first, last = rent_schedule.month_bounds(year, month)

    q = db.query(Payment).filter(Payment.user_id == current_user.id)
    q = apply_payment_filters(q, None, None, None, None, None, first, last)
    by_status = _amounts_by_status(q)
    return {
        "year": year,
        "month": month,
        "summary": _summary(by_status),
        "counts": {status: count for status, (count, _) in by_status.items()},
    }


# ---------------------------------------------------------------------------
# Scheduled jobs
# ---------------------------------------------------------------------------

@router.post("/cron/generate-monthly", dependencies=[Depends(require_cron_secret)])
def cron_generate_monthly(
    db: Session = Depends(get_db),
    today: Optional[date] = Query(None, description="Run as of this date (defaults to today UTC)"),
):
    return billing.generate_monthly_payments(db, today)


@router.post("/cron/send-reminders", dependencies=[Depends(require_cron_secret)])
def cron_send_reminders(
    db: Session = Depends(get_db),
    today: Optional[date] = Query(None, description="Run as of this date (defaults to today UTC)"),
):
    return billing.send_due_reminders(db, today)


@router.post("/cron/mark-overdue", dependencies=[Depends(require_cron_secret)])
def cron_mark_overdue(
    db: Session = Depends(get_db),
    today: Optional[date] = Query(None, description="Run as of this date (defaults to today UTC)"),
):
    return billing.mark_overdue_payments(db, today)


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------

@router.post("/send-bulk-reminders", response_model=BulkReminderOut)
def send_bulk_reminders(
    payload: BulkReminderIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    results = []
    for payment_id in dict.fromkeys(payload.payment_ids):
        try:
            payment = payment_service.get_owned_payment(db, current_user.id, payment_id)
            result = payment_service.send_manual_reminder(db, current_user, payment)
        except HTTPException as e:
            results.append(ReminderResult(payment_id=payment_id, success=False, error=e.detail))
            continue
        results.append(
            ReminderResult(
                payment_id=payment_id,
                success=result.success,
                message_id=result.message_id,
                error=result.error,
            )
        )

    sent = sum(1 for r in results if r.success)
    return BulkReminderOut(sent=sent, failed=len(results) - sent, results=results)


# ---------------------------------------------------------------------------
# Stripe (mocked)
# ---------------------------------------------------------------------------

@router.post("/stripe/payment-intents", response_model=StripeIntentOut, status_code=201)
def create_payment_intent(
    payload: StripeIntentIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    """Development stand-in for a Stripe PaymentIntent; nothing is charged."""
    booking = (
        db.query(Booking)
        .filter(Booking.id == payload.booking_id, Booking.user_id == current_user.id)
        .first()
    )
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")

    amount = payload.amount if payload.amount is not None else Decimal(str(booking.amount_due or 0))
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Booking has nothing left to pay")

    intent_id = f"pi_mock_{int(time.time() * 1000)}"
    logger.info("Mock payment intent %s for booking %s (%s)", intent_id, booking.id, amount)
    return StripeIntentOut(
        id=intent_id,
        client_secret=f"{intent_id}_secret_mock",
        amount=amount,
        currency=settings.DEFAULT_CURRENCY,
        status="requires_payment_method",
        booking_id=booking.id,
    )


@router.get("/stripe/payment-intents/{intent_id}", response_model=StripeIntentOut)
def get_payment_intent(intent_id: str, current_user: User = Depends(get_landlord)):
    if not intent_id.startswith("pi_"):
        raise HTTPException(status_code=400, detail="Invalid payment intent id")
    return StripeIntentOut(
        id=intent_id,
        client_secret=f"{intent_id}_secret_mock",
        amount=Decimal("0"),
        currency=settings.DEFAULT_CURRENCY,
        status="succeeded",
    )


# ---------------------------------------------------------------------------
# Single payment
# ---------------------------------------------------------------------------

@router.post("", response_model=PaymentOut, status_code=201)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    return payment_service.create_payment(db, current_user, payload)


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(payment_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    return payment_service.get_owned_payment(db, current_user.id, payment_id)


@router.patch("/{payment_id}", response_model=PaymentOut)
def update_payment(
    payment_id: int,
    payload: PaymentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    payment = payment_service.get_owned_payment(db, current_user.id, payment_id)
    return payment_service.update_payment(db, current_user, payment, payload)


@router.delete("/{payment_id}", status_code=204)
def delete_payment(payment_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    payment = payment_service.get_owned_payment(db, current_user.id, payment_id)
    payment_service.delete_payment(db, current_user, payment)
    return None


@router.post("/{payment_id}/refund", response_model=PaymentOut)
def refund_payment(
    payment_id: int,
    payload: ReasonIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    payment = payment_service.get_owned_payment(db, current_user.id, payment_id)
    return payment_service.refund_payment(db, current_user, payment, payload.reason)


@router.post("/{payment_id}/mark-failed", response_model=PaymentOut)
def mark_payment_failed(
    payment_id: int,
    payload: ReasonIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    payment = payment_service.get_owned_payment(db, current_user.id, payment_id)
    return payment_service.mark_payment_failed(db, current_user, payment, payload.reason)


@router.post("/{payment_id}/send-reminder", response_model=ReminderResult)
def send_reminder(payment_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    payment = payment_service.get_owned_payment(db, current_user.id, payment_id)
    result = payment_service.send_manual_reminder(db, current_user, payment)
    if not result.success:
        raise HTTPException(status_code=502, detail=f"Failed to send reminder: {result.error}")
    return ReminderResult(payment_id=payment.id, success=True, message_id=result.message_id)


@router.get("/{payment_id}/invoice", response_class=HTMLResponse)
def invoice_html(payment_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    payment = payment_service.get_owned_payment(db, current_user.id, payment_id)
    return HTMLResponse(render_invoice_html(payment))


@router.get("/{payment_id}/invoice.txt", response_class=PlainTextResponse)
def invoice_text(payment_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    payment = payment_service.get_owned_payment(db, current_user.id, payment_id)
    return PlainTextResponse(render_invoice_text(payment))


@router.get("/{payment_id}/invoice.pdf")
def invoice_pdf(payment_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    """Download the invoice as a PDF file."""
    payment = payment_service.get_owned_payment(db, current_user.id, payment_id)
    return StreamingResponse(
        io.BytesIO(render_invoice_pdf(payment)),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={invoice_number(payment)}.pdf"},
    )
