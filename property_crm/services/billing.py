"""
Scheduled billing jobs.

Each job walks landlords one at a time; a failure for one landlord (or one
payment) is logged and reported without aborting the rest of the run.
"""
import logging
import time
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from property_crm.core import rent_schedule
from property_crm.core.audit import log_audit
from property_crm.core.config import settings
from property_crm.models.payment import Payment
from property_crm.models.tenant import Tenant
from property_crm.models.user import User
from property_crm.services.payments import email_payment_reminder

logger = logging.getLogger(__name__)

LANDLORD_ROLES = ("landlord", "admin")


def _landlords_with_tenants(db: Session) -> List[User]:
    return (
        db.query(User)
        .filter(User.role.in_(LANDLORD_ROLES), User.is_active == True)  # noqa: E712
        .filter(User.tenants.any(Tenant.status == "active"))
        .order_by(User.id)
        .all()
    )


def _rent_due_in_month(db: Session, user_id: int, tenant_id: int, year: int, month: int) -> bool:
    first, last = rent_schedule.month_bounds(year, month)
    return (
        db.query(Payment.id)
        .filter(
            Payment.user_id == user_id,
            Payment.tenant_id == tenant_id,
            Payment.payment_type == "rent",
            Payment.due_date >= first,
            Payment.due_date <= last,
        )
        .first()
        is not None
    )


def generate_monthly_for_landlord(
    db: Session, landlord: User, year: int, month: int
) -> List[Payment]:
    """Create next month's pending rent payments for one landlord. Idempotent per month."""
    due_date = date(year, month, rent_schedule.cap_due_day(landlord.rental_due_day))
    month_label = due_date.strftime("%B %Y")

    tenants = (
        db.query(Tenant)
        .filter(
            Tenant.user_id == landlord.id,
            Tenant.status == "active",
            Tenant.monthly_rent.isnot(None),
        )
        .order_by(Tenant.id)
        .all()
    )

    created: List[Payment] = []
    for tenant in tenants:
        if _rent_due_in_month(db, landlord.id, tenant.id, year, month):
            continue

        lease = tenant.active_lease
        prop = lease.property if lease else None
        description = f"Monthly rent for {month_label}" + (f" - {prop.name}" if prop else "")
        payment = Payment(
            user_id=landlord.id,
            tenant_id=tenant.id,
            property_id=prop.id if prop else None,
            payment_reference=f"PAY-{int(time.time() * 1000)}-{tenant.id:04d}",
            payment_type="rent",
            amount=tenant.monthly_rent,
            currency=settings.DEFAULT_CURRENCY,
            due_date=due_date,
            status="pending",
            invoice_number=f"INV-{year}{month:02d}-{tenant.id}",
            description=description,
        )
        db.add(payment)
        tenant.next_payment_due = due_date
        created.append(payment)

    db.commit()
    return created


def generate_monthly_payments(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    year, month = rent_schedule.next_billing_month(today)
    total = 0
    results = []

    for landlord in _landlords_with_tenants(db):
        try:
            created = generate_monthly_for_landlord(db, landlord, year, month)
        except Exception as e:
            db.rollback()
            logger.exception("Failed to generate monthly payments for landlord %s", landlord.id)
            results.append({"user_id": landlord.id, "name": landlord.display_name, "success": False, "error": str(e)})
            continue

        total += len(created)
        results.append(
            {"user_id": landlord.id, "name": landlord.display_name, "success": True, "payments_created": len(created)}
        )
        logger.info("Generated %d rent payments for landlord %s (%04d-%02d)", len(created), landlord.id, year, month)

    return {"year": year, "month": month, "total_payments_created": total, "results": results}


def find_reminder_candidates(db: Session, tenant: Tenant, today: date) -> List[Payment]:
    days_before = tenant.reminder_days_before
    if days_before is None:
        days_before = rent_schedule.DEFAULT_REMINDER_DAYS_BEFORE
    target = today + timedelta(days=days_before)

    payments = (
        db.query(Payment)
        .filter(
            Payment.user_id == tenant.user_id,
            Payment.tenant_id == tenant.id,
            Payment.status == "pending",
            Payment.reminder_sent == False,  # noqa: E712
            Payment.due_date == target,
        )
        .order_by(Payment.id)
        .all()
    )
    return [
        p for p in payments
        if rent_schedule.is_reminder_due(p.status, p.due_date, p.reminder_sent, today, days_before)
    ]


def send_due_reminders(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or rent_schedule.utc_today()
    total_sent = 0
    total_failed = 0
    results = []

    for landlord in _landlords_with_tenants(db):
        sent = failed = 0
        try:
            tenants = (
                db.query(Tenant)
                .filter(
                    Tenant.user_id == landlord.id,
                    Tenant.status == "active",
                    Tenant.auto_send_reminder == True,  # noqa: E712
                )
                .order_by(Tenant.id)
                .all()
            )
            for tenant in tenants:
                for payment in find_reminder_candidates(db, tenant, today):
                    try:
                        result = email_payment_reminder(db, payment)
                    except Exception:
                        db.rollback()
                        logger.exception("Failed to send reminder for payment %s", payment.id)
                        failed += 1
                        continue
                    if result.success:
                        sent += 1
                        log_audit(
                            db,
                            actor=None,
                            owner_id=landlord.id,
                            action="reminder_sent",
                            entity_type="payment",
                            entity_id=str(payment.id),
                            source="cron",
                            status=payment.status,
                            due_at=payment.due_date,
                            property_id=payment.property_id,
                            description=f"Automatic reminder sent for {payment.payment_reference}",
                        )
                    else:
                        failed += 1
        except Exception as e:
            db.rollback()
            logger.exception("Failed to process reminders for landlord %s", landlord.id)
            results.append({"user_id": landlord.id, "name": landlord.display_name, "success": False, "error": str(e)})
            continue

        total_sent += sent
        total_failed += failed
        results.append(
            {"user_id": landlord.id, "name": landlord.display_name, "success": True, "sent": sent, "failed": failed}
        )

    logger.info("Reminder run for %s: %d sent, %d failed", today, total_sent, total_failed)
    return {"date": today, "total_reminders_sent": total_sent, "total_failed": total_failed, "results": results}


def mark_overdue_payments(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or rent_schedule.utc_today()
    total = 0
    results = []

    landlords = (
        db.query(User)
        .filter(User.role.in_(LANDLORD_ROLES))
        .filter(User.id.in_(db.query(Payment.user_id).filter(Payment.status == "pending")))
        .order_by(User.id)
        .all()
    )
    for landlord in landlords:
        try:
            overdue = (
                db.query(Payment)
                .filter(
                    Payment.user_id == landlord.id,
                    Payment.status == "pending",
                    Payment.due_date.isnot(None),
                    Payment.due_date < today,
                )
                .all()
            )
            for payment in overdue:
                if rent_schedule.is_overdue(payment.status, payment.due_date, today):
                    payment.status = "overdue"
            db.commit()
        except Exception as e:
            db.rollback()
            logger.exception("Failed to mark overdue payments for landlord %s", landlord.id)
            results.append({"user_id": landlord.id, "name": landlord.display_name, "success": False, "error": str(e)})
            continue

        total += len(overdue)
        results.append(
            {"user_id": landlord.id, "name": landlord.display_name, "success": True, "marked_overdue": len(overdue)}
        )
        if overdue:
            logger.info("Marked %d payments overdue for landlord %s", len(overdue), landlord.id)

    return {"date": today, "total_marked_overdue": total, "results": results}


def recompute_next_payment_due(db: Session, landlord: User, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Reset next_payment_due for the landlord's active tenants that pay rent."""
    today = today or rent_schedule.utc_today()
    next_due = rent_schedule.next_payment_due(landlord.rental_due_day, today)
    tenants = (
        db.query(Tenant)
        .filter(
            Tenant.user_id == landlord.id,
            Tenant.status == "active",
            Tenant.monthly_rent.isnot(None),
        )
        .all()
    )
    updated = []
    for tenant in tenants:
        updated.append({"tenant_id": tenant.id, "previous": tenant.next_payment_due, "next_payment_due": next_due})
        tenant.next_payment_due = next_due
    db.commit()
    return updated


def backfill_payment_properties(db: Session, landlord: User) -> Dict[str, int]:
    """Fill payment.property_id from the booking or the tenant's active lease."""
    payments = (
        db.query(Payment)
        .filter(Payment.user_id == landlord.id, Payment.property_id.is_(None))
        .all()
    )
    updated = 0
    for payment in payments:
        property_id = None
        if payment.booking is not None:
            property_id = payment.booking.property_id
        elif payment.tenant is not None and payment.tenant.active_lease is not None:
            property_id = payment.tenant.active_lease.property_id
        if property_id is not None:
            payment.property_id = property_id
            updated += 1
    db.commit()
    return {"checked": len(payments), "updated": updated, "skipped": len(payments) - updated}
