from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.core import rent_schedule
from property_crm.core.auth import get_landlord
from property_crm.models.booking import Booking
from property_crm.models.expense import Expense
from property_crm.models.maintenance import MaintenanceRequest, Task
from property_crm.models.notification import Notification
from property_crm.models.payment import Payment
from property_crm.models.property import Property
from property_crm.models.tenant import Tenant
from property_crm.models.user import User
from property_crm.schemas.report import DashboardOut

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

UPCOMING_CHECK_IN_DAYS = 7


@router.get("", response_model=DashboardOut)
def get_dashboard(db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    today = rent_schedule.utc_today()
    month_start, month_end = rent_schedule.month_bounds(today.year, today.month)
    uid = current_user.id

    revenue = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(
            Payment.user_id == uid,
            Payment.status == "paid",
            Payment.payment_date >= month_start,
            Payment.payment_date <= month_end,
        )
        .scalar()
    )
    expenses = (
        db.query(func.coalesce(func.sum(Expense.amount), 0))
        .filter(Expense.user_id == uid, Expense.expense_date >= month_start, Expense.expense_date <= month_end)
        .scalar()
    )
    outstanding = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.user_id == uid, Payment.status.in_(("pending", "overdue")))
        .scalar()
    )

    return DashboardOut(
        total_properties=db.query(Property).filter(Property.user_id == uid).count(),
        active_tenants=db.query(Tenant).filter(Tenant.user_id == uid, Tenant.status == "active").count(),
        upcoming_check_ins=db.query(Booking)
        .filter(
            Booking.user_id == uid,
            Booking.status.in_(("pending", "confirmed")),
            Booking.check_in_date >= today,
            Booking.check_in_date <= today + timedelta(days=UPCOMING_CHECK_IN_DAYS),
        )
        .count(),
        active_bookings=db.query(Booking)
        .filter(Booking.user_id == uid, Booking.status == "checked_in")
        .count(),
        pending_maintenance=db.query(MaintenanceRequest)
        .filter(MaintenanceRequest.user_id == uid, MaintenanceRequest.status.in_(("pending", "in_progress")))
        .count(),
        open_tasks=db.query(Task).filter(Task.user_id == uid, Task.status != "done").count(),
        revenue_this_month=round(float(revenue or 0), 2),
        expenses_this_month=round(float(expenses or 0), 2),
        outstanding_amount=round(float(outstanding or 0), 2),
        overdue_payments=db.query(Payment).filter(Payment.user_id == uid, Payment.status == "overdue").count(),
        unread_notifications=db.query(Notification)
        .filter(Notification.user_id == uid, Notification.is_read == False)  # noqa: E712
        .count(),
    )
