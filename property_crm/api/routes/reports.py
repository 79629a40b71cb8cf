"""
Reports endpoints.
Each report is built by a plain function so the CSV export can reuse it.
"""
import calendar
import csv
import io
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload

from property_crm.api.deps import get_db
from property_crm.core import rent_schedule
from property_crm.core.auth import get_landlord
from property_crm.models.booking import Booking
from property_crm.models.expense import Expense
from property_crm.models.maintenance import MaintenanceRequest
from property_crm.models.payment import Payment
from property_crm.models.property import Property
from property_crm.models.tenant import Lease, Tenant
from property_crm.models.user import User
from property_crm.schemas.report import (
    AgingBreakdownItem,
    AgingPaymentItem,
    AgingReceivablesOut,
    AgingSummary,
    CashFlowMonth,
    CashFlowOut,
    LeaseExpirationOut,
    LeaseExpiryItem,
    MaintenanceCategoryCost,
    MaintenanceCostsOut,
    MaintenanceMonthCost,
    MaintenancePropertyCost,
    OccupancyOut,
    PropertyOccupancyItem,
    TenantPaymentItem,
    TenantPaymentsOut,
    TenantPunctualityItem,
)

router = APIRouter(prefix="/reports", tags=["reports"])

OCCUPYING_BOOKING_STATUSES = ("confirmed", "checked_in", "checked_out")
LEASE_WINDOWS = {"30": 30, "60": 60, "90": 90, "all": None}


def _r(value) -> float:
    return round(float(value or 0), 2)


def _tenant_name(tenant: Optional[Tenant]) -> Optional[str]:
    if tenant is None:
        return None
    return f"{tenant.first_name} {tenant.last_name}"


def _year_bounds(year: int):
    return date(year, 1, 1), date(year, 12, 31)


# ---------------------------------------------------------------------------
# Aging receivables
# ---------------------------------------------------------------------------

def build_aging_report(
    db: Session, user_id: int, property_id: Optional[int] = None, today: Optional[date] = None
) -> AgingReceivablesOut:
    today = today or rent_schedule.utc_today()
    q = (
        db.query(Payment)
        .options(joinedload(Payment.tenant), joinedload(Payment.property))
        .filter(Payment.user_id == user_id, Payment.status.in_(("pending", "overdue")))
    )
    if property_id is not None:
        q = q.filter(Payment.property_id == property_id)

    items: List[AgingPaymentItem] = []
    buckets = {b: 0.0 for b in rent_schedule.AGING_BUCKETS}
    counts = {b: 0 for b in rent_schedule.AGING_BUCKETS}
    by_tenant: Dict[int, AgingBreakdownItem] = {}
    by_property: Dict[int, AgingBreakdownItem] = {}

    for p in q.order_by(Payment.due_date.is_(None), Payment.due_date, Payment.id).all():
        raw_days = rent_schedule.days_overdue(p.due_date or today, today)
        bucket = rent_schedule.aging_bucket(raw_days)
        amount = _r(p.amount)
        items.append(
            AgingPaymentItem(
                payment_id=p.id,
                payment_reference=p.payment_reference,
                payment_type=p.payment_type,
                status=p.status,
                tenant_id=p.tenant_id,
                tenant_name=_tenant_name(p.tenant),
                property_id=p.property_id,
                property_name=p.property.name if p.property else None,
                due_date=p.due_date,
                amount=amount,
                days_overdue=max(0, raw_days),
                aging_bucket=bucket,
            )
        )
        buckets[bucket] += amount
        counts[bucket] += 1

        if p.tenant is not None:
            row = by_tenant.setdefault(
                p.tenant_id,
                AgingBreakdownItem(id=p.tenant_id, name=_tenant_name(p.tenant), total=0, buckets={}),
            )
            row.total += amount
            row.buckets[bucket] = row.buckets.get(bucket, 0) + amount
        if p.property is not None:
            row = by_property.setdefault(
                p.property_id,
                AgingBreakdownItem(id=p.property_id, name=p.property.name, total=0, buckets={}),
            )
            row.total += amount
            row.buckets[bucket] = row.buckets.get(bucket, 0) + amount

    def _finish(rows: Dict[int, AgingBreakdownItem]) -> List[AgingBreakdownItem]:
        for row in rows.values():
            row.total = _r(row.total)
            row.buckets = {k: _r(v) for k, v in row.buckets.items()}
        return sorted(rows.values(), key=lambda r: r.total, reverse=True)

    return AgingReceivablesOut(
        as_of=today,
        payments=items,
        tenant_breakdown=_finish(by_tenant),
        property_breakdown=_finish(by_property),
        summary=AgingSummary(
            total_outstanding=_r(sum(buckets.values())),
            payment_count=len(items),
            buckets={k: _r(v) for k, v in buckets.items()},
            counts=counts,
        ),
    )


@router.get("/aging", response_model=AgingReceivablesOut)
def aging_receivables(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    property_id: Optional[int] = Query(None),
    today: Optional[date] = Query(None, description="Override the as-of date"),
):
    return build_aging_report(db, current_user.id, property_id, today)


# ---------------------------------------------------------------------------
# Cash flow
# ---------------------------------------------------------------------------

def build_cash_flow_report(db: Session, user_id: int, year: int, property_id: Optional[int] = None) -> CashFlowOut:
    start, end = _year_bounds(year)
    inflows = [0.0] * 12
    outflows = [0.0] * 12
    inflows_by_type: Dict[str, float] = defaultdict(float)
    outflows_by_category: Dict[str, float] = defaultdict(float)

    pq = db.query(Payment).filter(
        Payment.user_id == user_id,
        Payment.status == "paid",
        Payment.payment_date >= start,
        Payment.payment_date <= end,
    )
    eq = db.query(Expense).filter(
        Expense.user_id == user_id,
        Expense.status == "paid",
        Expense.paid_date >= start,
        Expense.paid_date <= end,
    )
    mq = db.query(MaintenanceRequest).filter(
        MaintenanceRequest.user_id == user_id,
        MaintenanceRequest.status == "completed",
        MaintenanceRequest.actual_cost > 0,
        MaintenanceRequest.completed_date >= start,
        MaintenanceRequest.completed_date <= end,
        ~MaintenanceRequest.expenses.any(),
    )
    if property_id is not None:
        pq = pq.filter(Payment.property_id == property_id)
        eq = eq.filter(Expense.property_id == property_id)
        mq = mq.filter(MaintenanceRequest.property_id == property_id)

    for p in pq.all():
        amount = float(p.amount or 0)
        inflows[p.payment_date.month - 1] += amount
        inflows_by_type[p.payment_type] += amount
    for e in eq.all():
        amount = float(e.amount or 0)
        outflows[e.paid_date.month - 1] += amount
        outflows_by_category[e.category] += amount
    # Completed work with no expense recorded against it
    for m in mq.all():
        amount = float(m.actual_cost or 0)
        outflows[m.completed_date.month - 1] += amount
        outflows_by_category["maintenance"] += amount

    months = [
        CashFlowMonth(
            month=f"{calendar.month_abbr[i + 1]} {year}",
            month_index=i,
            inflows=_r(inflows[i]),
            outflows=_r(outflows[i]),
            net_cash_flow=_r(inflows[i] - outflows[i]),
        )
        for i in range(12)
    ]
    return CashFlowOut(
        year=year,
        months=months,
        total_inflows=_r(sum(inflows)),
        total_outflows=_r(sum(outflows)),
        net_cash_flow=_r(sum(inflows) - sum(outflows)),
        inflows_by_type={k: _r(v) for k, v in inflows_by_type.items()},
        outflows_by_category={k: _r(v) for k, v in outflows_by_category.items()},
    )


@router.get("/cash-flow", response_model=CashFlowOut)
def cash_flow(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    property_id: Optional[int] = Query(None),
):
    return build_cash_flow_report(db, current_user.id, year or rent_schedule.utc_today().year, property_id)


# ---------------------------------------------------------------------------
# Lease expiration
# ---------------------------------------------------------------------------

def _lease_item(lease: Lease, today: date) -> LeaseExpiryItem:
    days = (lease.lease_end_date - today).days
    return LeaseExpiryItem(
        lease_id=lease.id,
        tenant_id=lease.tenant_id,
        tenant_name=_tenant_name(lease.tenant),
        tenant_email=lease.tenant.email,
        property_id=lease.property_id,
        property_name=lease.property.name,
        lease_end_date=lease.lease_end_date,
        days_until_expiry=days,
        expiry_window=rent_schedule.expiry_window(days) if days >= 0 else "expired",
        monthly_rent=_r(lease.monthly_rent if lease.monthly_rent is not None else lease.tenant.monthly_rent),
    )


def build_lease_expiration_report(
    db: Session, user_id: int, window: str = "90", property_id: Optional[int] = None, today: Optional[date] = None
) -> LeaseExpirationOut:
    if window not in LEASE_WINDOWS:
        raise HTTPException(status_code=400, detail="window must be one of 30, 60, 90, all")
    today = today or rent_schedule.utc_today()

    q = (
        db.query(Lease)
        .options(joinedload(Lease.tenant), joinedload(Lease.property))
        .filter(Lease.user_id == user_id, Lease.is_active == True, Lease.lease_end_date.isnot(None))  # noqa: E712
    )
    if property_id is not None:
        q = q.filter(Lease.property_id == property_id)

    upcoming: List[LeaseExpiryItem] = []
    expired: List[LeaseExpiryItem] = []
    counts = {w: 0 for w in rent_schedule.EXPIRY_WINDOWS}
    horizon = LEASE_WINDOWS[window]

    for lease in q.order_by(Lease.lease_end_date, Lease.id).all():
        item = _lease_item(lease, today)
        if item.days_until_expiry < 0:
            expired.append(item)
            continue
        counts[item.expiry_window] += 1
        if horizon is None or item.days_until_expiry <= horizon:
            upcoming.append(item)

    at_risk = sum(i.monthly_rent for i in upcoming if i.expiry_window == "0-30")
    return LeaseExpirationOut(
        window=window,
        leases=upcoming,
        expired=expired,
        counts=counts,
        monthly_rent_at_risk=_r(at_risk),
    )


@router.get("/lease-expiration", response_model=LeaseExpirationOut)
def lease_expiration(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    window: str = Query("90", description="30|60|90|all"),
    property_id: Optional[int] = Query(None),
    today: Optional[date] = Query(None),
):
    return build_lease_expiration_report(db, current_user.id, window, property_id, today)


# ---------------------------------------------------------------------------
# Tenant payments
# ---------------------------------------------------------------------------

def _punctuality(p: Payment, today: date):
    """(is_on_time, days_late, counts_towards_rate)"""
    if p.status == "paid":
        if p.due_date and p.payment_date:
            late = (p.payment_date - p.due_date).days
            return late <= 0, max(0, late), True
        return True, 0, True
    if p.status == "overdue":
        late = (today - p.due_date).days if p.due_date else 0
        return False, max(0, late), True
    if p.status == "pending" and p.due_date and p.due_date < today:
        return False, (today - p.due_date).days, True
    return True, 0, False


def build_tenant_payments_report(
    db: Session,
    user_id: int,
    tenant_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    property_id: Optional[int] = None,
    today: Optional[date] = None,
) -> TenantPaymentsOut:
    today = today or rent_schedule.utc_today()
    q = (
        db.query(Payment)
        .options(joinedload(Payment.tenant), joinedload(Payment.property))
        .filter(Payment.user_id == user_id, Payment.tenant_id.isnot(None))
    )
    if tenant_id is not None:
        q = q.filter(Payment.tenant_id == tenant_id)
    if property_id is not None:
        q = q.filter(Payment.property_id == property_id)

    items: List[TenantPaymentItem] = []
    tenants: Dict[int, TenantPunctualityItem] = {}
    total_collected = total_outstanding = 0.0
    on_time_total = late_total = 0

    for p in q.order_by(Payment.due_date.desc(), Payment.id.desc()).all():
        anchor = p.due_date or (p.created_at.date() if p.created_at else None)
        if start_date and (anchor is None or anchor < start_date):
            continue
        if end_date and (anchor is None or anchor > end_date):
            continue

        on_time, days_late, counted = _punctuality(p, today)
        amount = _r(p.amount)
        items.append(
            TenantPaymentItem(
                payment_id=p.id,
                tenant_id=p.tenant_id,
                tenant_name=_tenant_name(p.tenant),
                property_name=p.property.name if p.property else None,
                payment_type=p.payment_type,
                due_date=p.due_date,
                payment_date=p.payment_date,
                amount=amount,
                status=p.status,
                is_on_time=on_time,
                days_late=days_late,
            )
        )

        row = tenants.setdefault(
            p.tenant_id,
            TenantPunctualityItem(
                tenant_id=p.tenant_id,
                tenant_name=_tenant_name(p.tenant),
                total_payments=0,
                paid_amount=0,
                pending_amount=0,
                overdue_amount=0,
                on_time_count=0,
                late_count=0,
                punctuality_rate=100,
            ),
        )
        row.total_payments += 1
        if p.status == "paid":
            row.paid_amount += amount
            total_collected += amount
        elif p.status == "pending":
            row.pending_amount += amount
            total_outstanding += amount
        elif p.status == "overdue":
            row.overdue_amount += amount
            total_outstanding += amount
        if counted:
            if on_time:
                row.on_time_count += 1
                on_time_total += 1
            else:
                row.late_count += 1
                late_total += 1

    for row in tenants.values():
        rated = row.on_time_count + row.late_count
        row.punctuality_rate = round(row.on_time_count / rated * 100) if rated else 100
        row.paid_amount = _r(row.paid_amount)
        row.pending_amount = _r(row.pending_amount)
        row.overdue_amount = _r(row.overdue_amount)

    rated_total = on_time_total + late_total
    return TenantPaymentsOut(
        payments=items,
        tenants=sorted(tenants.values(), key=lambda r: (r.punctuality_rate, r.tenant_name)),
        total_collected=_r(total_collected),
        total_outstanding=_r(total_outstanding),
        overall_punctuality_rate=round(on_time_total / rated_total * 100) if rated_total else 100,
    )


@router.get("/tenant-payments", response_model=TenantPaymentsOut)
def tenant_payments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    tenant_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    return build_tenant_payments_report(db, current_user.id, tenant_id, start_date, end_date)


# ---------------------------------------------------------------------------
# Occupancy
# ---------------------------------------------------------------------------

def _overlap_days(start: date, end: date, range_start: date, range_end: date) -> int:
    return max(0, (min(end, range_end) - max(start, range_start)).days)


def build_occupancy_report(
    db: Session,
    user_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    property_id: Optional[int] = None,
) -> OccupancyOut:
    end_date = end_date or rent_schedule.utc_today()
    start_date = start_date or end_date - timedelta(days=30)
    if end_date <= start_date:
        raise HTTPException(status_code=400, detail="end_date must be after start_date")
    total_days = (end_date - start_date).days

    pq = db.query(Property).filter(Property.user_id == user_id)
    if property_id is not None:
        pq = pq.filter(Property.id == property_id)
    properties = pq.order_by(Property.name).all()
    ids = [p.id for p in properties]

    bookings_by_property: Dict[int, List[Booking]] = defaultdict(list)
    leases_by_property: Dict[int, List[Lease]] = defaultdict(list)
    if ids:
        for b in db.query(Booking).filter(
            Booking.property_id.in_(ids),
            Booking.status.in_(OCCUPYING_BOOKING_STATUSES),
            Booking.check_in_date < end_date,
            Booking.check_out_date > start_date,
        ):
            bookings_by_property[b.property_id].append(b)
        for lease in db.query(Lease).filter(
            Lease.property_id.in_(ids),
            Lease.is_active == True,  # noqa: E712
            Lease.lease_start_date.isnot(None),
            Lease.lease_start_date < end_date,
        ):
            if lease.lease_end_date is None or lease.lease_end_date > start_date:
                leases_by_property[lease.property_id].append(lease)

    items: List[PropertyOccupancyItem] = []
    for prop in properties:
        occupied = 0
        revenue = 0.0
        bookings = bookings_by_property[prop.id]
        leases = leases_by_property[prop.id]
        for b in bookings:
            occupied += _overlap_days(b.check_in_date, b.check_out_date, start_date, end_date)
            revenue += float(b.total_amount or 0)
        for lease in leases:
            days = _overlap_days(lease.lease_start_date, lease.lease_end_date or end_date, start_date, end_date)
            occupied += days
            if lease.monthly_rent:
                revenue += float(lease.monthly_rent) * days / 30
        occupied = min(occupied, total_days)

        items.append(
            PropertyOccupancyItem(
                property_id=prop.id,
                property_name=prop.name,
                rental_type=prop.rental_type,
                total_days=total_days,
                occupied_days=occupied,
                vacant_days=total_days - occupied,
                occupancy_rate=round(occupied / total_days * 100, 1),
                total_bookings=len(bookings) + len(leases),
                revenue=_r(revenue),
                average_daily_rate=_r(revenue / occupied) if occupied else 0.0,
                revpar=_r(revenue / total_days),
            )
        )

    available = total_days * len(items)
    occupied_all = sum(i.occupied_days for i in items)
    return OccupancyOut(
        start_date=start_date,
        end_date=end_date,
        properties=items,
        overall_occupancy_rate=round(occupied_all / available * 100, 1) if available else 0.0,
    )


@router.get("/occupancy", response_model=OccupancyOut)
def occupancy(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    start_date: Optional[date] = Query(None, description="Defaults to 30 days before end_date"),
    end_date: Optional[date] = Query(None, description="Defaults to today"),
    property_id: Optional[int] = Query(None),
):
    return build_occupancy_report(db, current_user.id, start_date, end_date, property_id)


# ---------------------------------------------------------------------------
# Maintenance costs
# ---------------------------------------------------------------------------

def _request_cost(req: MaintenanceRequest) -> float:
    linked = sum(float(e.amount or 0) for e in req.expenses)
    return linked or float(req.actual_cost or 0)


def build_maintenance_costs_report(
    db: Session, user_id: int, year: int, property_id: Optional[int] = None
) -> MaintenanceCostsOut:
    q = (
        db.query(MaintenanceRequest)
        .options(joinedload(MaintenanceRequest.property), joinedload(MaintenanceRequest.expenses))
        .filter(MaintenanceRequest.user_id == user_id)
    )
    if property_id is not None:
        q = q.filter(MaintenanceRequest.property_id == property_id)
    requests = [r for r in q.all() if r.created_at and r.created_at.year == year]

    by_property: Dict[int, MaintenancePropertyCost] = {}
    by_category: Dict[str, MaintenanceCategoryCost] = {}
    monthly_cost = [0.0] * 12
    monthly_count = [0] * 12
    resolution_days: List[int] = []

    for req in requests:
        cost = _request_cost(req)
        prop = by_property.setdefault(
            req.property_id,
            MaintenancePropertyCost(
                property_id=req.property_id,
                property_name=req.property.name,
                request_count=0,
                completed_count=0,
                total_cost=0,
                avg_cost=0,
            ),
        )
        prop.request_count += 1
        prop.total_cost += cost

        cat = by_category.setdefault(
            req.category, MaintenanceCategoryCost(category=req.category, request_count=0, total_cost=0, avg_cost=0)
        )
        cat.request_count += 1
        cat.total_cost += cost

        month = req.created_at.month - 1
        monthly_cost[month] += cost
        monthly_count[month] += 1

        if req.status == "completed":
            prop.completed_count += 1
            if req.completed_date:
                resolution_days.append((req.completed_date - req.created_at.date()).days)

    for row in list(by_property.values()) + list(by_category.values()):
        row.avg_cost = _r(row.total_cost / row.request_count) if row.request_count else 0.0
        row.total_cost = _r(row.total_cost)

    return MaintenanceCostsOut(
        year=year,
        total_cost=_r(sum(monthly_cost)),
        request_count=len(requests),
        avg_resolution_days=round(sum(resolution_days) / len(resolution_days), 1) if resolution_days else None,
        by_property=sorted(by_property.values(), key=lambda r: r.total_cost, reverse=True),
        by_category=sorted(by_category.values(), key=lambda r: r.total_cost, reverse=True),
        monthly=[
            MaintenanceMonthCost(month=calendar.month_abbr[i + 1], cost=_r(monthly_cost[i]), count=monthly_count[i])
            for i in range(12)
        ],
    )


@router.get("/maintenance-costs", response_model=MaintenanceCostsOut)
def maintenance_costs(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    property_id: Optional[int] = Query(None),
):
    return build_maintenance_costs_report(db, current_user.id, year or rent_schedule.utc_today().year, property_id)


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------

def _aging_rows(db: Session, user: User, year: int, property_id: Optional[int]):
    report = build_aging_report(db, user.id, property_id)
    yield ["Reference", "Tenant", "Property", "Type", "Due Date", "Amount", "Days Overdue", "Bucket", "Status"]
    for p in report.payments:
        yield [
            p.payment_reference, p.tenant_name or "", p.property_name or "", p.payment_type,
            p.due_date or "", p.amount, p.days_overdue, p.aging_bucket, p.status,
        ]


def _cash_flow_rows(db: Session, user: User, year: int, property_id: Optional[int]):
    report = build_cash_flow_report(db, user.id, year, property_id)
    yield ["Month", "Inflows", "Outflows", "Net Cash Flow"]
    for m in report.months:
        yield [m.month, m.inflows, m.outflows, m.net_cash_flow]
    yield ["Total", report.total_inflows, report.total_outflows, report.net_cash_flow]


def _lease_rows(db: Session, user: User, year: int, property_id: Optional[int]):
    report = build_lease_expiration_report(db, user.id, "all", property_id)
    yield ["Tenant", "Email", "Property", "Lease End", "Days Until Expiry", "Window", "Monthly Rent"]
    for item in report.leases + report.expired:
        yield [
            item.tenant_name, item.tenant_email or "", item.property_name, item.lease_end_date,
            item.days_until_expiry, item.expiry_window, item.monthly_rent,
        ]


def _tenant_payment_rows(db: Session, user: User, year: int, property_id: Optional[int]):
    start, end = _year_bounds(year)
    report = build_tenant_payments_report(db, user.id, start_date=start, end_date=end, property_id=property_id)
    yield ["Due Date", "Tenant", "Property", "Type", "Amount", "Status", "Payment Date", "Days Late"]
    for p in report.payments:
        yield [
            p.due_date or "", p.tenant_name, p.property_name or "", p.payment_type,
            p.amount, p.status, p.payment_date or "", p.days_late,
        ]


def _occupancy_rows(db: Session, user: User, year: int, property_id: Optional[int]):
    start, end = _year_bounds(year)
    report = build_occupancy_report(db, user.id, start, end + timedelta(days=1), property_id)
    yield ["Property", "Rental Type", "Occupied Days", "Vacant Days", "Occupancy %", "Revenue", "ADR", "RevPAR"]
    for p in report.properties:
        yield [
            p.property_name, p.rental_type, p.occupied_days, p.vacant_days,
            p.occupancy_rate, p.revenue, p.average_daily_rate, p.revpar,
        ]


def _maintenance_rows(db: Session, user: User, year: int, property_id: Optional[int]):
    report = build_maintenance_costs_report(db, user.id, year, property_id)
    yield ["Property", "Requests", "Completed", "Total Cost", "Average Cost"]
    for p in report.by_property:
        yield [p.property_name, p.request_count, p.completed_count, p.total_cost, p.avg_cost]


EXPORTS = {
    "aging": _aging_rows,
    "cash-flow": _cash_flow_rows,
    "lease-expiration": _lease_rows,
    "tenant-payments": _tenant_payment_rows,
    "occupancy": _occupancy_rows,
    "maintenance-costs": _maintenance_rows,
}


@router.get("/export/{report}")
def export_report_csv(
    report: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    property_id: Optional[int] = Query(None),
):
    """Download one report as CSV."""
    rows = EXPORTS.get(report)
    if rows is None:
        raise HTTPException(status_code=404, detail=f"Unknown report: {report}")
    year = year or rent_schedule.utc_today().year

    buf = io.StringIO()
    writer = csv.writer(buf)
    for row in rows(db, current_user, year, property_id):
        writer.writerow(row)
    buf.seek(0)
    return StreamingResponse(
        buf,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={report}-{year}.csv"},
    )
