"""
Pydantic schemas for the Reports endpoints.
Amounts are floats rounded to 2 decimals, as the dashboards chart them directly.
"""
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel


# --- Aging receivables ---

class AgingPaymentItem(BaseModel):
    payment_id: int
    payment_reference: str
    payment_type: str
    status: str
    tenant_id: Optional[int] = None
    tenant_name: Optional[str] = None
    property_id: Optional[int] = None
    property_name: Optional[str] = None
    due_date: Optional[date] = None
    amount: float
    days_overdue: int
    aging_bucket: str


class AgingBreakdownItem(BaseModel):
    """Outstanding amounts for one tenant or one property, split per bucket."""
    id: int
    name: str
    total: float
    buckets: Dict[str, float]


class AgingSummary(BaseModel):
    total_outstanding: float
    payment_count: int
    buckets: Dict[str, float]
    counts: Dict[str, int]


class AgingReceivablesOut(BaseModel):
    as_of: date
    payments: List[AgingPaymentItem]
    tenant_breakdown: List[AgingBreakdownItem]
    property_breakdown: List[AgingBreakdownItem]
    summary: AgingSummary


# --- Cash flow ---

class CashFlowMonth(BaseModel):
    month: str  # "Jan 2025"
    month_index: int
    inflows: float
    outflows: float
    net_cash_flow: float


class CashFlowOut(BaseModel):
    year: int
    months: List[CashFlowMonth]
    total_inflows: float
    total_outflows: float
    net_cash_flow: float
    inflows_by_type: Dict[str, float]
    outflows_by_category: Dict[str, float]


# --- Lease expiration ---

class LeaseExpiryItem(BaseModel):
    lease_id: int
    tenant_id: int
    tenant_name: str
    tenant_email: Optional[str] = None
    property_id: int
    property_name: str
    lease_end_date: date
    days_until_expiry: int
    expiry_window: str
    monthly_rent: float


class LeaseExpirationOut(BaseModel):
    window: str
    leases: List[LeaseExpiryItem]
    expired: List[LeaseExpiryItem]
    counts: Dict[str, int]
    monthly_rent_at_risk: float


# --- Tenant payments ---

class TenantPaymentItem(BaseModel):
    payment_id: int
    tenant_id: int
    tenant_name: str
    property_name: Optional[str] = None
    payment_type: str
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    amount: float
    status: str
    is_on_time: bool
    days_late: int


class TenantPunctualityItem(BaseModel):
    tenant_id: int
    tenant_name: str
    total_payments: int
    paid_amount: float
    pending_amount: float
    overdue_amount: float
    on_time_count: int
    late_count: int
    punctuality_rate: float


class TenantPaymentsOut(BaseModel):
    payments: List[TenantPaymentItem]
    tenants: List[TenantPunctualityItem]
    total_collected: float
    total_outstanding: float
    overall_punctuality_rate: float


# --- Occupancy ---

class PropertyOccupancyItem(BaseModel):
    property_id: int
    property_name: str
    rental_type: str
    total_days: int
    occupied_days: int
    vacant_days: int
    occupancy_rate: float
    total_bookings: int
    revenue: float
    average_daily_rate: float
    revpar: float


class OccupancyOut(BaseModel):
    start_date: date
    end_date: date
    properties: List[PropertyOccupancyItem]
    overall_occupancy_rate: float


# --- Maintenance costs ---

class MaintenancePropertyCost(BaseModel):
    property_id: int
    property_name: str
    request_count: int
    completed_count: int
    total_cost: float
    avg_cost: float


class MaintenanceCategoryCost(BaseModel):
    category: str
    request_count: int
    total_cost: float
    avg_cost: float


class MaintenanceMonthCost(BaseModel):
    month: str
    cost: float
    count: int


class MaintenanceCostsOut(BaseModel):
    year: int
    total_cost: float
    request_count: int
    avg_resolution_days: Optional[float] = None
    by_property: List[MaintenancePropertyCost]
    by_category: List[MaintenanceCategoryCost]
    monthly: List[MaintenanceMonthCost]


# --- Dashboard ---

class DashboardOut(BaseModel):
    total_properties: int
    active_tenants: int
    upcoming_check_ins: int
    active_bookings: int
    pending_maintenance: int
    open_tasks: int
    revenue_this_month: float
    expenses_this_month: float
    outstanding_amount: float
    overdue_payments: int
    unread_notifications: int
