from datetime import date, datetime, time, timezone
from typing import Optional, Union

from property_crm.models.audit_log import AuditLog
from property_crm.models.user import User
from sqlalchemy.orm import Session


def _compute_risk_level(
    entity_type: str,
    action: str,
    status: Optional[str],
    due_at: Optional[datetime],
    explicit: Optional[str] = None,
) -> str:
    if explicit:
        return explicit
    status_l = (status or "").lower()
    if entity_type == "payment" and action in ("refunded", "deleted"):
        return "medium"
    if due_at is None:
        return "low"
    overdue = due_at < datetime.now(timezone.utc)
    if not overdue:
        return "low"
    if entity_type == "payment" and status_l in ("pending", "overdue"):
        return "high"
    if entity_type == "maintenance" and status_l in ("pending", "in_progress"):
        return "high"
    return "low"


def _to_datetime(value: Optional[Union[date, datetime]]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def log_audit(
    db: Session,
    *,
    actor: Optional[User],
    action: str,
    entity_type: str,
    entity_id: str,
    owner_id: Optional[int] = None,
    source: str = "api",
    status: Optional[str] = None,
    due_at: Optional[Union[date, datetime]] = None,
    property_id: Optional[int] = None,
    description: Optional[str] = None,
    risk_level: Optional[str] = None,
) -> AuditLog:
    """Record one audit entry. `actor` is None for cron-driven changes."""
    due_dt = _to_datetime(due_at)
    log = AuditLog(
        actor_id=actor.id if actor else None,
        actor_email=actor.email if actor else None,
        actor_role=actor.role if actor else "system",
        owner_id=owner_id if owner_id is not None else (actor.id if actor else None),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        source=source,
        status=status,
        due_at=due_dt,
        property_id=property_id,
        description=description,
        risk_level=_compute_risk_level(entity_type, action, status, due_dt, risk_level),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log
