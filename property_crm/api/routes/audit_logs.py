from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.core.auth import require_role
from property_crm.models.audit_log import AuditLog
from property_crm.models.user import User
from property_crm.schemas.audit_log import AuditLogOut

router = APIRouter(prefix="/audit-logs", tags=["audit-logs"])

get_audit_viewer = require_role("landlord", "admin")

RETENTION_DAYS = 90


def visible_logs_query(db: Session, user: User):
    """Admins see every entry; landlords the entries of their own portfolio."""
    q = db.query(AuditLog)
    if user.role != "admin":
        q = q.filter(AuditLog.owner_id == user.id)
    return q


def _is_overdue(log: AuditLog) -> bool:
    if not log.due_at:
        return False
    due_at = log.due_at if log.due_at.tzinfo else log.due_at.replace(tzinfo=timezone.utc)
    return due_at < datetime.now(timezone.utc) and (log.status or "").lower() in ("pending", "overdue")


@router.get("", response_model=List[AuditLogOut])
def list_audit_logs(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_audit_viewer),
    start_date: Optional[datetime] = Query(None, description="ISO date-time"),
    end_date: Optional[datetime] = Query(None, description="ISO date-time"),
    actor: Optional[str] = Query(None, description="Filter by actor email"),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    risk_level: Optional[str] = Query(None, description="low|medium|high"),
    high_risk_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = visible_logs_query(db, current_user)

    if start_date:
        q = q.filter(AuditLog.created_at >= start_date)
    if end_date:
        q = q.filter(AuditLog.created_at <= end_date)
    if actor:
        q = q.filter(AuditLog.actor_email == actor.lower())
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditLog.entity_id == entity_id)
    if action:
        q = q.filter(AuditLog.action == action)
    if risk_level:
        q = q.filter(AuditLog.risk_level == risk_level)

    logs = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()

    if high_risk_only:
        logs = [log for log in logs if _is_overdue(log) or log.risk_level == "high"]
    return logs


@router.get("/stats")
def audit_log_stats(db: Session = Depends(get_db), current_user: User = Depends(get_audit_viewer)):
    start_today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    q = visible_logs_query(db, current_user)

    logs = q.all()
    return {
        "total": len(logs),
        "today": q.filter(AuditLog.created_at >= start_today).count(),
        "high_risk": sum(1 for log in logs if _is_overdue(log) or log.risk_level == "high"),
        "deletions": sum(1 for log in logs if log.action == "deleted"),
        "retention_days": RETENTION_DAYS,
    }
