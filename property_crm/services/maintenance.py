import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from property_crm.core.config import settings
from property_crm.core.email import send_email
from property_crm.core.rent_schedule import as_utc
from property_crm.models.maintenance import MaintenanceRequest
from property_crm.services.notifications import notify_stale_maintenance

logger = logging.getLogger(__name__)

STALE_AFTER_DAYS = 5
OPEN_STATUSES = ("pending", "in_progress")


def _follow_up_body(request: MaintenanceRequest, days: int) -> str:
    prop = request.property
    return (
        f"Hi {request.owner.first_name},\n\n"
        f"The maintenance request '{request.title}' at {prop.name if prop else 'your property'} "
        f"is still {request.status.replace('_', ' ')} and has not been updated for {days} days.\n\n"
        f"Priority: {request.priority}\n"
        f"Assigned to: {request.assigned_to or 'Unassigned'}\n\n"
        f"Review it here: {settings.APP_URL}/maintenance\n"
    )


def send_follow_ups(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Email the landlord once about each open request untouched for STALE_AFTER_DAYS."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=STALE_AFTER_DAYS)

    stale = (
        db.query(MaintenanceRequest)
        .filter(
            MaintenanceRequest.status.in_(OPEN_STATUSES),
            MaintenanceRequest.follow_up_sent == False,  # noqa: E712
            MaintenanceRequest.updated_at <= cutoff,
        )
        .order_by(MaintenanceRequest.id)
        .all()
    )

    sent = failed = 0
    for request in stale:
        days = (now - as_utc(request.updated_at)).days
        result = send_email(
            to=request.owner.email,
            subject=f"Follow-up: maintenance request '{request.title}'",
            text_body=_follow_up_body(request, days),
        )
        if not result.success:
            failed += 1
            logger.error("Follow-up email for maintenance request %s failed: %s", request.id, result.error)
            continue

        # Direct UPDATE keeps updated_at (the staleness clock) untouched
        db.query(MaintenanceRequest).filter(MaintenanceRequest.id == request.id).update(
            {
                MaintenanceRequest.follow_up_sent: True,
                MaintenanceRequest.follow_up_sent_at: now,
                MaintenanceRequest.updated_at: request.updated_at,
            },
            synchronize_session=False,
        )
        db.commit()
        sent += 1
        notify_stale_maintenance(db, request.user_id, request.title, days, request.id)

    logger.info("Maintenance follow-ups: %d stale, %d sent, %d failed", len(stale), sent, failed)
    return {"stale_requests": len(stale), "sent": sent, "failed": failed}
