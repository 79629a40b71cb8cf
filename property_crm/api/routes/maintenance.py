import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.api.routes.properties import get_owned_property
from property_crm.core import rent_schedule
from property_crm.core.audit import log_audit
from property_crm.core.auth import get_landlord, require_cron_secret
from property_crm.models.maintenance import MaintenanceRequest, Task
from property_crm.models.tenant import Tenant
from property_crm.models.user import User
from property_crm.schemas.maintenance import (
    MaintenanceCreate,
    MaintenanceOut,
    MaintenanceUpdate,
    TaskFromRequestIn,
    TaskOut,
)
from property_crm.services.maintenance import send_follow_ups
from property_crm.services.notifications import notify_maintenance_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


def get_owned_request(db: Session, user_id: int, request_id: int) -> MaintenanceRequest:
    request = (
        db.query(MaintenanceRequest)
        .filter(MaintenanceRequest.id == request_id, MaintenanceRequest.user_id == user_id)
        .first()
    )
    if not request:
        raise HTTPException(status_code=404, detail="Maintenance request not found")
    return request


@router.get("", response_model=List[MaintenanceOut])
def list_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    property_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None, description="pending|in_progress|completed|cancelled"),
    priority: Optional[str] = Query(None, description="low|medium|high|urgent"),
    category: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = db.query(MaintenanceRequest).filter(MaintenanceRequest.user_id == current_user.id)
    if property_id is not None:
        q = q.filter(MaintenanceRequest.property_id == property_id)
    if status:
        q = q.filter(MaintenanceRequest.status == status)
    if priority:
        q = q.filter(MaintenanceRequest.priority == priority)
    if category:
        q = q.filter(MaintenanceRequest.category == category)
    return q.order_by(MaintenanceRequest.created_at.desc(), MaintenanceRequest.id.desc()).offset(offset).limit(limit).all()


@router.post("/send-follow-ups", dependencies=[Depends(require_cron_secret)])
def cron_send_follow_ups(db: Session = Depends(get_db)):
    return send_follow_ups(db)


@router.get("/{request_id}", response_model=MaintenanceOut)
def get_request(request_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    return get_owned_request(db, current_user.id, request_id)


@router.post("", response_model=MaintenanceOut, status_code=201)
def create_request(
    payload: MaintenanceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    prop = get_owned_property(db, current_user.id, payload.property_id)
    if payload.tenant_id is not None:
        tenant = db.query(Tenant).filter(Tenant.id == payload.tenant_id, Tenant.user_id == current_user.id).first()
        if not tenant:
            raise HTTPException(status_code=404, detail="Tenant not found")

    request = MaintenanceRequest(user_id=current_user.id, **payload.model_dump())
    db.add(request)
    db.commit()
    db.refresh(request)

    log_audit(
        db,
        actor=current_user,
        action="created",
        entity_type="maintenance",
        entity_id=str(request.id),
        status=request.status,
        due_at=request.scheduled_date,
        property_id=prop.id,
        description=f"Maintenance request '{request.title}' ({request.priority})",
    )
    notify_maintenance_request(db, current_user.id, request.title, prop.name, request.id)
    return request


@router.patch("/{request_id}", response_model=MaintenanceOut)
def update_request(
    request_id: int,
    payload: MaintenanceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    request = get_owned_request(db, current_user.id, request_id)
    previous_status = request.status
    data = payload.model_dump(exclude_unset=True)

    for k, v in data.items():
        setattr(request, k, v)

    if request.status == "completed" and previous_status != "completed" and request.completed_date is None:
        request.completed_date = rent_schedule.utc_today()
    # Any change restarts the follow-up clock
    request.follow_up_sent = False
    request.follow_up_sent_at = None

    db.commit()
    db.refresh(request)

    log_audit(
        db,
        actor=current_user,
        action="updated",
        entity_type="maintenance",
        entity_id=str(request.id),
        status=request.status,
        due_at=request.scheduled_date,
        property_id=request.property_id,
        description=f"Maintenance request '{request.title}' updated: {', '.join(sorted(data)) or 'no changes'}",
    )
    return request


@router.delete("/{request_id}", status_code=204)
def delete_request(request_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    request = get_owned_request(db, current_user.id, request_id)
    title, property_id = request.title, request.property_id
    db.delete(request)
    db.commit()

    log_audit(
        db,
        actor=current_user,
        action="deleted",
        entity_type="maintenance",
        entity_id=str(request_id),
        property_id=property_id,
        description=f"Maintenance request '{title}' deleted",
    )
    return None


@router.post("/{request_id}/create-task", response_model=TaskOut, status_code=201)
def create_task_from_request(
    request_id: int,
    payload: TaskFromRequestIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    request = get_owned_request(db, current_user.id, request_id)
    prop = request.property

    task = Task(
        user_id=current_user.id,
        property_id=request.property_id,
        maintenance_request_id=request.id,
        title=payload.title or f"Maintenance: {request.title}",
        description=payload.description
        or f"{request.description or request.title}\n\nProperty: {prop.name if prop else '-'}",
        priority=payload.priority or request.priority,
        due_date=payload.due_date or request.scheduled_date,
    )
    db.add(task)
    if request.status == "pending":
        request.status = "in_progress"
    db.commit()
    db.refresh(task)
    return task
