from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.api.routes.properties import get_owned_property
from property_crm.core.auth import get_landlord
from property_crm.models.maintenance import Task
from property_crm.models.user import User
from property_crm.schemas.maintenance import TaskCreate, TaskOut, TaskUpdate

router = APIRouter(prefix="/tasks", tags=["tasks"])


def get_owned_task(db: Session, user_id: int, task_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id, Task.user_id == user_id).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("", response_model=List[TaskOut])
def list_tasks(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    status: Optional[str] = Query(None, description="todo|in_progress|done"),
    property_id: Optional[int] = Query(None),
    maintenance_request_id: Optional[int] = Query(None),
):
    q = db.query(Task).filter(Task.user_id == current_user.id)
    if status:
        q = q.filter(Task.status == status)
    if property_id is not None:
        q = q.filter(Task.property_id == property_id)
    if maintenance_request_id is not None:
        q = q.filter(Task.maintenance_request_id == maintenance_request_id)
    # Undated tasks last
    return q.order_by(Task.due_date.is_(None), Task.due_date, Task.id).all()


@router.post("", response_model=TaskOut, status_code=201)
def create_task(payload: TaskCreate, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    if payload.property_id is not None:
        get_owned_property(db, current_user.id, payload.property_id)
    task = Task(user_id=current_user.id, **payload.model_dump())
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


@router.patch("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: int,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    task = get_owned_task(db, current_user.id, task_id)
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(task, k, v)
    db.commit()
    db.refresh(task)
    return task


@router.delete("/{task_id}", status_code=204)
def delete_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    task = get_owned_task(db, current_user.id, task_id)
    db.delete(task)
    db.commit()
    return None
