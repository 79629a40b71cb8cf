import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.core.auth import get_landlord, require_role
from property_crm.core.security import hash_password
from property_crm.models.user import User
from property_crm.schemas.user import AdminUserCreate, UserOut
from property_crm.services.billing import backfill_payment_properties, recompute_next_payment_due

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

get_admin = require_role("admin")


def _create_user(db: Session, payload: AdminUserCreate, role: str) -> User:
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="An account with this email already exists")
    user = User(
        email=email,
        hashed_password=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        company_name=payload.company_name,
        phone=payload.phone,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.get("/system-admins", response_model=List[UserOut])
def list_system_admins(db: Session = Depends(get_db), current_user: User = Depends(get_admin)):
    return db.query(User).filter(User.role == "admin").order_by(User.id).all()


@router.post("/system-admins", response_model=UserOut, status_code=201)
def create_system_admin(
    payload: AdminUserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin),
):
    user = _create_user(db, payload, "admin")
    logger.info("Admin %s created system admin %s", current_user.id, user.id)
    return user


@router.delete("/system-admins/{user_id}", status_code=204)
def delete_system_admin(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin),
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot remove your own admin account")
    user = db.query(User).filter(User.id == user_id, User.role == "admin").first()
    if not user:
        raise HTTPException(status_code=404, detail="Admin not found")
    db.delete(user)
    db.commit()
    logger.info("Admin %s removed system admin %s", current_user.id, user_id)
    return None


@router.post("/users", response_model=UserOut, status_code=201)
def create_landlord_user(
    payload: AdminUserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin),
):
    user = _create_user(db, payload, "landlord")
    logger.info("Admin %s created landlord %s", current_user.id, user.id)
    return user


@router.post("/set-next-payment-due")
def set_next_payment_due(db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    """Recompute next_payment_due for the caller's active rent-paying tenants."""
    updated = recompute_next_payment_due(db, current_user)
    return {"updated": len(updated), "tenants": updated}


@router.post("/backfill-payment-properties")
def backfill_properties(db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    return backfill_payment_properties(db, current_user)
