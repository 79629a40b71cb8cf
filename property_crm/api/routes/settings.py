from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.core.auth import get_landlord
from property_crm.models.user import User
from property_crm.schemas.user import BankingSettingsOut, BankingSettingsUpdate

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/banking", response_model=BankingSettingsOut)
def get_banking(current_user: User = Depends(get_landlord)):
    return current_user


@router.patch("/banking", response_model=BankingSettingsOut)
def update_banking(
    payload: BankingSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    """Banking details appear on invoices; rental_due_day drives every tenant's due date."""
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(current_user, k, v)
    db.commit()
    db.refresh(current_user)
    return current_user
