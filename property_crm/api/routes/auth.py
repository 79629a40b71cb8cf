import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.core.auth import get_current_user
from property_crm.core.config import settings
from property_crm.core.email import send_email
from property_crm.core.rent_schedule import as_utc
from property_crm.core.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    verify_password,
)
from property_crm.models.user import User
from property_crm.schemas.user import (
    ChangePasswordIn,
    ForgotPasswordIn,
    LoginIn,
    RegisterIn,
    ResetPasswordIn,
    TokenOut,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_for(user: User) -> TokenOut:
    return TokenOut(access_token=create_access_token(user.id, user.role), user=UserOut.model_validate(user))


@router.post("/register", response_model=TokenOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    """Self-service sign-up; every new account is a landlord."""
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
        role="landlord",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered landlord %s", user.id)
    return _token_for(user)


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    return _token_for(user)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/change-password")
def change_password(
    payload: ChangePasswordIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise HTTPException(status_code=400, detail="New password must be different from the current password")

    current_user.hashed_password = hash_password(payload.new_password)
    db.commit()
    return {"message": "Password updated"}


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordIn, db: Session = Depends(get_db)):
    """Always answers 200 so the endpoint cannot reveal which emails have accounts."""
    response = {"message": "If an account exists for that email, a reset link has been sent"}

    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user or not user.is_active:
        return response

    user.reset_token = generate_reset_token()
    user.reset_token_expires_at = datetime.now(timezone.utc) + timedelta(
        minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
    )
    db.commit()

    link = f"{settings.APP_URL}/reset-password?token={user.reset_token}"
    result = send_email(
        to=user.email,
        subject="Reset your password",
        text_body=(
            f"Hi {user.first_name},\n\n"
            f"Use the link below to choose a new password. It expires in "
            f"{settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.\n\n{link}\n\n"
            "If you did not ask for this, you can ignore this email."
        ),
    )
    if not result.success:
        logger.error("Password reset email for user %s failed: %s", user.id, result.error)
    return response


@router.post("/reset-password")
def reset_password(payload: ResetPasswordIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.reset_token == payload.token).first()
    expires_at = as_utc(user.reset_token_expires_at) if user else None
    if not user or not expires_at or expires_at < datetime.now(timezone.utc):
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user.hashed_password = hash_password(payload.new_password)
    user.reset_token = None
    user.reset_token_expires_at = None
    db.commit()
    return {"message": "Password has been reset"}
