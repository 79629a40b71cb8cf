from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from property_crm.schemas.common import not_null


def _password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("password must be at least 8 characters")
    if not any(c.isdigit() for c in v) or not any(c.isalpha() for c in v):
        raise ValueError("password must contain letters and numbers")
    return v


class RegisterIn(BaseModel):
    email: EmailStr
    password: str
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    company_name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("password")
    @classmethod
    def password_strength(cls, v):
        return _password_strength(v)


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: "UserOut"


class UserOut(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    company_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    is_active: bool
    rental_due_day: int
    created_at: datetime

    class Config:
        from_attributes = True


TokenOut.model_rebuild()


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, v):
        return _password_strength(v)


class ForgotPasswordIn(BaseModel):
    email: EmailStr


class ResetPasswordIn(BaseModel):
    token: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, v):
        return _password_strength(v)


class BankingSettingsOut(BaseModel):
    bank_name: Optional[str] = None
    bank_account_holder: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_branch_code: Optional[str] = None
    bank_account_type: Optional[str] = None
    rental_due_day: int

    class Config:
        from_attributes = True


class BankingSettingsUpdate(BaseModel):
    bank_name: Optional[str] = None
    bank_account_holder: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_branch_code: Optional[str] = None
    bank_account_type: Optional[str] = None
    rental_due_day: Optional[int] = Field(default=None, ge=1, le=31)

    @field_validator("rental_due_day")
    @classmethod
    def required_columns(cls, v):
        return not_null(v)


class AdminUserCreate(BaseModel):
    """Used by admins to create other admins or landlord accounts."""
    email: EmailStr
    password: str
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    company_name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("password")
    @classmethod
    def password_strength(cls, v):
        return _password_strength(v)


class ContactIn(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    subject: Optional[str] = None
    message: str = Field(min_length=1, max_length=5000)
