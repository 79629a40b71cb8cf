from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import date, datetime
from decimal import Decimal

from property_crm.schemas.common import not_null

ExpenseCategory = Literal[
    "maintenance", "utilities", "insurance", "rates_taxes", "cleaning", "supplies", "management", "other"
]


class ExpenseCreate(BaseModel):
    property_id: Optional[int] = None
    maintenance_request_id: Optional[int] = None
    category: ExpenseCategory = "other"
    description: str = Field(min_length=1)
    vendor: Optional[str] = None
    amount: Decimal = Field(gt=0)
    expense_date: date
    paid_date: Optional[date] = None
    status: Literal["pending", "paid"] = "pending"


class ExpenseUpdate(BaseModel):
    property_id: Optional[int] = None
    category: Optional[ExpenseCategory] = None
    description: Optional[str] = None
    vendor: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    expense_date: Optional[date] = None
    paid_date: Optional[date] = None
    status: Optional[Literal["pending", "paid"]] = None

    @field_validator("category", "description", "amount", "expense_date", "status")
    @classmethod
    def required_columns(cls, v):
        return not_null(v)


class ExpenseOut(BaseModel):
    id: int
    property_id: Optional[int] = None
    maintenance_request_id: Optional[int] = None
    category: str
    description: str
    vendor: Optional[str] = None
    amount: Decimal
    expense_date: date
    paid_date: Optional[date] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class ExpenseCategoryTotal(BaseModel):
    category: str
    count: int
    amount: Decimal


class ExpenseSummaryOut(BaseModel):
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    by_category: List[ExpenseCategoryTotal]
