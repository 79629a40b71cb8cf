from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, case
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.api.routes.properties import get_owned_property
from property_crm.core.auth import get_landlord
from property_crm.models.expense import Expense
from property_crm.models.maintenance import MaintenanceRequest
from property_crm.models.user import User
from property_crm.schemas.expense import (
    ExpenseCreate,
    ExpenseOut,
    ExpenseSummaryOut,
    ExpenseUpdate,
)

router = APIRouter(prefix="/expenses", tags=["expenses"])


def get_owned_expense(db: Session, user_id: int, expense_id: int) -> Expense:
    expense = db.query(Expense).filter(Expense.id == expense_id, Expense.user_id == user_id).first()
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


def apply_expense_filters(
    q,
    property_id: Optional[int],
    category: Optional[str],
    status: Optional[str],
    start_date: Optional[date],
    end_date: Optional[date],
):
    if property_id is not None:
        q = q.filter(Expense.property_id == property_id)
    if category:
        q = q.filter(Expense.category == category)
    if status:
        q = q.filter(Expense.status == status)
    if start_date:
        q = q.filter(Expense.expense_date >= start_date)
    if end_date:
        q = q.filter(Expense.expense_date <= end_date)
    return q


@router.get("", response_model=List[ExpenseOut])
def list_expenses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    property_id: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="pending|paid"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = db.query(Expense).filter(Expense.user_id == current_user.id)
    q = apply_expense_filters(q, property_id, category, status, start_date, end_date)
    return q.order_by(Expense.expense_date.desc(), Expense.id.desc()).offset(offset).limit(limit).all()


@router.get("/summary", response_model=ExpenseSummaryOut)
def expense_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    property_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    q = db.query(Expense).filter(Expense.user_id == current_user.id)
    q = apply_expense_filters(q, property_id, None, None, start_date, end_date)

    rows = (
        q.with_entities(
            Expense.category,
            func.count(Expense.id),
            func.coalesce(func.sum(Expense.amount), 0),
            func.coalesce(func.sum(case((Expense.status == "paid", Expense.amount), else_=0)), 0),
        )
        .group_by(Expense.category)
        .all()
    )

    total = sum((Decimal(str(r[2])) for r in rows), Decimal("0"))
    paid = sum((Decimal(str(r[3])) for r in rows), Decimal("0"))
    return ExpenseSummaryOut(
        total_amount=total,
        paid_amount=paid,
        pending_amount=total - paid,
        by_category=sorted(
            ({"category": r[0], "count": int(r[1]), "amount": Decimal(str(r[2]))} for r in rows),
            key=lambda item: item["amount"],
            reverse=True,
        ),
    )


@router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense(expense_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    return get_owned_expense(db, current_user.id, expense_id)


@router.post("", response_model=ExpenseOut, status_code=201)
def create_expense(
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    data = payload.model_dump()
    if payload.property_id is not None:
        get_owned_property(db, current_user.id, payload.property_id)
    if payload.maintenance_request_id is not None:
        request = (
            db.query(MaintenanceRequest)
            .filter(
                MaintenanceRequest.id == payload.maintenance_request_id,
                MaintenanceRequest.user_id == current_user.id,
            )
            .first()
        )
        if not request:
            raise HTTPException(status_code=404, detail="Maintenance request not found")
        if data["property_id"] is None:
            data["property_id"] = request.property_id

    if data["status"] == "paid" and data["paid_date"] is None:
        data["paid_date"] = data["expense_date"]

    expense = Expense(user_id=current_user.id, **data)
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return expense


@router.patch("/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    expense = get_owned_expense(db, current_user.id, expense_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("property_id") is not None:
        get_owned_property(db, current_user.id, data["property_id"])

    for k, v in data.items():
        setattr(expense, k, v)
    if expense.status == "paid" and expense.paid_date is None:
        expense.paid_date = expense.expense_date

    db.commit()
    db.refresh(expense)
    return expense


@router.delete("/{expense_id}", status_code=204)
def delete_expense(expense_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    expense = get_owned_expense(db, current_user.id, expense_id)
    db.delete(expense)
    db.commit()
    return None
