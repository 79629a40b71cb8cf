"""
Read-only views for users with the `tenant` role.
"""
import io
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.core.auth import require_role
from property_crm.core.invoice import invoice_number, render_invoice_pdf
from property_crm.models.payment import Payment
from property_crm.models.tenant import Tenant
from property_crm.models.user import User
from property_crm.schemas.payment import PaymentOut
from property_crm.schemas.tenant import TenantOut

router = APIRouter(prefix="/portal", tags=["tenant-portal"])

get_tenant_user = require_role("tenant")


def get_portal_tenant(db: Session, user: User) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.portal_user_id == user.id).first()
    if not tenant:
        raise HTTPException(status_code=404, detail="No tenant record linked to this account")
    return tenant


@router.get("/me", response_model=TenantOut)
def portal_profile(db: Session = Depends(get_db), current_user: User = Depends(get_tenant_user)):
    return get_portal_tenant(db, current_user)


@router.get("/payments", response_model=List[PaymentOut])
def portal_payments(db: Session = Depends(get_db), current_user: User = Depends(get_tenant_user)):
    tenant = get_portal_tenant(db, current_user)
    return (
        db.query(Payment)
        .filter(Payment.tenant_id == tenant.id, Payment.user_id == tenant.user_id)
        .order_by(Payment.due_date.desc(), Payment.id.desc())
        .all()
    )


@router.get("/payments/{payment_id}/invoice.pdf")
def portal_invoice_pdf(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_tenant_user),
):
    tenant = get_portal_tenant(db, current_user)
    payment = (
        db.query(Payment)
        .filter(Payment.id == payment_id, Payment.tenant_id == tenant.id, Payment.user_id == tenant.user_id)
        .first()
    )
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")

    filename = f"{invoice_number(payment)}.pdf"
    return StreamingResponse(
        io.BytesIO(render_invoice_pdf(payment)),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
