import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, selectinload

from property_crm.api.deps import get_db
from property_crm.api.routes.properties import get_owned_property
from property_crm.core import rent_schedule
from property_crm.core.audit import log_audit
from property_crm.core.auth import get_landlord
from property_crm.core.config import settings
from property_crm.core.email import send_email
from property_crm.core.security import generate_password, hash_password
from property_crm.models.document import DocumentFolder
from property_crm.models.tenant import Lease, Tenant
from property_crm.models.user import User
from property_crm.schemas.document import FolderOut
from property_crm.schemas.tenant import (
    LeaseOut,
    PortalAccessOut,
    TenantCreate,
    TenantOut,
    TenantUpdate,
)
from property_crm.services.folders import build_folder_tree, create_default_folders

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenants"])


class LeaseCreate(BaseModel):
    property_id: int
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    monthly_rent: Optional[Decimal] = Field(default=None, ge=0)
    deposit_paid: Decimal = Field(default=Decimal("0"), ge=0)


def get_owned_tenant(db: Session, user_id: int, tenant_id: int) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id, Tenant.user_id == user_id).first()
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant


def _ensure_unique_email(db: Session, user_id: int, email: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(Tenant).filter(Tenant.user_id == user_id, Tenant.email == email)
    if exclude_id is not None:
        q = q.filter(Tenant.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail="A tenant with this email already exists")


@router.get("", response_model=List[TenantOut])
def list_tenants(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    status: Optional[str] = Query(None, description="active|inactive|former"),
    property_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="search by name/email/phone"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = (
        db.query(Tenant)
        .options(selectinload(Tenant.leases))
        .filter(Tenant.user_id == current_user.id)
    )
    if status:
        q = q.filter(Tenant.status == status)
    if property_id is not None:
        q = q.filter(Tenant.leases.any(Lease.property_id == property_id))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            Tenant.first_name.ilike(like)
            | Tenant.last_name.ilike(like)
            | Tenant.email.ilike(like)
            | Tenant.phone.ilike(like)
        )
    return q.order_by(Tenant.last_name, Tenant.first_name).offset(offset).limit(limit).all()


@router.get("/leases", response_model=List[LeaseOut])
def list_all_leases(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
    active_only: bool = Query(True),
):
    q = db.query(Lease).filter(Lease.user_id == current_user.id)
    if active_only:
        q = q.filter(Lease.is_active == True)  # noqa: E712
    return q.order_by(Lease.lease_end_date).all()


@router.get("/{tenant_id}", response_model=TenantOut)
def get_tenant(tenant_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    return get_owned_tenant(db, current_user.id, tenant_id)


@router.post("", response_model=TenantOut, status_code=201)
def create_tenant(
    payload: TenantCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    """
    Creates the tenant with the standard document folders and, when a
    property is given, an active lease on it.
    """
    email = payload.email.lower()
    _ensure_unique_email(db, current_user.id, email)

    prop = get_owned_property(db, current_user.id, payload.property_id) if payload.property_id else None

    data = payload.model_dump(exclude={"property_id", "lease_start_date", "lease_end_date", "deposit_paid"})
    data["email"] = email
    tenant = Tenant(user_id=current_user.id, **data)
    if tenant.monthly_rent is not None and tenant.status == "active":
        tenant.next_payment_due = rent_schedule.next_payment_due(current_user.rental_due_day)
    db.add(tenant)
    db.flush()

    if prop is not None:
        db.add(
            Lease(
                user_id=current_user.id,
                tenant_id=tenant.id,
                property_id=prop.id,
                lease_start_date=payload.lease_start_date,
                lease_end_date=payload.lease_end_date,
                monthly_rent=payload.monthly_rent,
                deposit_paid=payload.deposit_paid,
            )
        )
    create_default_folders(db, current_user.id, tenant.id, prop.id if prop else None)

    db.commit()
    db.refresh(tenant)
    logger.info("Tenant %s created for landlord %s", tenant.id, current_user.id)

    log_audit(
        db,
        actor=current_user,
        action="created",
        entity_type="tenant",
        entity_id=str(tenant.id),
        status=tenant.status,
        property_id=prop.id if prop else None,
        description=f"Tenant {tenant.full_name} created",
    )
    return tenant


@router.patch("/{tenant_id}", response_model=TenantOut)
def update_tenant(
    tenant_id: int,
    payload: TenantUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    tenant = get_owned_tenant(db, current_user.id, tenant_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("email"):
        data["email"] = data["email"].lower()
        _ensure_unique_email(db, current_user.id, data["email"], exclude_id=tenant.id)
        portal_user = tenant.portal_user
        if portal_user is not None and portal_user.email != data["email"]:
            taken = db.query(User).filter(User.email == data["email"], User.id != portal_user.id).first()
            if taken:
                raise HTTPException(status_code=409, detail="Email already registered to another account")
            portal_user.email = data["email"]

    for k, v in data.items():
        setattr(tenant, k, v)

    # Leaving the property ends the lease
    if data.get("status") in ("inactive", "former"):
        for lease in tenant.leases:
            lease.is_active = False

    # Rent schedule starts when a tenant becomes billable and stops when they are not
    if "next_payment_due" not in data:
        if tenant.monthly_rent is None or tenant.status != "active":
            tenant.next_payment_due = None
        elif tenant.next_payment_due is None:
            tenant.next_payment_due = rent_schedule.next_payment_due(current_user.rental_due_day)

    db.commit()
    db.refresh(tenant)

    log_audit(
        db,
        actor=current_user,
        action="updated",
        entity_type="tenant",
        entity_id=str(tenant.id),
        status=tenant.status,
        description=f"Tenant {tenant.full_name} updated: {', '.join(sorted(data)) or 'no changes'}",
    )
    return tenant


@router.delete("/{tenant_id}", status_code=204)
def delete_tenant(tenant_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    tenant = get_owned_tenant(db, current_user.id, tenant_id)
    name = tenant.full_name
    if tenant.portal_user is not None:
        db.delete(tenant.portal_user)
    db.query(DocumentFolder).filter(DocumentFolder.tenant_id == tenant.id).delete()
    db.delete(tenant)
    db.commit()

    log_audit(
        db,
        actor=current_user,
        action="deleted",
        entity_type="tenant",
        entity_id=str(tenant_id),
        description=f"Tenant {name} deleted",
    )
    return None


@router.get("/{tenant_id}/leases", response_model=List[LeaseOut])
def list_tenant_leases(
    tenant_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    tenant = get_owned_tenant(db, current_user.id, tenant_id)
    return tenant.leases


@router.post("/{tenant_id}/leases", response_model=LeaseOut, status_code=201)
def create_lease(
    tenant_id: int,
    payload: LeaseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    """A tenant holds one active lease; starting a new one ends the previous."""
    tenant = get_owned_tenant(db, current_user.id, tenant_id)
    prop = get_owned_property(db, current_user.id, payload.property_id)
    if payload.lease_start_date and payload.lease_end_date and payload.lease_end_date <= payload.lease_start_date:
        raise HTTPException(status_code=400, detail="lease_end_date must be after lease_start_date")

    for lease in tenant.leases:
        lease.is_active = False

    lease = Lease(
        user_id=current_user.id,
        tenant_id=tenant.id,
        property_id=prop.id,
        lease_start_date=payload.lease_start_date,
        lease_end_date=payload.lease_end_date,
        monthly_rent=payload.monthly_rent if payload.monthly_rent is not None else tenant.monthly_rent,
        deposit_paid=payload.deposit_paid,
    )
    db.add(lease)
    db.commit()
    db.refresh(lease)
    return lease


@router.get("/{tenant_id}/folders", response_model=List[FolderOut])
def list_tenant_folders(
    tenant_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    tenant = get_owned_tenant(db, current_user.id, tenant_id)
    folders = (
        db.query(DocumentFolder)
        .filter(DocumentFolder.user_id == current_user.id, DocumentFolder.tenant_id == tenant.id)
        .all()
    )
    return build_folder_tree(db, folders)


def _portal_email_body(tenant: Tenant, landlord: User, password: str) -> str:
    return (
        f"Hi {tenant.first_name},\n\n"
        f"{landlord.display_name} has given you access to the tenant portal, where you can "
        "view your payments and download invoices.\n\n"
        f"Login: {settings.APP_URL}/login\n"
        f"Email: {tenant.email}\n"
        f"Temporary password: {password}\n\n"
        "Please change your password after your first login."
    )


@router.post("/{tenant_id}/portal-access", response_model=PortalAccessOut)
def grant_portal_access(
    tenant_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    """Create (or re-enable) the tenant's login and email a fresh temporary password."""
    tenant = get_owned_tenant(db, current_user.id, tenant_id)
    password = generate_password()

    portal_user = tenant.portal_user
    if portal_user is None:
        if db.query(User).filter(User.email == tenant.email).first():
            raise HTTPException(status_code=409, detail="A user with this email already exists")
        portal_user = User(
            email=tenant.email,
            hashed_password=hash_password(password),
            first_name=tenant.first_name,
            last_name=tenant.last_name,
            phone=tenant.phone,
            role="tenant",
        )
        db.add(portal_user)
        db.flush()
        tenant.portal_user_id = portal_user.id
    else:
        portal_user.hashed_password = hash_password(password)
        portal_user.is_active = True
    db.commit()

    result = send_email(
        to=tenant.email,
        subject="Your tenant portal access",
        text_body=_portal_email_body(tenant, current_user, password),
        reply_to=current_user.email,
    )
    if not result.success:
        logger.error("Portal access email for tenant %s failed: %s", tenant.id, result.error)

    log_audit(
        db,
        actor=current_user,
        action="portal_access_granted",
        entity_type="tenant",
        entity_id=str(tenant.id),
        description=f"Portal access granted to {tenant.full_name}",
    )
    return PortalAccessOut(
        tenant_id=tenant.id,
        portal_user_id=portal_user.id,
        email=tenant.email,
        enabled=True,
        email_sent=result.success,
    )


@router.delete("/{tenant_id}/portal-access", response_model=PortalAccessOut)
def revoke_portal_access(
    tenant_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    tenant = get_owned_tenant(db, current_user.id, tenant_id)
    if tenant.portal_user is None:
        raise HTTPException(status_code=404, detail="Tenant has no portal access")

    tenant.portal_user.is_active = False
    db.commit()

    log_audit(
        db,
        actor=current_user,
        action="portal_access_revoked",
        entity_type="tenant",
        entity_id=str(tenant.id),
        description=f"Portal access revoked for {tenant.full_name}",
    )
    return PortalAccessOut(
        tenant_id=tenant.id,
        portal_user_id=tenant.portal_user_id,
        email=tenant.email,
        enabled=False,
    )
