import builtins

from sqlalchemy import Column, String, Integer, DateTime, Date, ForeignKey, Numeric, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from property_crm.core.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)

    # Landlord that manages this tenant
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    owner = relationship("User", back_populates="tenants", foreign_keys=[user_id])

    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True)
    id_number = Column(String, nullable=True)

    status = Column(String, nullable=False, default="active")  # active / inactive / former

    monthly_rent = Column(Numeric(10, 2), nullable=True)
    next_payment_due = Column(Date, nullable=True, index=True)

    auto_send_reminder = Column(Boolean, nullable=False, default=True)
    reminder_days_before = Column(Integer, nullable=True, default=3)

    # Login created through "portal access"
    portal_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    portal_user = relationship("User", foreign_keys=[portal_user_id])

    leases = relationship("Lease", back_populates="tenant", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="tenant")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def active_lease(self):
        for lease in self.leases:
            if lease.is_active:
                return lease
        return None

    @property
    def has_portal_access(self) -> bool:
        return self.portal_user is not None and self.portal_user.is_active


class Lease(Base):
    """Tenant <-> property link for long-term rentals."""

    __tablename__ = "leases"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant = relationship("Tenant", back_populates="leases")
    property = relationship("Property", back_populates="leases")

    lease_start_date = Column(Date, nullable=True)
    lease_end_date = Column(Date, nullable=True, index=True)
    monthly_rent = Column(Numeric(10, 2), nullable=True)
    deposit_paid = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # `property` is the relationship inside this class body
    @builtins.property
    def property_name(self):
        return self.property.name if self.property else None

    @builtins.property
    def tenant_name(self):
        return self.tenant.full_name if self.tenant else None
