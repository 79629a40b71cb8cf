from sqlalchemy import Column, String, Integer, DateTime, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from property_crm.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    email = Column(String, nullable=False, unique=True, index=True)
    hashed_password = Column(String, nullable=False)

    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    company_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    role = Column(String, nullable=False, default="landlord")  # landlord / admin / tenant
    is_active = Column(Boolean, nullable=False, default=True)

    # Day of month rent falls due for all of this landlord's tenants (capped at 28 when used)
    rental_due_day = Column(Integer, nullable=False, default=1)

    # Banking details printed on invoices
    bank_name = Column(String, nullable=True)
    bank_account_holder = Column(String, nullable=True)
    bank_account_number = Column(String, nullable=True)
    bank_branch_code = Column(String, nullable=True)
    bank_account_type = Column(String, nullable=True)

    reset_token = Column(String, nullable=True, index=True)
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    properties = relationship("Property", back_populates="owner", cascade="all, delete-orphan")
    tenants = relationship(
        "Tenant",
        back_populates="owner",
        cascade="all, delete-orphan",
        foreign_keys="Tenant.user_id",
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def display_name(self) -> str:
        return self.company_name or f"{self.first_name} {self.last_name}"
