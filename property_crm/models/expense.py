from sqlalchemy import Column, String, Integer, DateTime, Date, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from property_crm.core.database import Base


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True, index=True)
    maintenance_request_id = Column(
        Integer, ForeignKey("maintenance_requests.id", ondelete="SET NULL"), nullable=True, index=True
    )
    property = relationship("Property")
    maintenance_request = relationship("MaintenanceRequest", back_populates="expenses")

    # maintenance / utilities / insurance / rates_taxes / cleaning / supplies / management / other
    category = Column(String, nullable=False, default="other", index=True)
    description = Column(String, nullable=False)
    vendor = Column(String, nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)

    expense_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="pending")  # pending / paid

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
