from sqlalchemy import Column, String, Integer, DateTime, Date, ForeignKey, Numeric, Boolean, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from property_crm.core.database import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    owner = relationship("User")

    # A payment can belong to a booking, a tenant, both or neither (e.g. a deposit)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True, index=True)
    booking = relationship("Booking", back_populates="payments")
    tenant = relationship("Tenant", back_populates="payments")
    property = relationship("Property")

    payment_reference = Column(String, nullable=False, index=True)
    # rent / deposit / booking / cleaning_fee / utilities / late_fee / damage / refund / other
    payment_type = Column(String, nullable=False, default="rent", index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, nullable=False, default="ZAR")
    payment_method = Column(String, nullable=True)  # eft / cash / card / stripe / other

    payment_date = Column(Date, nullable=True, index=True)
    due_date = Column(Date, nullable=True, index=True)

    # pending -> paid / overdue; paid -> refunded; failed
    status = Column(String, nullable=False, default="pending", index=True)

    invoice_number = Column(String, nullable=True)
    description = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    bank_reference = Column(String, nullable=True)

    # One reminder per due cycle: set once the reminder email is delivered
    reminder_sent = Column(Boolean, nullable=False, default=False)
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    reminder_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
