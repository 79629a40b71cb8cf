from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Boolean, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from property_crm.core.database import Base


class Automation(Base):
    __tablename__ = "automations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    # booking_created / booking_confirmed / check_in_reminder / check_in_instructions /
    # check_out_reminder / check_out_instructions / review_request / booking_completed
    trigger_type = Column(String, nullable=False, index=True)
    trigger_offset = Column(Integer, nullable=False, default=0)  # hours, may be negative
    trigger_time_of_day = Column(String, nullable=True)  # "HH:MM"

    message_type = Column(String, nullable=False, default="email")  # email / sms / whatsapp / in_app
    subject = Column(String, nullable=True)
    body_template = Column(Text, nullable=False)

    apply_to_rental_type = Column(String, nullable=True)  # short_term / long_term / None = both
    property_ids = Column(JSON, nullable=False, default=list)  # empty = every property

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    total_sent = Column(Integer, nullable=False, default=0)
    total_failed = Column(Integer, nullable=False, default=0)

    scheduled_messages = relationship("ScheduledMessage", back_populates="automation")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ScheduledMessage(Base):
    __tablename__ = "scheduled_messages"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    automation_id = Column(Integer, ForeignKey("automations.id", ondelete="SET NULL"), nullable=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True, index=True)
    automation = relationship("Automation", back_populates="scheduled_messages")
    booking = relationship("Booking", back_populates="scheduled_messages")

    recipient_name = Column(String, nullable=True)
    recipient_email = Column(String, nullable=True)
    recipient_phone = Column(String, nullable=True)

    message_type = Column(String, nullable=False, default="email")
    subject = Column(String, nullable=True)
    body = Column(Text, nullable=False)

    scheduled_for = Column(DateTime(timezone=True), nullable=False, index=True)
    # pending -> sending -> sent / failed; pending -> cancelled
    status = Column(String, nullable=False, default="pending", index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
