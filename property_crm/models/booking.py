import builtins

from sqlalchemy import Column, String, Integer, DateTime, Date, ForeignKey, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from property_crm.core.database import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    property = relationship("Property", back_populates="bookings")

    booking_reference = Column(String, nullable=False, unique=True, index=True)
    booking_type = Column(String, nullable=False, default="short_term")  # short_term / long_term

    guest_name = Column(String, nullable=False)
    guest_email = Column(String, nullable=True)
    guest_phone = Column(String, nullable=True)
    number_of_guests = Column(Integer, nullable=False, default=1)

    check_in_date = Column(Date, nullable=False, index=True)
    check_out_date = Column(Date, nullable=False, index=True)
    number_of_nights = Column(Integer, nullable=False, default=1)

    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    # Kept in sync with the booking's paid payments after every payment mutation
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    amount_due = Column(Numeric(10, 2), nullable=False, default=0)

    # pending / confirmed / checked_in / checked_out / cancelled / no_show
    status = Column(String, nullable=False, default="pending", index=True)
    payment_status = Column(String, nullable=False, default="pending")  # pending / partially_paid / paid
    source = Column(String, nullable=False, default="direct")  # direct / airbnb / booking_com / vrbo / other

    # UID of the imported calendar event
    external_id = Column(String, nullable=True, index=True)

    notes = Column(Text, nullable=True)
    special_requests = Column(Text, nullable=True)

    payments = relationship("Payment", back_populates="booking")
    scheduled_messages = relationship("ScheduledMessage", back_populates="booking", cascade="all, delete-orphan")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # `property` is the relationship inside this class body
    @builtins.property
    def property_name(self):
        return self.property.name if self.property else None
