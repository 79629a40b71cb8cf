from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Numeric, Boolean, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from property_crm.core.database import Base


class Property(Base):
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    owner = relationship("User", back_populates="properties")

    name = Column(String, nullable=False)
    address = Column(String, nullable=False)
    city = Column(String, nullable=True)
    province = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)

    property_type = Column(String, nullable=False, default="apartment")  # apartment/house/room/cottage
    rental_type = Column(String, nullable=False, default="long_term")  # short_term / long_term
    bedrooms = Column(Integer, nullable=False, default=1)
    max_guests = Column(Integer, nullable=True)

    nightly_rate = Column(Numeric(10, 2), nullable=True)
    monthly_rent = Column(Numeric(10, 2), nullable=True)

    check_in_time = Column(String, nullable=True)  # "15:00"
    check_out_time = Column(String, nullable=True)  # "11:00"

    # External iCal feeds imported into bookings
    calendar_urls = Column(JSON, nullable=False, default=list)
    sync_calendar = Column(Boolean, nullable=False, default=False)

    is_active = Column(Boolean, nullable=False, default=True)

    bookings = relationship("Booking", back_populates="property", cascade="all, delete-orphan")
    leases = relationship("Lease", back_populates="property", cascade="all, delete-orphan")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
