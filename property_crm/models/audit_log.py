from sqlalchemy import Column, String, DateTime, Integer
from sqlalchemy.sql import func
from property_crm.core.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    # Null for cron-driven actions
    actor_id = Column(Integer, nullable=True, index=True)
    actor_email = Column(String, nullable=True, index=True)
    actor_role = Column(String, nullable=True)
    # Landlord whose data was touched; lets admins and landlords filter their own trail
    owner_id = Column(Integer, nullable=True, index=True)
    action = Column(String, nullable=False, index=True)  # created/updated/deleted/refunded/reminder_sent
    entity_type = Column(String, nullable=False, index=True)  # payment/tenant/booking/etc
    entity_id = Column(String, nullable=False, index=True)
    source = Column(String, nullable=True, index=True)  # api/cron/system
    status = Column(String, nullable=True, index=True)
    due_at = Column(DateTime(timezone=True), nullable=True, index=True)
    property_id = Column(Integer, nullable=True, index=True)
    risk_level = Column(String, nullable=False, default="low", index=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
