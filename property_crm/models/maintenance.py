from sqlalchemy import Column, String, Integer, DateTime, Date, ForeignKey, Numeric, Boolean, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from property_crm.core.database import Base


class MaintenanceRequest(Base):
    __tablename__ = "maintenance_requests"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True, index=True)
    owner = relationship("User")
    property = relationship("Property")
    tenant = relationship("Tenant")

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, default="general")  # plumbing/electrical/hvac/appliance/general
    priority = Column(String, nullable=False, default="medium")  # low/medium/high/urgent
    status = Column(String, nullable=False, default="pending", index=True)  # pending/in_progress/completed/cancelled

    estimated_cost = Column(Numeric(10, 2), nullable=True)
    actual_cost = Column(Numeric(10, 2), nullable=True)
    scheduled_date = Column(Date, nullable=True)
    completed_date = Column(Date, nullable=True)
    assigned_to = Column(String, nullable=True)

    follow_up_sent = Column(Boolean, nullable=False, default=False)
    follow_up_sent_at = Column(DateTime(timezone=True), nullable=True)

    expenses = relationship("Expense", back_populates="maintenance_request")
    tasks = relationship("Task", back_populates="maintenance_request")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True, index=True)
    maintenance_request_id = Column(
        Integer, ForeignKey("maintenance_requests.id", ondelete="SET NULL"), nullable=True, index=True
    )
    maintenance_request = relationship("MaintenanceRequest", back_populates="tasks")

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String, nullable=False, default="medium")
    status = Column(String, nullable=False, default="todo")  # todo / in_progress / done
    due_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
