from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from datetime import date, datetime
from decimal import Decimal

from property_crm.schemas.common import not_null

MaintenanceStatus = Literal["pending", "in_progress", "completed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]


class MaintenanceCreate(BaseModel):
    property_id: int
    tenant_id: Optional[int] = None
    title: str = Field(min_length=1)
    description: Optional[str] = None
    category: str = "general"
    priority: Priority = "medium"
    estimated_cost: Optional[Decimal] = Field(default=None, ge=0)
    scheduled_date: Optional[date] = None
    assigned_to: Optional[str] = None


class MaintenanceUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[MaintenanceStatus] = None
    estimated_cost: Optional[Decimal] = Field(default=None, ge=0)
    actual_cost: Optional[Decimal] = Field(default=None, ge=0)
    scheduled_date: Optional[date] = None
    completed_date: Optional[date] = None
    assigned_to: Optional[str] = None

    @field_validator("title", "category", "priority", "status")
    @classmethod
    def required_columns(cls, v):
        return not_null(v)


class MaintenanceOut(BaseModel):
    id: int
    property_id: int
    tenant_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    category: str
    priority: str
    status: str
    estimated_cost: Optional[Decimal] = None
    actual_cost: Optional[Decimal] = None
    scheduled_date: Optional[date] = None
    completed_date: Optional[date] = None
    assigned_to: Optional[str] = None
    follow_up_sent: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


TaskStatus = Literal["todo", "in_progress", "done"]


class TaskFromRequestIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None


class TaskCreate(BaseModel):
    property_id: Optional[int] = None
    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: Priority = "medium"
    status: TaskStatus = "todo"
    due_date: Optional[date] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[date] = None

    @field_validator("title", "priority", "status")
    @classmethod
    def required_columns(cls, v):
        return not_null(v)


class TaskOut(BaseModel):
    id: int
    property_id: Optional[int] = None
    maintenance_request_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    priority: str
    status: str
    due_date: Optional[date] = None
    created_at: datetime

    class Config:
        from_attributes = True
