from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.maintenance import ReminderStatus


class MaintenanceTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=20)
    default_interval_km: Optional[int] = Field(None, ge=1)
    default_interval_months: Optional[int] = Field(None, ge=1, le=60)
    is_critical: bool = False


class MaintenanceTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=20)
    default_interval_km: Optional[int] = Field(None, ge=1)
    default_interval_months: Optional[int] = Field(None, ge=1, le=60)
    is_critical: Optional[bool] = None
    is_active: Optional[bool] = None


class MaintenanceTypeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = None
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    default_interval_km: Optional[int] = None
    default_interval_months: Optional[int] = None
    is_critical: bool
    is_system: bool


class ReminderBase(BaseModel):
    custom_title: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)
    due_date: Optional[date] = None
    due_mileage: Optional[int] = Field(None, ge=0)
    interval_km: Optional[int] = Field(None, ge=1)
    interval_months: Optional[int] = Field(None, ge=1, le=60)
    notifications_enabled: Optional[bool] = None
    notification_days: Optional[List[int]] = None
    is_recurring: Optional[bool] = None

    @field_validator("due_date")
    @classmethod
    def check_due_date(cls, v):
        if v is not None and v <= date.today():
            raise ValueError("due_date must be a date after today")
        return v


class ReminderCreate(ReminderBase):
    vehicle_id: int
    maintenance_type_id: int


class ReminderUpdate(ReminderBase):
    pass


class ReminderSnooze(BaseModel):
    days: int = Field(7, ge=1, le=30)


class ReminderComplete(BaseModel):
    completed_date: date
    mileage: Optional[int] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    service_provider: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)
    parts_replaced: Optional[List[str]] = None

    @field_validator("completed_date")
    @classmethod
    def check_completed_date(cls, v):
        if v > date.today():
            raise ValueError("completed_date cannot be in the future")
        return v


class ReminderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    vehicle_id: int
    maintenance_type_id: int
    title: str
    custom_title: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[date] = None
    due_mileage: Optional[int] = None
    interval_km: Optional[int] = None
    interval_months: Optional[int] = None
    last_completed_date: Optional[date] = None
    last_completed_mileage: Optional[int] = None
    last_completed_cost: Optional[float] = None
    currency: str
    status: ReminderStatus
    notifications_enabled: bool
    notification_days: Optional[List[int]] = None
    snoozed_until: Optional[datetime] = None
    is_recurring: bool
    maintenance_type: Optional[MaintenanceTypeRead] = None
    created_at: Optional[datetime] = None


class MaintenanceLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    maintenance_reminder_id: Optional[int] = None
    vehicle_id: int
    maintenance_type_id: int
    completed_date: date
    mileage_at_service: Optional[int] = None
    cost: Optional[float] = None
    currency: str
    service_provider: Optional[str] = None
    notes: Optional[str] = None
    parts_replaced: Optional[List[str]] = None
    maintenance_type: Optional[MaintenanceTypeRead] = None
    created_at: Optional[datetime] = None
