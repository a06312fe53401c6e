from datetime import date, datetime, time
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.appointment import (
    AppointmentPaymentStatus,
    AppointmentStatus,
    LocationType,
    ServiceType,
)


def _parse_slot_time(value):
    """Slots are booked as 24-hour ``HH:MM``."""
    if isinstance(value, time):
        return value
    try:
        return datetime.strptime(str(value), "%H:%M").time()
    except ValueError:
        raise ValueError("scheduled_time must be in HH:MM format")


class AppointmentSlot(BaseModel):
    scheduled_date: date
    scheduled_time: time

    @field_validator("scheduled_date")
    @classmethod
    def check_date(cls, v):
        if v < date.today():
            raise ValueError("scheduled_date must be today or later")
        return v

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def check_time(cls, v):
        return _parse_slot_time(v)


class AppointmentCreate(AppointmentSlot):
    expert_id: int
    diagnosis_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    service_type: ServiceType = ServiceType.DIAGNOSTIC
    description: Optional[str] = Field(None, max_length=2000)
    location_type: LocationType = LocationType.EXPERT_SHOP
    address: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    service_package_ids: List[int] = []


class AppointmentReschedule(AppointmentSlot):
    pass


class AppointmentCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class AppointmentReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class AppointmentComplete(BaseModel):
    final_cost: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)


class AppointmentServiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    service_package_id: Optional[int] = None
    service_name: str
    price: float
    quantity: int


class AppointmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    driver_id: int
    expert_id: int
    diagnosis_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    scheduled_date: date
    scheduled_time: time
    estimated_duration_minutes: int
    service_type: ServiceType
    description: Optional[str] = None
    notes: Optional[str] = None
    location_type: LocationType
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: AppointmentStatus
    estimated_cost: Optional[float] = None
    final_cost: Optional[float] = None
    currency: str
    payment_status: AppointmentPaymentStatus
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    services: List[AppointmentServiceRead] = []
    created_at: Optional[datetime] = None


class ServicePackageBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    category: ServiceType = ServiceType.REPAIR
    price: float = Field(..., ge=0)
    price_max: Optional[float] = Field(None, ge=0)
    duration_minutes: int = Field(60, ge=15, le=1440)
    includes: Optional[List[str]] = None
    is_active: bool = True
    sort_order: int = 0


class ServicePackageCreate(ServicePackageBase):
    pass


class ServicePackageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[ServiceType] = None
    price: Optional[float] = Field(None, ge=0)
    price_max: Optional[float] = Field(None, ge=0)
    duration_minutes: Optional[int] = Field(None, ge=15, le=1440)
    includes: Optional[List[str]] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class ServicePackageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    expert_id: int
    name: str
    slug: str
    description: Optional[str] = None
    category: ServiceType
    price: float
    price_max: Optional[float] = None
    currency: str
    duration_minutes: int
    includes: Optional[List[str]] = None
    is_active: bool
    sort_order: int
