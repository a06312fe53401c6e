"""
Appointments between drivers and experts, and the service packages experts
offer for booking.

An appointment moves pending -> confirmed -> in_progress -> completed. The
driver may cancel while pending or confirmed; the expert may reject a
pending request. A booked slot (expert, date, time) is held by pending and
confirmed appointments only.
"""

import uuid
from sqlalchemy import (
    Column, Integer, String, Boolean, Date, Time, DateTime, Text, Numeric, JSON, Float,
    ForeignKey, Index, UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy import event
from slugify import slugify
from enum import Enum as PyEnum

from core.database import Base


class AppointmentStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    REJECTED = "rejected"


class ServiceType(str, PyEnum):
    DIAGNOSTIC = "diagnostic"
    REPAIR = "repair"
    MAINTENANCE = "maintenance"
    INSPECTION = "inspection"


class LocationType(str, PyEnum):
    EXPERT_SHOP = "expert_shop"
    DRIVER_LOCATION = "driver_location"


class AppointmentPaymentStatus(str, PyEnum):
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    REFUNDED = "refunded"


SLOT_HOLDING_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
ACTIVE_APPOINTMENT_STATUSES = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
)
PAST_APPOINTMENT_STATUSES = (
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_expert_slot", "expert_id", "scheduled_date", "scheduled_time"),
        Index("ix_appointments_driver_status", "driver_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    driver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expert_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    diagnosis_id = Column(Integer, ForeignKey("diagnoses.id", ondelete="SET NULL"), nullable=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)

    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(Time, nullable=False)
    estimated_duration_minutes = Column(Integer, nullable=False, default=60)

    service_type = Column(SQLEnum(ServiceType), nullable=False, default=ServiceType.DIAGNOSTIC)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    location_type = Column(SQLEnum(LocationType), nullable=False, default=LocationType.EXPERT_SHOP)
    address = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    status = Column(SQLEnum(AppointmentStatus), nullable=False, default=AppointmentStatus.PENDING)

    estimated_cost = Column(Numeric(10, 2), nullable=True)
    final_cost = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="GHS")
    payment_status = Column(
        SQLEnum(AppointmentPaymentStatus), nullable=False, default=AppointmentPaymentStatus.PENDING
    )
    payment_method = Column(String(50), nullable=True)

    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(10), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    services = relationship(
        "AppointmentService",
        back_populates="appointment",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="AppointmentService.id",
    )
    vehicle = relationship("Vehicle", lazy="selectin")

    @property
    def can_be_cancelled(self) -> bool:
        return self.status in SLOT_HOLDING_STATUSES

    def __repr__(self):
        return f"<Appointment(id={self.id}, expert_id={self.expert_id}, status={self.status})>"


class ServicePackage(Base):
    __tablename__ = "service_packages"
    __table_args__ = (UniqueConstraint("expert_id", "slug", name="uq_service_packages_expert_slug"),)

    id = Column(Integer, primary_key=True, index=True)
    expert_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(SQLEnum(ServiceType), nullable=False, default=ServiceType.REPAIR)
    price = Column(Numeric(10, 2), nullable=False)
    price_max = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="GHS")
    duration_minutes = Column(Integer, nullable=False, default=60)
    includes = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AppointmentService(Base):
    """One priced line of an appointment, copied from the package at booking time."""

    __tablename__ = "appointment_services"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    service_package_id = Column(Integer, ForeignKey("service_packages.id", ondelete="SET NULL"), nullable=True)
    service_name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    appointment = relationship("Appointment", back_populates="services")


@event.listens_for(ServicePackage, "before_insert")
def before_insert_service_package(mapper, connection, target):
    if target.name and not target.slug:
        target.slug = slugify(target.name)
