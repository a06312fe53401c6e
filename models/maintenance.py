"""
Vehicle maintenance: reminder types, reminders and the service log.

System maintenance types have no owner; drivers may add their own. A
recurring reminder rolls forward to its next due date and mileage each time
it is completed.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Text, Numeric, JSON,
    ForeignKey, Index, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy import event
from slugify import slugify
from enum import Enum as PyEnum

from core.database import Base


class ReminderStatus(str, PyEnum):
    UPCOMING = "upcoming"
    DUE = "due"
    OVERDUE = "overdue"
    COMPLETED = "completed"
    SNOOZED = "snoozed"


# Listing order: what needs attention first
REMINDER_STATUS_ORDER = (
    ReminderStatus.OVERDUE,
    ReminderStatus.DUE,
    ReminderStatus.UPCOMING,
    ReminderStatus.SNOOZED,
    ReminderStatus.COMPLETED,
)


class MaintenanceType(Base):
    __tablename__ = "maintenance_types"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    default_interval_km = Column(Integer, nullable=True)
    default_interval_months = Column(Integer, nullable=True)
    is_critical = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_system(self) -> bool:
        return self.user_id is None


class MaintenanceReminder(Base):
    __tablename__ = "maintenance_reminders"
    __table_args__ = (Index("ix_maintenance_reminders_user_status", "user_id", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    maintenance_type_id = Column(
        Integer, ForeignKey("maintenance_types.id", ondelete="CASCADE"), nullable=False, index=True
    )
    custom_title = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    due_date = Column(Date, nullable=True)
    due_mileage = Column(Integer, nullable=True)
    interval_km = Column(Integer, nullable=True)
    interval_months = Column(Integer, nullable=True)

    last_completed_date = Column(Date, nullable=True)
    last_completed_mileage = Column(Integer, nullable=True)
    last_completed_cost = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="GHS")

    status = Column(SQLEnum(ReminderStatus), nullable=False, default=ReminderStatus.UPCOMING)
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    notification_days = Column(JSON, nullable=True)
    snoozed_until = Column(DateTime(timezone=True), nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    maintenance_type = relationship("MaintenanceType", lazy="selectin")
    vehicle = relationship("Vehicle", lazy="selectin")

    @property
    def title(self) -> str:
        return self.custom_title or (self.maintenance_type.name if self.maintenance_type else "")

    def __repr__(self):
        return f"<MaintenanceReminder(id={self.id}, vehicle_id={self.vehicle_id}, status={self.status})>"


class MaintenanceLog(Base):
    __tablename__ = "maintenance_logs"

    id = Column(Integer, primary_key=True, index=True)
    maintenance_reminder_id = Column(
        Integer, ForeignKey("maintenance_reminders.id", ondelete="SET NULL"), nullable=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    maintenance_type_id = Column(Integer, ForeignKey("maintenance_types.id", ondelete="CASCADE"), nullable=False)
    completed_date = Column(Date, nullable=False)
    mileage_at_service = Column(Integer, nullable=True)
    cost = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="GHS")
    service_provider = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    parts_replaced = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    maintenance_type = relationship("MaintenanceType", lazy="selectin")


@event.listens_for(MaintenanceType, "before_insert")
def before_insert_maintenance_type(mapper, connection, target):
    if target.name and not target.slug:
        target.slug = slugify(target.name)
