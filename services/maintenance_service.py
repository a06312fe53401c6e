"""
Maintenance reminders and the service log.

Completing a reminder always writes a log entry. Recurring reminders then
roll forward: the next due date is the completion date plus
``interval_months`` and the next due mileage is the completion mileage
plus ``interval_km``. One-off reminders stay completed.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from core.logging import get_logger
from models.maintenance import MaintenanceLog, MaintenanceReminder, MaintenanceType, ReminderStatus
from models.user import User
from models.vehicle import Vehicle
from schemas.maintenance import ReminderComplete, ReminderCreate, ReminderSnooze, ReminderUpdate
from services.helpers import add_months, utcnow

logger = get_logger(__name__)


def status_for_due_date(due_date: Optional[date], today: date, due_soon_days: int) -> ReminderStatus:
    if due_date is None:
        return ReminderStatus.UPCOMING
    if due_date < today:
        return ReminderStatus.OVERDUE
    if due_date <= today + timedelta(days=due_soon_days):
        return ReminderStatus.DUE
    return ReminderStatus.UPCOMING


async def _save(db: AsyncSession, reminder: MaintenanceReminder) -> MaintenanceReminder:
    await db.commit()
    await db.refresh(reminder)
    return reminder


async def create_reminder(
    db: AsyncSession, user: User, maintenance_type: MaintenanceType, body: ReminderCreate
) -> MaintenanceReminder:
    """Intervals fall back to the type's defaults; a missing due date follows the month interval."""
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    data.setdefault("interval_km", maintenance_type.default_interval_km)
    data.setdefault("interval_months", maintenance_type.default_interval_months)
    if "due_date" not in data and data.get("interval_months"):
        data["due_date"] = add_months(date.today(), data["interval_months"])

    reminder = MaintenanceReminder(user_id=user.id, status=ReminderStatus.UPCOMING, **data)
    db.add(reminder)
    await _save(db, reminder)
    logger.info(
        "Maintenance reminder created",
        user_id=user.id,
        reminder_id=reminder.id,
        vehicle_id=reminder.vehicle_id,
        maintenance_type_id=reminder.maintenance_type_id,
    )
    return reminder


async def update_reminder(db: AsyncSession, reminder: MaintenanceReminder, body: ReminderUpdate) -> MaintenanceReminder:
    changes = body.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(reminder, field, value)
    if "due_date" in changes and reminder.status in (ReminderStatus.DUE, ReminderStatus.OVERDUE):
        reminder.status = ReminderStatus.UPCOMING
    return await _save(db, reminder)


async def snooze_reminder(db: AsyncSession, reminder: MaintenanceReminder, body: ReminderSnooze) -> MaintenanceReminder:
    reminder.status = ReminderStatus.SNOOZED
    reminder.snoozed_until = utcnow() + timedelta(days=body.days)
    logger.info("Maintenance reminder snoozed", reminder_id=reminder.id, days=body.days)
    return await _save(db, reminder)


async def complete_reminder(
    db: AsyncSession, reminder: MaintenanceReminder, body: ReminderComplete
) -> Tuple[MaintenanceReminder, MaintenanceLog]:
    mileage = body.mileage
    if mileage is None:
        vehicle = await db.get(Vehicle, reminder.vehicle_id)
        mileage = vehicle.mileage if vehicle else None
    cost = Decimal(str(body.cost)) if body.cost is not None else None
    currency = body.currency or reminder.currency

    log = MaintenanceLog(
        maintenance_reminder_id=reminder.id,
        user_id=reminder.user_id,
        vehicle_id=reminder.vehicle_id,
        maintenance_type_id=reminder.maintenance_type_id,
        completed_date=body.completed_date,
        mileage_at_service=mileage,
        cost=cost,
        currency=currency,
        service_provider=body.service_provider,
        notes=body.notes,
        parts_replaced=body.parts_replaced,
    )
    db.add(log)

    reminder.last_completed_date = body.completed_date
    reminder.last_completed_mileage = mileage
    reminder.last_completed_cost = cost
    reminder.snoozed_until = None
    reminder.status = ReminderStatus.COMPLETED
    if reminder.is_recurring:
        reminder.status = ReminderStatus.UPCOMING
        if reminder.interval_months:
            reminder.due_date = add_months(body.completed_date, reminder.interval_months)
        if reminder.interval_km and mileage is not None:
            reminder.due_mileage = mileage + reminder.interval_km

    await db.commit()
    await db.refresh(reminder)
    await db.refresh(log)
    logger.info(
        "Maintenance completed",
        reminder_id=reminder.id,
        log_id=log.id,
        recurring=reminder.is_recurring,
        next_due_date=str(reminder.due_date) if reminder.due_date else None,
    )
    return reminder, log
