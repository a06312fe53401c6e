import logging
from datetime import timedelta

from sqlalchemy import update

from core.config import settings
from core.database import SessionLocal
from celery_app import celery_app
from models.maintenance import MaintenanceReminder, ReminderStatus
from services.helpers import utcnow

logger = logging.getLogger(__name__)


def refresh_reminder_statuses(db, now=None) -> dict:
    """Wake expired snoozes, then mark reminders due soon or overdue by their due date."""
    now = now or utcnow()
    today = now.date()
    due_soon = today + timedelta(days=settings.MAINTENANCE_DUE_SOON_DAYS)
    live = MaintenanceReminder.deleted_at.is_(None)

    woken = db.execute(
        update(MaintenanceReminder)
        .where(
            live,
            MaintenanceReminder.status == ReminderStatus.SNOOZED,
            MaintenanceReminder.snoozed_until <= now,
        )
        .values(status=ReminderStatus.UPCOMING, snoozed_until=None)
        .execution_options(synchronize_session=False)
    )
    overdue = db.execute(
        update(MaintenanceReminder)
        .where(
            live,
            MaintenanceReminder.status.in_([ReminderStatus.UPCOMING, ReminderStatus.DUE]),
            MaintenanceReminder.due_date < today,
        )
        .values(status=ReminderStatus.OVERDUE)
        .execution_options(synchronize_session=False)
    )
    due = db.execute(
        update(MaintenanceReminder)
        .where(
            live,
            MaintenanceReminder.status == ReminderStatus.UPCOMING,
            MaintenanceReminder.due_date >= today,
            MaintenanceReminder.due_date <= due_soon,
        )
        .values(status=ReminderStatus.DUE)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return {"woken": woken.rowcount, "overdue": overdue.rowcount, "due": due.rowcount}


@celery_app.task(name="refresh_maintenance_reminders")
def refresh_maintenance_reminders():
    db = SessionLocal()
    try:
        counts = refresh_reminder_statuses(db)
        logger.info(f"Maintenance reminder refresh finished: {counts}")
        return counts
    except Exception as e:
        db.rollback()
        logger.error(f"Error refreshing maintenance reminders: {e}")
        raise
    finally:
        db.close()
