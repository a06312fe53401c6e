from celery import Celery
from core.config import settings
from celery.schedules import crontab

celery_app = Celery(
    settings.APP_NAME,
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["tasks.diagnosis_tasks", "tasks.notification_tasks", "tasks.maintenance_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "hourly-expire-stale-leads": {
            "task": "expire_stale_leads",
            "schedule": crontab(minute=15),
        },
        "daily-expire-packages-and-subscriptions": {
            "task": "expire_packages_and_subscriptions",
            "schedule": crontab(hour=0, minute=5),
        },
        "daily-refresh-maintenance-reminders": {
            "task": "refresh_maintenance_reminders",
            "schedule": crontab(hour=0, minute=20),
        },
    }
)

celery_app.conf.task_annotations = {
    "send_otp_email": {"max_retries": 3, "default_retry_delay": 5}
}
