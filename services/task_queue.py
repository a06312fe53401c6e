"""
Celery dispatch used by the API.

Routers and services call these helpers after their transaction commits so
that workers never see uncommitted rows.
"""

from core.logging import get_logger

logger = get_logger(__name__)


def enqueue_diagnosis_processing(diagnosis_id: int):
    from tasks.diagnosis_tasks import process_diagnosis

    process_diagnosis.delay(diagnosis_id)
    logger.info("Diagnosis processing queued", diagnosis_id=diagnosis_id)


def enqueue_lead_notification(lead_id: int):
    from tasks.notification_tasks import notify_expert_new_lead

    notify_expert_new_lead.delay(lead_id)
    logger.info("Lead notification queued", lead_id=lead_id)


def enqueue_otp_email(email: str, otp: str, otp_type: str):
    from tasks.notification_tasks import send_otp_email

    send_otp_email.delay(email, otp, otp_type)
    logger.info("OTP e-mail queued", otp_type=otp_type)
