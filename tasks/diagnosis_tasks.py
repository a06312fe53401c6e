import logging

from core.config import settings
from core.database import SessionLocal
from celery_app import celery_app
from models.diagnosis import Diagnosis, DiagnosisStatus
from services.ai_diagnosis_service import AIDiagnosisService
from services.broadcast_service import SyncBroadcaster, diagnosis_event_channels
from services.helpers import utcnow

logger = logging.getLogger(__name__)


def diagnosis_event(diagnosis: Diagnosis) -> dict:
    return {
        "diagnosis_id": diagnosis.id,
        "uuid": diagnosis.uuid,
        "status": diagnosis.status.value,
        "ai_diagnosis": diagnosis.ai_diagnosis,
        "ai_urgency_level": diagnosis.ai_urgency_level.value if diagnosis.ai_urgency_level else None,
        "error_message": diagnosis.error_message,
        "processed_at": diagnosis.processed_at.isoformat() if diagnosis.processed_at else None,
    }


def analyse(db, diagnosis: Diagnosis, service: AIDiagnosisService) -> Diagnosis:
    """Run the AI call for one diagnosis and store the result."""
    diagnosis.status = DiagnosisStatus.PROCESSING
    db.commit()

    result = service.diagnose(diagnosis)
    service.apply_result(diagnosis, result)
    db.commit()
    return diagnosis


def mark_failed(db, diagnosis: Diagnosis, error: Exception) -> Diagnosis:
    diagnosis.status = DiagnosisStatus.FAILED
    diagnosis.error_message = f"Processing failed after multiple attempts: {str(error)}"
    diagnosis.processed_at = utcnow()
    db.commit()
    return diagnosis


@celery_app.task(name="process_diagnosis", bind=True, max_retries=settings.AI_MAX_RETRIES)
def process_diagnosis(self, diagnosis_id: int):
    db = SessionLocal()
    try:
        diagnosis = db.get(Diagnosis, diagnosis_id)
        if diagnosis is None:
            logger.warning(f"Diagnosis {diagnosis_id} not found; skipping AI processing")
            return None
        if diagnosis.status == DiagnosisStatus.COMPLETED:
            return diagnosis.status.value

        try:
            analyse(db, diagnosis, AIDiagnosisService())
            logger.info(f"Diagnosis {diagnosis_id} completed by {diagnosis.ai_provider}")
        except Exception as e:
            db.rollback()
            if self.request.retries < self.max_retries:
                logger.warning(
                    f"AI processing failed for diagnosis {diagnosis_id} "
                    f"(attempt {self.request.retries + 1}): {str(e)}"
                )
                raise self.retry(exc=e, countdown=settings.AI_RETRY_BACKOFF)
            logger.error(f"AI processing failed for diagnosis {diagnosis_id}, giving up: {str(e)}")
            mark_failed(db, diagnosis, e)

        SyncBroadcaster().publish(
            diagnosis_event_channels(diagnosis),
            "diagnosis.updated",
            diagnosis_event(diagnosis),
        )
        return diagnosis.status.value
    finally:
        db.close()
