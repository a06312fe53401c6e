import logging
from datetime import timedelta

from sqlalchemy import and_, exists, update

from core.config import settings
from core.database import SessionLocal
from celery_app import celery_app
from models.lead import Lead, LeadStatus
from models.package import ExpertSubscription, LeadPackagePurchase, PurchaseStatus, SubscriptionStatus
from models.profile import ExpertProfile
from models.user import User
from services.email_service import EmailService
from services.helpers import utcnow

logger = logging.getLogger(__name__)


@celery_app.task(name="notify_expert_new_lead")
def notify_expert_new_lead(lead_id: int):
    db = SessionLocal()
    try:
        lead = db.get(Lead, lead_id)
        if lead is None:
            logger.warning(f"Lead {lead_id} not found; no notification sent")
            return False
        expert = db.get(User, lead.expert_id)
        if not expert or not expert.fcm_token:
            logger.info(f"Expert {lead.expert_id} has no device token; lead {lead_id} notification skipped")
            return False
        logger.info(
            f"New lead notification for expert {expert.id}: lead {lead.id}, "
            f"diagnosis {lead.diagnosis_id}, free={lead.is_free_lead}"
        )
        return True
    finally:
        db.close()


@celery_app.task(name="send_otp_email")
def send_otp_email(email: str, otp: str, otp_type: str):
    result = EmailService().send_otp(email, otp, otp_type)
    logger.info(f"OTP e-mail ({otp_type}) processed with status {result['status']}")
    return result


def expire_leads(db, now=None) -> int:
    """Mark open leads older than the expiry window as expired."""
    now = now or utcnow()
    cutoff = now - timedelta(days=settings.LEAD_EXPIRY_DAYS)
    result = db.execute(
        update(Lead)
        .where(Lead.status.in_([LeadStatus.NEW, LeadStatus.VIEWED]), Lead.created_at < cutoff)
        .values(status=LeadStatus.EXPIRED, expired_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def expire_packages(db, now=None) -> dict:
    """Expire lapsed lead packages and subscriptions, then drop stale priority listings."""
    now = now or utcnow()
    purchases = db.execute(
        update(LeadPackagePurchase)
        .where(
            LeadPackagePurchase.status == PurchaseStatus.ACTIVE,
            LeadPackagePurchase.expires_at.is_not(None),
            LeadPackagePurchase.expires_at <= now,
        )
        .values(status=PurchaseStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    subscriptions = db.execute(
        update(ExpertSubscription)
        .where(ExpertSubscription.status == SubscriptionStatus.ACTIVE, ExpertSubscription.ends_at <= now)
        .values(status=SubscriptionStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )

    # Cancelled subscriptions keep their listing until ends_at
    still_subscribed = exists().where(
        and_(
            ExpertSubscription.user_id == ExpertProfile.user_id,
            ExpertSubscription.status.in_([SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED]),
            ExpertSubscription.ends_at > now,
        )
    )
    unlisted = db.execute(
        update(ExpertProfile)
        .where(ExpertProfile.is_priority_listed == True, ~still_subscribed)  # noqa: E712
        .values(is_priority_listed=False)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return {
        "lead_packages": purchases.rowcount,
        "subscriptions": subscriptions.rowcount,
        "priority_listings": unlisted.rowcount,
    }


@celery_app.task(name="expire_stale_leads")
def expire_stale_leads():
    db = SessionLocal()
    try:
        count = expire_leads(db)
        logger.info(f"Expired {count} stale leads")
        return count
    except Exception as e:
        db.rollback()
        logger.error(f"Error expiring stale leads: {e}")
        raise
    finally:
        db.close()


@celery_app.task(name="expire_packages_and_subscriptions")
def expire_packages_and_subscriptions():
    db = SessionLocal()
    try:
        counts = expire_packages(db)
        logger.info(f"Expiry run finished: {counts}")
        return counts
    except Exception as e:
        db.rollback()
        logger.error(f"Error expiring packages and subscriptions: {e}")
        raise
    finally:
        db.close()
