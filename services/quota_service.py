"""
Quota and lead allocation.

A diagnosis submission is one transaction: lock the quota holder (driver
profile or guest device), check and debit its balance, insert the diagnosis,
pick matching experts, lock them and create one lead each against their
free leads, a lead package or as a chargeable lead. Side effects (broadcasts,
Celery tasks) run only after the commit.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import QuotaExceededError
from core.logging import get_logger
from models.device import DeviceFingerprint
from models.diagnosis import Diagnosis, DiagnosisImage, DiagnosisStatus
from models.lead import Lead, LeadActivity, LeadStatus
from models.package import PurchaseStatus
from models.profile import DriverProfile, ExpertProfile
from models.user import User
from repositories.expert import ExpertRepository
from repositories.package import PackageRepository
from schemas.diagnosis import DiagnosisCreate, GuestQuota, QuotaSnapshot
from services import task_queue
from services.broadcast_service import Broadcaster, expert_channel, lead_event_payload

logger = get_logger(__name__)

DRIVER_QUOTA_MESSAGE = "You have no diagnoses remaining. Please purchase a package."
GUEST_QUOTA_MESSAGE = (
    "You have reached the free diagnosis limit for this device. "
    "Please create an account to continue."
)


@dataclass
class AllocationResult:
    diagnosis: Diagnosis
    leads: List[Lead] = field(default_factory=list)
    quota: Optional[QuotaSnapshot] = None
    guest_quota: Optional[GuestQuota] = None


def driver_quota(profile: DriverProfile) -> QuotaSnapshot:
    return QuotaSnapshot(
        free_remaining=profile.free_diagnoses_remaining,
        paid_remaining=profile.paid_diagnoses_remaining,
        total_remaining=profile.diagnoses_remaining,
    )


def guest_quota(fingerprint: DeviceFingerprint) -> GuestQuota:
    limit = settings.GUEST_FREE_DIAGNOSES
    used = fingerprint.diagnoses_used or 0
    remaining = fingerprint.remaining(limit)
    return GuestQuota(total_free=limit, used=used, remaining=remaining, can_diagnose=remaining > 0)


async def _lock_driver_profile(db: AsyncSession, user_id: int) -> Optional[DriverProfile]:
    result = await db.execute(
        select(DriverProfile)
        .where(DriverProfile.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _lock_fingerprint(db: AsyncSession, fingerprint_id: int) -> DeviceFingerprint:
    result = await db.execute(
        select(DeviceFingerprint)
        .where(DeviceFingerprint.id == fingerprint_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _debit_driver(db: AsyncSession, user: User, profile: DriverProfile) -> bool:
    """Consume one diagnosis; returns whether it came from the free balance."""
    if profile.free_diagnoses_remaining > 0:
        profile.free_diagnoses_remaining -= 1
        is_free = True
    else:
        profile.paid_diagnoses_remaining -= 1
        is_free = False
        purchase = await PackageRepository(db).lock_usable_diagnosis_purchase(user.id)
        if purchase:
            purchase.diagnoses_remaining -= 1
            if purchase.diagnoses_remaining == 0:
                purchase.status = PurchaseStatus.EXHAUSTED
    profile.total_diagnoses_used += 1
    return is_free


def _build_diagnosis(
    data: DiagnosisCreate,
    is_free: bool,
    user_id: Optional[int] = None,
    fingerprint_id: Optional[int] = None,
    region_id: Optional[int] = None,
) -> Diagnosis:
    return Diagnosis(
        user_id=user_id,
        device_fingerprint_id=fingerprint_id,
        vehicle_id=data.vehicle_id,
        region_id=region_id,
        input_type=data.input_type,
        symptoms_description=data.symptoms_description,
        vehicle_info=data.vehicle_info,
        voice_recording_url=data.voice_recording_url,
        status=DiagnosisStatus.PENDING,
        is_free=is_free,
        expert_contact_unlocked=not is_free,
        images=[
            DiagnosisImage(image_url=url, sort_order=index)
            for index, url in enumerate(data.images)
        ],
    )


async def _consume_lead(db: AsyncSession, expert: ExpertProfile, lead: Lead) -> str:
    """Charge one lead to the expert; returns how it was paid for."""
    if expert.free_leads_remaining > 0:
        expert.free_leads_remaining -= 1
        lead.is_free_lead = True
        source = "free"
    else:
        purchase = await PackageRepository(db).lock_usable_lead_purchase(expert.user_id)
        if purchase:
            purchase.leads_remaining -= 1
            if purchase.leads_remaining == 0:
                purchase.status = PurchaseStatus.EXHAUSTED
            lead.lead_package_purchase_id = purchase.id
            lead.is_free_lead = False
            source = "package"
        else:
            lead.is_free_lead = False
            source = "chargeable"
    expert.total_leads_received += 1
    return source


async def _create_leads(
    db: AsyncSession,
    diagnosis: Diagnosis,
    specialization_ids: List[int],
    driver_id: Optional[int],
) -> List[Lead]:
    experts = await ExpertRepository(db).lock_candidates(
        diagnosis.region_id,
        specialization_ids,
        settings.LEAD_MATCH_LIMIT,
    )
    leads = []
    for expert in experts:
        lead = Lead(
            diagnosis_id=diagnosis.id,
            expert_id=expert.user_id,
            driver_id=driver_id,
            status=LeadStatus.NEW,
        )
        source = await _consume_lead(db, expert, lead)
        db.add(lead)
        await db.flush()
        db.add(
            LeadActivity(
                lead_id=lead.id,
                activity_type="created",
                description="Lead created from diagnosis",
                metadata_={"source": source},
            )
        )
        logger.info(
            "Lead created",
            lead_id=lead.id,
            diagnosis_id=diagnosis.id,
            expert_id=expert.user_id,
            source=source,
        )
        leads.append(lead)
    return leads


async def allocate_driver_diagnosis(db: AsyncSession, user: User, data: DiagnosisCreate) -> AllocationResult:
    """Debit the driver's quota, store the diagnosis and create its leads."""
    try:
        profile = await _lock_driver_profile(db, user.id)
        if profile is None or profile.diagnoses_remaining <= 0:
            logger.info("Diagnosis quota exhausted", user_id=user.id)
            raise QuotaExceededError(
                DRIVER_QUOTA_MESSAGE,
                code="DIAGNOSIS_QUOTA_EXHAUSTED",
                extra={"free_remaining": 0, "paid_remaining": 0},
            )

        is_free = await _debit_driver(db, user, profile)
        diagnosis = _build_diagnosis(
            data,
            is_free,
            user_id=user.id,
            region_id=data.region_id or profile.region_id,
        )
        db.add(diagnosis)
        await db.flush()

        leads = await _create_leads(db, diagnosis, data.specialization_ids, driver_id=user.id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(diagnosis)
    for lead in leads:
        await db.refresh(lead)
    logger.info(
        "Driver diagnosis allocated",
        diagnosis_id=diagnosis.id,
        user_id=user.id,
        is_free=is_free,
        leads=len(leads),
    )
    return AllocationResult(diagnosis=diagnosis, leads=leads, quota=driver_quota(profile))


async def allocate_guest_diagnosis(
    db: AsyncSession,
    fingerprint: DeviceFingerprint,
    data: DiagnosisCreate,
) -> AllocationResult:
    """Debit the device's free quota and store the diagnosis."""
    limit = settings.GUEST_FREE_DIAGNOSES
    try:
        fingerprint = await _lock_fingerprint(db, fingerprint.id)
        if fingerprint.diagnoses_used >= limit:
            logger.info("Guest diagnosis limit reached", device_id=fingerprint.device_id)
            raise QuotaExceededError(
                GUEST_QUOTA_MESSAGE,
                code="GUEST_LIMIT_REACHED",
                extra={"limit": limit, "used": fingerprint.diagnoses_used},
            )

        fingerprint.diagnoses_used += 1
        diagnosis = _build_diagnosis(data, True, fingerprint_id=fingerprint.id, region_id=data.region_id)
        db.add(diagnosis)
        await db.flush()

        leads = []
        if settings.GUEST_DIAGNOSIS_CREATES_LEADS:
            leads = await _create_leads(db, diagnosis, data.specialization_ids, driver_id=None)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(diagnosis)
    for lead in leads:
        await db.refresh(lead)
    logger.info(
        "Guest diagnosis allocated",
        diagnosis_id=diagnosis.id,
        device_id=fingerprint.device_id,
        leads=len(leads),
    )
    return AllocationResult(diagnosis=diagnosis, leads=leads, guest_quota=guest_quota(fingerprint))


async def dispatch_allocation(result: AllocationResult, broadcaster: Broadcaster):
    """Announce new leads and queue background work for a committed allocation."""
    diagnosis = result.diagnosis
    for lead in result.leads:
        await broadcaster.publish(
            [expert_channel(lead.expert_id)],
            "lead.new",
            lead_event_payload(lead, diagnosis),
        )
        task_queue.enqueue_lead_notification(lead.id)
    task_queue.enqueue_diagnosis_processing(diagnosis.id)
