from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.logging import get_logger
from models.profile import ExpertProfile, KycStatus
from models.user import User
from repositories.expert import ExpertRepository
from schemas.expert import ExpertDetail, ExpertListItem, ExpertProfileUpdate, ReviewRead
from services.helpers import utcnow

logger = get_logger(__name__)


def _card_fields(profile: ExpertProfile) -> dict:
    return {
        "user_id": profile.user_id,
        "name": profile.user.full_name,
        "avatar": profile.user.avatar,
        "business_name": profile.business_name,
        "city": profile.city,
        "region_id": profile.region_id,
        "latitude": profile.latitude,
        "longitude": profile.longitude,
        "rating": profile.rating or 0.0,
        "rating_count": profile.rating_count or 0,
        "jobs_completed": profile.jobs_completed or 0,
        "experience_years": profile.experience_years,
        "is_priority_listed": profile.is_priority_listed,
        "is_available": profile.is_available,
        "specializations": profile.specializations,
    }


def expert_card(profile: ExpertProfile, distance_km: Optional[float] = None) -> ExpertListItem:
    card = ExpertListItem.model_validate(_card_fields(profile))
    if distance_km is not None:
        card.distance_km = round(distance_km, 2)
    return card


def expert_detail(profile: ExpertProfile, reviews: List) -> ExpertDetail:
    fields = _card_fields(profile)
    fields.update(
        bio=profile.bio,
        address=profile.address,
        whatsapp_number=profile.whatsapp_number,
        alternate_phone=profile.alternate_phone,
        working_hours=profile.working_hours,
        service_regions=profile.service_regions,
        reviews=[ReviewRead.model_validate(review) for review in reviews],
    )
    return ExpertDetail.model_validate(fields)


async def update_expert_profile(db: AsyncSession, profile: ExpertProfile, data: ExpertProfileUpdate) -> ExpertProfile:
    repo = ExpertRepository(db)
    payload = data.model_dump(exclude_unset=True)
    specialization_ids = payload.pop("specialization_ids", None)
    service_region_ids = payload.pop("service_region_ids", None)

    for key, value in payload.items():
        setattr(profile, key, value)
    if specialization_ids is not None:
        await repo.set_specializations(profile, specialization_ids)
    if service_region_ids is not None:
        await repo.set_service_regions(profile, service_region_ids)

    await db.commit()
    await db.refresh(profile)
    logger.info("Expert profile updated", user_id=profile.user_id, fields=sorted(data.model_fields_set))
    return profile


async def submit_kyc(db: AsyncSession, profile: ExpertProfile) -> ExpertProfile:
    """Move a pending or rejected profile to ``submitted`` for admin review."""
    profile.kyc_status = KycStatus.SUBMITTED
    profile.kyc_submitted_at = utcnow()
    profile.kyc_rejection_reason = None
    await db.commit()
    await db.refresh(profile)
    logger.info("KYC submitted", user_id=profile.user_id)
    return profile


async def decide_kyc(
    db: AsyncSession,
    profile: ExpertProfile,
    approved: bool,
    reason: Optional[str],
    admin: User,
) -> ExpertProfile:
    if approved:
        profile.kyc_status = KycStatus.APPROVED
        profile.kyc_approved_at = utcnow()
        profile.kyc_rejection_reason = None
    else:
        profile.kyc_status = KycStatus.REJECTED
        profile.kyc_rejection_reason = reason or "Your verification was not approved."
    await db.commit()
    await db.refresh(profile)
    logger.info(
        "KYC decision recorded",
        user_id=profile.user_id,
        approved=approved,
        admin_id=admin.id,
    )
    return profile
