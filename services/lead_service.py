"""
Lead lifecycle and reviews.

new -> viewed -> contacted -> converted, with closed reachable from any
open status. Converted, closed and expired leads are final.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InvalidTransitionError
from core.logging import get_logger
from models.lead import Lead, LeadStatus, Review
from models.profile import ExpertProfile
from models.user import User
from repositories.lead import LeadRepository
from schemas.lead import LeadStats
from services.helpers import start_of_month, utcnow

logger = get_logger(__name__)

ALLOWED_FROM = {
    LeadStatus.CONTACTED: (LeadStatus.NEW, LeadStatus.VIEWED),
    LeadStatus.CONVERTED: (LeadStatus.NEW, LeadStatus.VIEWED, LeadStatus.CONTACTED),
    LeadStatus.CLOSED: (LeadStatus.NEW, LeadStatus.VIEWED, LeadStatus.CONTACTED),
}


def _ensure_allowed(lead: Lead, target: LeadStatus):
    if lead.status not in ALLOWED_FROM[target]:
        raise InvalidTransitionError(
            f"Lead cannot be marked as {target.value} while {lead.status.value}."
        )


async def _save(db: AsyncSession, lead: Lead) -> Lead:
    await db.commit()
    await db.refresh(lead)
    return lead


async def mark_viewed(db: AsyncSession, lead: Lead, user: User) -> Lead:
    """Stamp the first view; later views change nothing."""
    if lead.viewed_at is not None:
        return lead
    lead.viewed_at = utcnow()
    if lead.status == LeadStatus.NEW:
        lead.status = LeadStatus.VIEWED
    LeadRepository(db).add_activity(lead, "viewed", "Lead was viewed", user_id=user.id)
    logger.info("Lead viewed", lead_id=lead.id, expert_id=user.id)
    return await _save(db, lead)


async def mark_contacted(db: AsyncSession, lead: Lead, user: User) -> Lead:
    _ensure_allowed(lead, LeadStatus.CONTACTED)
    now = utcnow()
    lead.status = LeadStatus.CONTACTED
    lead.contacted_at = now
    if lead.viewed_at is None:
        lead.viewed_at = now
    LeadRepository(db).add_activity(lead, "contacted", "Driver was contacted", user_id=user.id)
    logger.info("Lead contacted", lead_id=lead.id, expert_id=user.id)
    return await _save(db, lead)


async def mark_converted(db: AsyncSession, lead: Lead, user: User) -> Lead:
    _ensure_allowed(lead, LeadStatus.CONVERTED)
    lead.status = LeadStatus.CONVERTED
    lead.converted_at = utcnow()
    LeadRepository(db).add_activity(lead, "converted", "Lead converted to job", user_id=user.id)

    result = await db.execute(select(ExpertProfile).where(ExpertProfile.user_id == lead.expert_id))
    profile = result.scalar_one_or_none()
    if profile:
        profile.jobs_completed = (profile.jobs_completed or 0) + 1
    logger.info("Lead converted", lead_id=lead.id, expert_id=user.id)
    return await _save(db, lead)


async def close_lead(db: AsyncSession, lead: Lead, user: User, reason: Optional[str] = None) -> Lead:
    _ensure_allowed(lead, LeadStatus.CLOSED)
    lead.status = LeadStatus.CLOSED
    lead.closed_at = utcnow()
    if reason:
        lead.notes = reason
    LeadRepository(db).add_activity(lead, "closed", reason or "Lead was closed", user_id=user.id)
    logger.info("Lead closed", lead_id=lead.id, expert_id=user.id)
    return await _save(db, lead)


async def lead_stats(db: AsyncSession, expert: User) -> LeadStats:
    repo = LeadRepository(db)
    counts = await repo.status_counts(expert.id)
    profile = expert.expert_profile
    return LeadStats(
        total=sum(counts.values()),
        new=counts.get(LeadStatus.NEW, 0),
        viewed=counts.get(LeadStatus.VIEWED, 0),
        contacted=counts.get(LeadStatus.CONTACTED, 0),
        converted=counts.get(LeadStatus.CONVERTED, 0),
        this_month=await repo.count_since(expert.id, start_of_month()),
        free_leads_remaining=profile.free_leads_remaining if profile else 0,
    )


async def create_review(
    db: AsyncSession,
    lead: Lead,
    driver: User,
    rating: int,
    comment: Optional[str],
) -> Review:
    """Store the driver's review and fold it into the expert rating."""
    try:
        review = Review(
            lead_id=lead.id,
            expert_id=lead.expert_id,
            driver_id=driver.id,
            rating=rating,
            comment=comment,
            is_visible=True,
        )
        db.add(review)
        result = await db.execute(
            select(ExpertProfile)
            .where(ExpertProfile.user_id == lead.expert_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        profile = result.scalar_one_or_none()
        if profile:
            profile.update_rating(rating)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(review)
    logger.info("Review created", review_id=review.id, expert_id=lead.expert_id, rating=rating)
    return review


async def respond_to_review(db: AsyncSession, review: Review, response: str) -> Review:
    review.expert_response = response
    review.expert_responded_at = utcnow()
    await db.commit()
    await db.refresh(review)
    return review
