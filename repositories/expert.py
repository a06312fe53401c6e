"""
Expert Repository

Queries over expert profiles: directory listing, nearby search and the
candidate selection used when a diagnosis is turned into leads.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import Select

from models.lead import Review
from models.profile import ExpertProfile, KycStatus
from models.reference import Region, Specialization
from models.user import User
from repositories.base import BaseRepository
from schemas.expert import ExpertProfileUpdate
from services.helpers import EARTH_RADIUS_KM, bounding_box

logger = logging.getLogger(__name__)


def haversine_expression(latitude: float, longitude: float):
    """Great-circle distance in km from a point to each expert, as SQL."""
    d_lat = func.radians(ExpertProfile.latitude - latitude)
    d_lng = func.radians(ExpertProfile.longitude - longitude)
    a = func.power(func.sin(d_lat / 2), 2) + (
        func.cos(func.radians(latitude))
        * func.cos(func.radians(ExpertProfile.latitude))
        * func.power(func.sin(d_lng / 2), 2)
    )
    return 2 * EARTH_RADIUS_KM * func.asin(func.least(1.0, func.sqrt(a)))


def listed_experts() -> Select:
    """Active, available, KYC-approved experts with their user rows loaded."""
    return (
        select(ExpertProfile)
        .join(User, User.id == ExpertProfile.user_id)
        .where(
            User.is_active == True,  # noqa: E712
            ExpertProfile.is_available == True,  # noqa: E712
            ExpertProfile.kyc_status == KycStatus.APPROVED,
        )
        .options(selectinload(ExpertProfile.user))
    )


def serves_region(region_id: int):
    return or_(
        ExpertProfile.region_id == region_id,
        ExpertProfile.service_regions.any(Region.id == region_id),
    )


def offers_any(specialization_ids: Sequence[int]):
    return ExpertProfile.specializations.any(Specialization.id.in_(list(specialization_ids)))


class ExpertRepository(BaseRepository[ExpertProfile, ExpertProfileUpdate, ExpertProfileUpdate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(ExpertProfile, db_session)
        self.db_session = db_session

    async def get_by_user_id(self, user_id: int, listed_only: bool = False) -> Optional[ExpertProfile]:
        query = listed_experts() if listed_only else (
            select(ExpertProfile).options(selectinload(ExpertProfile.user))
        )
        result = await self.db_session.execute(query.where(ExpertProfile.user_id == user_id))
        return result.scalar_one_or_none()

    async def directory(
        self,
        page: int,
        per_page: int,
        region_id: Optional[int] = None,
        specialization_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[ExpertProfile], int]:
        query = listed_experts()
        if region_id:
            query = query.where(serves_region(region_id))
        if specialization_id:
            query = query.where(offers_any([specialization_id]))
        if search:
            term = f"%{search.strip()}%"
            query = query.where(
                or_(
                    ExpertProfile.business_name.ilike(term),
                    User.first_name.ilike(term),
                    User.last_name.ilike(term),
                    ExpertProfile.city.ilike(term),
                )
            )
        query = query.order_by(
            ExpertProfile.is_priority_listed.desc(),
            ExpertProfile.rating.desc(),
            ExpertProfile.id,
        )
        return await self.paginate(query, page, per_page)

    async def nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        limit: int,
        specialization_id: Optional[int] = None,
        region_id: Optional[int] = None,
    ) -> List[Tuple[ExpertProfile, float]]:
        """Experts within ``radius_km`` of the point, nearest first."""
        distance = haversine_expression(latitude, longitude)
        min_lat, max_lat, min_lng, max_lng = bounding_box(latitude, longitude, radius_km)

        query = (
            listed_experts()
            .add_columns(distance.label("distance_km"))
            .where(
                ExpertProfile.latitude.is_not(None),
                ExpertProfile.longitude.is_not(None),
                ExpertProfile.latitude.between(min_lat, max_lat),
            )
        )
        # A box crossing the antimeridian cannot be expressed as one range
        if min_lng >= -180 and max_lng <= 180:
            query = query.where(ExpertProfile.longitude.between(min_lng, max_lng))
        if specialization_id:
            query = query.where(offers_any([specialization_id]))
        if region_id:
            query = query.where(serves_region(region_id))

        query = query.where(distance <= radius_km).order_by(distance, ExpertProfile.id).limit(limit)
        result = await self.db_session.execute(query)
        return [(profile, float(distance_km)) for profile, distance_km in result.all()]

    async def best_rated_for_region(self, region_id: Optional[int], limit: int = 10) -> List[ExpertProfile]:
        query = listed_experts()
        if region_id:
            query = query.where(serves_region(region_id))
        query = query.order_by(ExpertProfile.rating.desc(), ExpertProfile.jobs_completed.desc()).limit(limit)
        result = await self.db_session.execute(query)
        return list(result.scalars().all())

    async def lock_candidates(
        self,
        region_id: Optional[int],
        specialization_ids: Sequence[int],
        limit: int,
    ) -> List[ExpertProfile]:
        """Select and row-lock the experts a new diagnosis is offered to."""
        query = listed_experts()
        if region_id:
            query = query.where(serves_region(region_id))
        if specialization_ids:
            query = query.where(offers_any(specialization_ids))
        query = (
            query.order_by(
                ExpertProfile.is_priority_listed.desc(),
                ExpertProfile.rating.desc(),
                ExpertProfile.id,
            )
            .limit(limit)
            .with_for_update(of=ExpertProfile)
            .execution_options(populate_existing=True)
        )
        result = await self.db_session.execute(query)
        return list(result.scalars().all())

    async def visible_reviews(self, expert_user_id: int, limit: int = 20) -> List[Review]:
        result = await self.db_session.execute(
            select(Review)
            .where(Review.expert_id == expert_user_id, Review.is_visible == True)  # noqa: E712
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def set_specializations(self, profile: ExpertProfile, specialization_ids: Sequence[int]):
        result = await self.db_session.execute(
            select(Specialization).where(Specialization.id.in_(list(specialization_ids)))
        )
        profile.specializations = list(result.scalars().all())

    async def set_service_regions(self, profile: ExpertProfile, region_ids: Sequence[int]):
        result = await self.db_session.execute(select(Region).where(Region.id.in_(list(region_ids))))
        profile.service_regions = list(result.scalars().all())
