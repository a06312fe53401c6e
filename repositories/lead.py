import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.lead import Lead, LeadActivity, LeadStatus, Review
from repositories.base import BaseRepository
from schemas.expert import ReviewCreate

logger = logging.getLogger(__name__)


class LeadRepository(BaseRepository[Lead, ReviewCreate, ReviewCreate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Lead, db_session)
        self.db_session = db_session

    async def list_for_expert(
        self,
        expert_id: int,
        page: int,
        per_page: int,
        status: Optional[LeadStatus] = None,
    ) -> Tuple[List[Lead], int]:
        query = select(Lead).where(Lead.expert_id == expert_id)
        if status:
            query = query.where(Lead.status == status)
        query = query.order_by(Lead.created_at.desc(), Lead.id.desc())
        return await self.paginate(query, page, per_page)

    async def get_for_expert(self, lead_id: int, expert_id: int) -> Optional[Lead]:
        result = await self.db_session.execute(
            select(Lead).where(Lead.id == lead_id, Lead.expert_id == expert_id)
        )
        return result.scalar_one_or_none()

    async def status_counts(self, expert_id: int) -> Dict[LeadStatus, int]:
        result = await self.db_session.execute(
            select(Lead.status, func.count(Lead.id))
            .where(Lead.expert_id == expert_id)
            .group_by(Lead.status)
        )
        return {status: count for status, count in result.all()}

    async def count_since(self, expert_id: int, since: datetime) -> int:
        result = await self.db_session.execute(
            select(func.count(Lead.id)).where(Lead.expert_id == expert_id, Lead.created_at >= since)
        )
        return result.scalar_one()

    async def activities(self, lead_id: int) -> List[LeadActivity]:
        result = await self.db_session.execute(
            select(LeadActivity).where(LeadActivity.lead_id == lead_id).order_by(LeadActivity.id)
        )
        return list(result.scalars().all())

    def add_activity(
        self,
        lead: Lead,
        activity_type: str,
        description: str,
        user_id: Optional[int] = None,
        metadata: Optional[dict] = None,
    ) -> LeadActivity:
        activity = LeadActivity(
            lead_id=lead.id,
            user_id=user_id,
            activity_type=activity_type,
            description=description,
            metadata_=metadata,
        )
        self.db_session.add(activity)
        return activity


class ReviewRepository(BaseRepository[Review, ReviewCreate, ReviewCreate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Review, db_session)
        self.db_session = db_session

    async def get_by_lead(self, lead_id: int) -> Optional[Review]:
        result = await self.db_session.execute(select(Review).where(Review.lead_id == lead_id))
        return result.scalar_one_or_none()

    async def list_for_expert(self, expert_id: int, page: int, per_page: int) -> Tuple[List[Review], int]:
        query = (
            select(Review)
            .where(Review.expert_id == expert_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        return await self.paginate(query, page, per_page)

