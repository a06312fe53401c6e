import logging
from typing import List, Optional, Type

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.package import (
    DiagnosisPackage,
    DiagnosisPackagePurchase,
    ExpertSubscription,
    LeadPackage,
    LeadPackagePurchase,
    Payment,
    PurchaseStatus,
    SubscriptionPlan,
    SubscriptionStatus,
)
from repositories.base import BaseRepository
from schemas.package import PurchaseRequest
from services.helpers import utcnow

logger = logging.getLogger(__name__)


class PackageRepository(BaseRepository[Payment, PurchaseRequest, PurchaseRequest]):
    """Catalogue, purchases and payments."""

    def __init__(self, db_session: AsyncSession):
        super().__init__(Payment, db_session)
        self.db_session = db_session

    async def active_catalogue(self, model: Type) -> List:
        result = await self.db_session.execute(
            select(model)
            .where(model.is_active == True)  # noqa: E712
            .order_by(model.sort_order, model.price)
        )
        return list(result.scalars().all())

    async def get_active(self, model: Type, package_id: int):
        result = await self.db_session.execute(
            select(model).where(model.id == package_id, model.is_active == True)  # noqa: E712
        )
        return result.scalar_one_or_none()

    async def get_lead_package(self, package_id: int) -> Optional[LeadPackage]:
        return await self.get_active(LeadPackage, package_id)

    async def get_diagnosis_package(self, package_id: int) -> Optional[DiagnosisPackage]:
        return await self.get_active(DiagnosisPackage, package_id)

    async def get_plan(self, plan_id: int) -> Optional[SubscriptionPlan]:
        return await self.get_active(SubscriptionPlan, plan_id)

    async def active_subscription(self, user_id: int) -> Optional[ExpertSubscription]:
        result = await self.db_session.execute(
            select(ExpertSubscription)
            .where(
                ExpertSubscription.user_id == user_id,
                ExpertSubscription.status == SubscriptionStatus.ACTIVE,
                ExpertSubscription.ends_at > utcnow(),
            )
            .order_by(ExpertSubscription.ends_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def lock_usable_lead_purchase(self, user_id: int) -> Optional[LeadPackagePurchase]:
        """Oldest active, unexpired lead package with leads left, row-locked."""
        result = await self.db_session.execute(
            select(LeadPackagePurchase)
            .where(
                LeadPackagePurchase.user_id == user_id,
                LeadPackagePurchase.status == PurchaseStatus.ACTIVE,
                LeadPackagePurchase.leads_remaining > 0,
                or_(LeadPackagePurchase.expires_at.is_(None), LeadPackagePurchase.expires_at > utcnow()),
            )
            .order_by(LeadPackagePurchase.created_at, LeadPackagePurchase.id)
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lock_usable_diagnosis_purchase(self, user_id: int) -> Optional[DiagnosisPackagePurchase]:
        result = await self.db_session.execute(
            select(DiagnosisPackagePurchase)
            .where(
                DiagnosisPackagePurchase.user_id == user_id,
                DiagnosisPackagePurchase.status == PurchaseStatus.ACTIVE,
                DiagnosisPackagePurchase.diagnoses_remaining > 0,
            )
            .order_by(DiagnosisPackagePurchase.created_at, DiagnosisPackagePurchase.id)
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lead_purchases(self, user_id: int) -> List[LeadPackagePurchase]:
        result = await self.db_session.execute(
            select(LeadPackagePurchase)
            .where(LeadPackagePurchase.user_id == user_id)
            .order_by(LeadPackagePurchase.created_at.desc(), LeadPackagePurchase.id.desc())
        )
        return list(result.scalars().all())

    async def payments_for_user(self, user_id: int, page: int, per_page: int):
        query = (
            select(Payment)
            .where(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
        )
        return await self.paginate(query, page, per_page)
