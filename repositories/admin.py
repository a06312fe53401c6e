import logging
from typing import Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.diagnosis import Diagnosis
from models.lead import Lead
from models.package import Payment, PaymentStatus
from models.profile import ExpertProfile, KycStatus
from models.user import User

logger = logging.getLogger(__name__)


class AdminRepository:
    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _grouped(self, column, id_column) -> Dict[str, int]:
        result = await self.db_session.execute(select(column, func.count(id_column)).group_by(column))
        return {key.value: count for key, count in result.all()}

    async def dashboard(self) -> dict:
        completed_total = await self.db_session.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == PaymentStatus.COMPLETED)
        )
        pending_kyc = await self.db_session.execute(
            select(func.count(ExpertProfile.id)).where(ExpertProfile.kyc_status == KycStatus.SUBMITTED)
        )
        return {
            "users_by_role": await self._grouped(User.role, User.id),
            "diagnoses_by_status": await self._grouped(Diagnosis.status, Diagnosis.id),
            "leads_by_status": await self._grouped(Lead.status, Lead.id),
            "pending_kyc": pending_kyc.scalar_one(),
            "completed_payments_total": float(completed_total.scalar_one()),
        }

    async def submitted_kyc(self) -> List[ExpertProfile]:
        result = await self.db_session.execute(
            select(ExpertProfile)
            .where(ExpertProfile.kyc_status == KycStatus.SUBMITTED)
            .options(selectinload(ExpertProfile.user))
            .order_by(ExpertProfile.kyc_submitted_at)
        )
        return list(result.scalars().all())
