import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.reference import Region, Setting, Specialization, VehicleMake, VehicleModel

logger = logging.getLogger(__name__)


class ReferenceRepository:
    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def regions(self) -> List[Region]:
        result = await self.db_session.execute(
            select(Region).where(Region.is_active == True).order_by(Region.name)  # noqa: E712
        )
        return list(result.scalars().all())

    async def specializations(self) -> List[Specialization]:
        result = await self.db_session.execute(
            select(Specialization)
            .where(Specialization.is_active == True)  # noqa: E712
            .order_by(Specialization.sort_order, Specialization.name)
        )
        return list(result.scalars().all())

    async def vehicle_makes(self) -> List[VehicleMake]:
        result = await self.db_session.execute(
            select(VehicleMake).where(VehicleMake.is_active == True).order_by(VehicleMake.name)  # noqa: E712
        )
        return list(result.scalars().all())

    async def vehicle_models(self, make_id: int) -> List[VehicleModel]:
        result = await self.db_session.execute(
            select(VehicleModel)
            .where(VehicleModel.vehicle_make_id == make_id, VehicleModel.is_active == True)  # noqa: E712
            .order_by(VehicleModel.name)
        )
        return list(result.scalars().all())

    async def public_settings(self) -> List[Setting]:
        result = await self.db_session.execute(
            select(Setting).where(Setting.is_public == True).order_by(Setting.key)  # noqa: E712
        )
        return list(result.scalars().all())
