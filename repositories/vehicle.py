import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.vehicle import Vehicle
from repositories.base import BaseRepository
from schemas.vehicle import VehicleCreate, VehicleUpdate
from services.helpers import utcnow

logger = logging.getLogger(__name__)


class VehicleRepository(BaseRepository[Vehicle, VehicleCreate, VehicleUpdate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Vehicle, db_session)
        self.db_session = db_session

    async def list_for_user(self, user_id: int) -> List[Vehicle]:
        """Owner's vehicles, primary first."""
        result = await self.db_session.execute(
            select(Vehicle)
            .where(Vehicle.user_id == user_id, Vehicle.deleted_at.is_(None))
            .order_by(Vehicle.is_primary.desc(), Vehicle.created_at.desc(), Vehicle.id.desc())
        )
        return list(result.scalars().all())

    async def get_owned(self, vehicle_id: int, user_id: int) -> Optional[Vehicle]:
        result = await self.db_session.execute(
            select(Vehicle).where(
                Vehicle.id == vehicle_id,
                Vehicle.user_id == user_id,
                Vehicle.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def _clear_primary(self, user_id: int, keep_id: Optional[int] = None):
        query = update(Vehicle).where(Vehicle.user_id == user_id, Vehicle.is_primary == True)  # noqa: E712
        if keep_id is not None:
            query = query.where(Vehicle.id != keep_id)
        await self.db_session.execute(query.values(is_primary=False))

    async def create_for_user(self, user_id: int, data: VehicleCreate) -> Vehicle:
        try:
            existing = await self.count({"user_id": user_id})
            payload = data.model_dump(exclude_unset=True)
            make_primary = payload.pop("is_primary", False) or existing == 0
            if make_primary:
                await self._clear_primary(user_id)
            vehicle = Vehicle(user_id=user_id, is_primary=make_primary, **payload)
            self.db_session.add(vehicle)
            await self.db_session.commit()
            await self.db_session.refresh(vehicle)
            logger.info(f"Created vehicle {vehicle.id} for user {user_id} (primary={make_primary})")
            return vehicle
        except SQLAlchemyError as e:
            await self.db_session.rollback()
            logger.exception(f"Database error creating vehicle for user {user_id}: {str(e)}")
            raise

    async def set_primary(self, vehicle: Vehicle) -> Vehicle:
        try:
            await self._clear_primary(vehicle.user_id, keep_id=vehicle.id)
            vehicle.is_primary = True
            await self.db_session.commit()
            await self.db_session.refresh(vehicle)
            return vehicle
        except SQLAlchemyError as e:
            await self.db_session.rollback()
            logger.exception(f"Database error setting primary vehicle {vehicle.id}: {str(e)}")
            raise

    async def soft_delete(self, vehicle: Vehicle):
        await self.update(vehicle, {"deleted_at": utcnow(), "is_primary": False})
