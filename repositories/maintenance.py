import logging
from typing import List, Optional, Tuple

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.maintenance import (
    REMINDER_STATUS_ORDER,
    MaintenanceLog,
    MaintenanceReminder,
    MaintenanceType,
)
from repositories.base import BaseRepository
from schemas.maintenance import (
    MaintenanceTypeCreate,
    MaintenanceTypeUpdate,
    ReminderCreate,
    ReminderUpdate,
)
from services.helpers import utcnow

logger = logging.getLogger(__name__)

_status_rank = case(
    *[(MaintenanceReminder.status == status, rank) for rank, status in enumerate(REMINDER_STATUS_ORDER)],
    else_=len(REMINDER_STATUS_ORDER),
)


class MaintenanceTypeRepository(BaseRepository[MaintenanceType, MaintenanceTypeCreate, MaintenanceTypeUpdate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(MaintenanceType, db_session)
        self.db_session = db_session

    async def list_visible(self, user_id: Optional[int] = None) -> List[MaintenanceType]:
        """Active system types, plus the user's own when a user is given."""
        owner = MaintenanceType.user_id.is_(None)
        if user_id is not None:
            owner = or_(owner, MaintenanceType.user_id == user_id)
        result = await self.db_session.execute(
            select(MaintenanceType)
            .where(MaintenanceType.is_active == True, owner)  # noqa: E712
            .order_by(MaintenanceType.sort_order, MaintenanceType.name)
        )
        return list(result.scalars().all())

    async def get_visible(self, type_id: int, user_id: int) -> Optional[MaintenanceType]:
        result = await self.db_session.execute(
            select(MaintenanceType).where(
                MaintenanceType.id == type_id,
                MaintenanceType.is_active == True,  # noqa: E712
                or_(MaintenanceType.user_id.is_(None), MaintenanceType.user_id == user_id),
            )
        )
        return result.scalar_one_or_none()

    async def in_use(self, type_id: int) -> bool:
        result = await self.db_session.execute(
            select(func.count(MaintenanceReminder.id)).where(
                MaintenanceReminder.maintenance_type_id == type_id,
                MaintenanceReminder.deleted_at.is_(None),
            )
        )
        return result.scalar_one() > 0

    async def delete(self, maintenance_type: MaintenanceType):
        await self.db_session.delete(maintenance_type)
        await self.db_session.commit()
        logger.info(f"Deleted maintenance type {maintenance_type.id}")


class ReminderRepository(BaseRepository[MaintenanceReminder, ReminderCreate, ReminderUpdate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(MaintenanceReminder, db_session)
        self.db_session = db_session

    async def list_for_user(
        self,
        user_id: int,
        page: int,
        per_page: int,
        vehicle_id: Optional[int] = None,
        status=None,
    ) -> Tuple[List[MaintenanceReminder], int]:
        """Reminders needing attention first, then by due date."""
        query = select(MaintenanceReminder).where(
            MaintenanceReminder.user_id == user_id,
            MaintenanceReminder.deleted_at.is_(None),
        )
        if vehicle_id is not None:
            query = query.where(MaintenanceReminder.vehicle_id == vehicle_id)
        if status is not None:
            query = query.where(MaintenanceReminder.status == status)
        query = query.order_by(
            _status_rank,
            MaintenanceReminder.due_date.is_(None),
            MaintenanceReminder.due_date,
            MaintenanceReminder.id,
        )
        return await self.paginate(query, page, per_page)

    async def get_owned(self, reminder_id: int, user_id: int) -> Optional[MaintenanceReminder]:
        result = await self.db_session.execute(
            select(MaintenanceReminder).where(
                MaintenanceReminder.id == reminder_id,
                MaintenanceReminder.user_id == user_id,
                MaintenanceReminder.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def soft_delete(self, reminder: MaintenanceReminder):
        await self.update(reminder, {"deleted_at": utcnow()})


class MaintenanceLogRepository(BaseRepository[MaintenanceLog, ReminderCreate, ReminderUpdate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(MaintenanceLog, db_session)
        self.db_session = db_session

    async def list_for_user(
        self, user_id: int, page: int, per_page: int, vehicle_id: Optional[int] = None
    ) -> Tuple[List[MaintenanceLog], int]:
        query = select(MaintenanceLog).where(MaintenanceLog.user_id == user_id)
        if vehicle_id is not None:
            query = query.where(MaintenanceLog.vehicle_id == vehicle_id)
        query = query.order_by(MaintenanceLog.completed_date.desc(), MaintenanceLog.id.desc())
        return await self.paginate(query, page, per_page)
