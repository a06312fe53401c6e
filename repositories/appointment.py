import logging
from datetime import date, time
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.appointment import (
    ACTIVE_APPOINTMENT_STATUSES,
    PAST_APPOINTMENT_STATUSES,
    SLOT_HOLDING_STATUSES,
    Appointment,
    AppointmentStatus,
    ServicePackage,
)
from repositories.base import BaseRepository
from schemas.appointment import AppointmentCreate, ServicePackageCreate, ServicePackageUpdate

logger = logging.getLogger(__name__)


def _apply_status_filter(query, status: Optional[str], today: date):
    """Filter by an exact status or one of the upcoming/past/active views."""
    if not status:
        return query
    if status == "upcoming":
        return query.where(
            Appointment.scheduled_date >= today,
            Appointment.status.in_(SLOT_HOLDING_STATUSES),
        )
    if status == "past":
        return query.where(
            or_(
                Appointment.scheduled_date < today,
                Appointment.status.in_(PAST_APPOINTMENT_STATUSES),
            )
        )
    if status == "active":
        return query.where(Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES))
    return query.where(Appointment.status == AppointmentStatus(status))


APPOINTMENT_LIST_FILTERS = ("upcoming", "past", "active") + tuple(s.value for s in AppointmentStatus)


class AppointmentRepository(BaseRepository[Appointment, AppointmentCreate, AppointmentCreate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Appointment, db_session)
        self.db_session = db_session

    async def list_for_driver(
        self, driver_id: int, page: int, per_page: int, status: Optional[str] = None
    ) -> Tuple[List[Appointment], int]:
        query = _apply_status_filter(select(Appointment).where(Appointment.driver_id == driver_id), status, date.today())
        query = query.order_by(
            Appointment.scheduled_date.desc(), Appointment.scheduled_time.desc(), Appointment.id.desc()
        )
        return await self.paginate(query, page, per_page)

    async def list_for_expert(
        self, expert_id: int, page: int, per_page: int, status: Optional[str] = None
    ) -> Tuple[List[Appointment], int]:
        query = _apply_status_filter(select(Appointment).where(Appointment.expert_id == expert_id), status, date.today())
        query = query.order_by(Appointment.scheduled_date, Appointment.scheduled_time, Appointment.id)
        return await self.paginate(query, page, per_page)

    async def get_for_participant(self, appointment_id: int, user_id: int) -> Optional[Appointment]:
        result = await self.db_session.execute(
            select(Appointment).where(
                Appointment.id == appointment_id,
                or_(Appointment.driver_id == user_id, Appointment.expert_id == user_id),
            )
        )
        return result.scalar_one_or_none()

    async def has_conflict(
        self,
        expert_id: int,
        scheduled_date: date,
        scheduled_time: time,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """True when a pending or confirmed appointment already holds the slot."""
        query = select(func.count(Appointment.id)).where(
            Appointment.expert_id == expert_id,
            Appointment.scheduled_date == scheduled_date,
            Appointment.scheduled_time == scheduled_time,
            Appointment.status.in_(SLOT_HOLDING_STATUSES),
        )
        if exclude_id is not None:
            query = query.where(Appointment.id != exclude_id)
        return (await self.db_session.execute(query)).scalar_one() > 0

    async def upcoming_count(self, user_id: int, as_expert: bool = False) -> int:
        owner = Appointment.expert_id if as_expert else Appointment.driver_id
        result = await self.db_session.execute(
            select(func.count(Appointment.id)).where(
                owner == user_id,
                Appointment.scheduled_date >= date.today(),
                Appointment.status.in_(SLOT_HOLDING_STATUSES),
            )
        )
        return result.scalar_one()


class ServicePackageRepository(BaseRepository[ServicePackage, ServicePackageCreate, ServicePackageUpdate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(ServicePackage, db_session)
        self.db_session = db_session

    async def list_for_expert(self, expert_id: int, active_only: bool = False) -> List[ServicePackage]:
        query = select(ServicePackage).where(ServicePackage.expert_id == expert_id)
        if active_only:
            query = query.where(ServicePackage.is_active == True)  # noqa: E712
        result = await self.db_session.execute(query.order_by(ServicePackage.sort_order, ServicePackage.id))
        return list(result.scalars().all())

    async def get_owned(self, package_id: int, expert_id: int) -> Optional[ServicePackage]:
        result = await self.db_session.execute(
            select(ServicePackage).where(ServicePackage.id == package_id, ServicePackage.expert_id == expert_id)
        )
        return result.scalar_one_or_none()

    async def active_by_ids(self, expert_id: int, package_ids: Sequence[int]) -> List[ServicePackage]:
        if not package_ids:
            return []
        result = await self.db_session.execute(
            select(ServicePackage)
            .where(
                ServicePackage.expert_id == expert_id,
                ServicePackage.id.in_(list(package_ids)),
                ServicePackage.is_active == True,  # noqa: E712
            )
            .order_by(ServicePackage.sort_order, ServicePackage.id)
        )
        return list(result.scalars().all())
