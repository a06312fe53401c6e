"""
Appointment booking and lifecycle.

pending -> confirmed -> in_progress -> completed. Drivers cancel or
reschedule while the appointment still holds its slot; experts confirm,
reject, start and complete. Rescheduling sends the appointment back to
pending for the expert to confirm again.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InvalidTransitionError, SlotUnavailableError
from core.logging import get_logger
from models.appointment import (
    SLOT_HOLDING_STATUSES,
    Appointment,
    AppointmentService,
    AppointmentStatus,
    LocationType,
)
from models.user import User, UserRole
from repositories.appointment import AppointmentRepository, ServicePackageRepository
from schemas.appointment import (
    AppointmentComplete,
    AppointmentCreate,
    AppointmentReschedule,
)
from services.broadcast_service import Broadcaster, user_channel
from services.helpers import utcnow

logger = get_logger(__name__)

DEFAULT_DURATION_MINUTES = 60

ALLOWED_FROM = {
    AppointmentStatus.CONFIRMED: (AppointmentStatus.PENDING,),
    AppointmentStatus.REJECTED: (AppointmentStatus.PENDING,),
    AppointmentStatus.IN_PROGRESS: (AppointmentStatus.CONFIRMED,),
    AppointmentStatus.COMPLETED: (AppointmentStatus.IN_PROGRESS,),
    AppointmentStatus.CANCELLED: SLOT_HOLDING_STATUSES,
}


def _ensure_allowed(appointment: Appointment, target: AppointmentStatus):
    if appointment.status not in ALLOWED_FROM[target]:
        raise InvalidTransitionError(
            f"Appointment cannot be marked as {target.value} while {appointment.status.value}."
        )


async def _save(db: AsyncSession, appointment: Appointment) -> Appointment:
    await db.commit()
    await db.refresh(appointment)
    return appointment


def appointment_event_payload(appointment: Appointment) -> Dict[str, Any]:
    return {
        "appointment_id": appointment.id,
        "status": appointment.status.value,
        "scheduled_date": appointment.scheduled_date,
        "scheduled_time": appointment.scheduled_time,
        "updated_at": appointment.updated_at,
    }


async def notify_counterpart(broadcaster: Broadcaster, appointment: Appointment, actor: User, event: str):
    """Tell the other party of the appointment that something changed."""
    recipient = appointment.expert_id if actor.id == appointment.driver_id else appointment.driver_id
    await broadcaster.publish([user_channel(recipient)], event, appointment_event_payload(appointment))


async def book_appointment(db: AsyncSession, driver: User, body: AppointmentCreate) -> Appointment:
    expert = await db.get(User, body.expert_id)
    if not expert or expert.role != UserRole.EXPERT or not expert.expert_profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expert not found")
    profile = expert.expert_profile
    if not profile.is_available:
        raise SlotUnavailableError("Expert is not available")

    repository = AppointmentRepository(db)
    if await repository.has_conflict(expert.id, body.scheduled_date, body.scheduled_time):
        raise SlotUnavailableError("This time slot is not available")

    packages = await ServicePackageRepository(db).active_by_ids(expert.id, body.service_package_ids)
    if len(packages) != len(set(body.service_package_ids)):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="One or more selected services are invalid.",
        )

    estimated_cost: Optional[Decimal] = None
    duration = DEFAULT_DURATION_MINUTES
    if packages:
        estimated_cost = sum((Decimal(p.price) for p in packages), Decimal("0"))
        duration = sum(p.duration_minutes for p in packages) or DEFAULT_DURATION_MINUTES

    at_driver = body.location_type == LocationType.DRIVER_LOCATION
    appointment = Appointment(
        driver_id=driver.id,
        expert_id=expert.id,
        diagnosis_id=body.diagnosis_id,
        vehicle_id=body.vehicle_id,
        scheduled_date=body.scheduled_date,
        scheduled_time=body.scheduled_time,
        estimated_duration_minutes=duration,
        service_type=body.service_type,
        description=body.description,
        location_type=body.location_type,
        address=body.address or (None if at_driver else profile.address),
        latitude=body.latitude if body.latitude is not None else (None if at_driver else profile.latitude),
        longitude=body.longitude if body.longitude is not None else (None if at_driver else profile.longitude),
        status=AppointmentStatus.PENDING,
        estimated_cost=estimated_cost,
    )
    appointment.services = [
        AppointmentService(service_package_id=p.id, service_name=p.name, price=p.price, quantity=1)
        for p in packages
    ]
    db.add(appointment)
    await _save(db, appointment)
    logger.info(
        "Appointment booked",
        appointment_id=appointment.id,
        driver_id=driver.id,
        expert_id=expert.id,
        services=len(packages),
    )
    return appointment


async def cancel_appointment(
    db: AsyncSession, appointment: Appointment, user: User, reason: Optional[str] = None
) -> Appointment:
    _ensure_allowed(appointment, AppointmentStatus.CANCELLED)
    appointment.status = AppointmentStatus.CANCELLED
    appointment.cancelled_at = utcnow()
    appointment.cancellation_reason = reason
    appointment.cancelled_by = "expert" if user.id == appointment.expert_id else "driver"
    logger.info("Appointment cancelled", appointment_id=appointment.id, by=appointment.cancelled_by)
    return await _save(db, appointment)


async def reschedule_appointment(db: AsyncSession, appointment: Appointment, body: AppointmentReschedule) -> Appointment:
    if not appointment.can_be_cancelled:
        raise InvalidTransitionError(
            f"Appointment cannot be rescheduled while {appointment.status.value}."
        )
    if await AppointmentRepository(db).has_conflict(
        appointment.expert_id, body.scheduled_date, body.scheduled_time, exclude_id=appointment.id
    ):
        raise SlotUnavailableError("This time slot is not available")

    appointment.scheduled_date = body.scheduled_date
    appointment.scheduled_time = body.scheduled_time
    appointment.status = AppointmentStatus.PENDING
    appointment.confirmed_at = None
    logger.info(
        "Appointment rescheduled",
        appointment_id=appointment.id,
        scheduled_date=str(body.scheduled_date),
        scheduled_time=str(body.scheduled_time),
    )
    return await _save(db, appointment)


async def confirm_appointment(db: AsyncSession, appointment: Appointment) -> Appointment:
    _ensure_allowed(appointment, AppointmentStatus.CONFIRMED)
    appointment.status = AppointmentStatus.CONFIRMED
    appointment.confirmed_at = utcnow()
    logger.info("Appointment confirmed", appointment_id=appointment.id, expert_id=appointment.expert_id)
    return await _save(db, appointment)


async def reject_appointment(db: AsyncSession, appointment: Appointment, reason: str) -> Appointment:
    _ensure_allowed(appointment, AppointmentStatus.REJECTED)
    appointment.status = AppointmentStatus.REJECTED
    appointment.cancelled_at = utcnow()
    appointment.cancellation_reason = reason
    appointment.cancelled_by = "expert"
    logger.info("Appointment rejected", appointment_id=appointment.id, expert_id=appointment.expert_id)
    return await _save(db, appointment)


async def start_appointment(db: AsyncSession, appointment: Appointment) -> Appointment:
    _ensure_allowed(appointment, AppointmentStatus.IN_PROGRESS)
    appointment.status = AppointmentStatus.IN_PROGRESS
    appointment.started_at = utcnow()
    return await _save(db, appointment)


async def complete_appointment(db: AsyncSession, appointment: Appointment, body: AppointmentComplete) -> Appointment:
    _ensure_allowed(appointment, AppointmentStatus.COMPLETED)
    appointment.status = AppointmentStatus.COMPLETED
    appointment.completed_at = utcnow()
    if body.final_cost is not None:
        appointment.final_cost = Decimal(str(body.final_cost))
    else:
        appointment.final_cost = appointment.estimated_cost
    if body.notes is not None:
        appointment.notes = body.notes
    logger.info(
        "Appointment completed",
        appointment_id=appointment.id,
        expert_id=appointment.expert_id,
        final_cost=str(appointment.final_cost) if appointment.final_cost is not None else None,
    )
    return await _save(db, appointment)
