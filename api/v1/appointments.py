"""
Driver appointment endpoints: book, list, cancel and reschedule.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_driver
from core.database import get_db
from core.security import get_current_active_user
from models.appointment import Appointment
from models.diagnosis import Diagnosis
from models.user import User
from repositories.appointment import APPOINTMENT_LIST_FILTERS, AppointmentRepository
from repositories.vehicle import VehicleRepository
from schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentRead,
    AppointmentReschedule,
)
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.appointment_service import (
    book_appointment,
    cancel_appointment,
    notify_counterpart,
    reschedule_appointment,
)
from services.broadcast_service import Broadcaster, get_broadcaster

router = APIRouter()


def check_list_filter(status: Optional[str]):
    if status and status not in APPOINTMENT_LIST_FILTERS:
        raise HTTPException(status_code=422, detail="The selected status is invalid.")


async def participant_appointment(db: AsyncSession, appointment_id: int, user: User) -> Appointment:
    appointment = await AppointmentRepository(db).get_for_participant(appointment_id, user.id)
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


async def _driver_appointment(db: AsyncSession, appointment_id: int, driver: User) -> Appointment:
    appointment = await participant_appointment(db, appointment_id, driver)
    if appointment.driver_id != driver.id:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


async def _check_references(db: AsyncSession, body: AppointmentCreate, driver: User):
    if body.vehicle_id is not None and not await VehicleRepository(db).get_owned(body.vehicle_id, driver.id):
        raise HTTPException(status_code=422, detail="The selected vehicle is invalid.")
    if body.diagnosis_id is not None:
        diagnosis = await db.get(Diagnosis, body.diagnosis_id)
        if not diagnosis or diagnosis.user_id != driver.id:
            raise HTTPException(status_code=422, detail="The selected diagnosis is invalid.")


@router.get("", response_model=StandardSuccessResponse)
async def list_appointments(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    check_list_filter(status)
    rows, total = await AppointmentRepository(db).list_for_driver(current_user.id, page, per_page, status=status)
    items = [AppointmentRead.model_validate(a) for a in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}


@router.get("/upcoming-count", response_model=StandardSuccessResponse)
async def upcoming_count(current_user: User = Depends(require_driver), db: AsyncSession = Depends(get_db)):
    count = await AppointmentRepository(db).upcoming_count(current_user.id)
    return {"success": True, "message": "Success", "data": {"count": count}}


@router.post("", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    body: AppointmentCreate,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    await _check_references(db, body, current_user)
    appointment = await book_appointment(db, current_user, body)
    await notify_counterpart(broadcaster, appointment, current_user, "appointment.booked")
    return {
        "success": True,
        "message": "Appointment booked successfully. Awaiting expert confirmation.",
        "data": AppointmentRead.model_validate(appointment),
    }


@router.get("/{appointment_id}", response_model=StandardSuccessResponse)
async def show_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    appointment = await participant_appointment(db, appointment_id, current_user)
    return {"success": True, "message": "Success", "data": AppointmentRead.model_validate(appointment)}


@router.post("/{appointment_id}/cancel", response_model=StandardSuccessResponse)
async def cancel(
    appointment_id: int,
    body: AppointmentCancel,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    appointment = await _driver_appointment(db, appointment_id, current_user)
    appointment = await cancel_appointment(db, appointment, current_user, body.reason)
    await notify_counterpart(broadcaster, appointment, current_user, "appointment.status_changed")
    return {"success": True, "message": "Appointment cancelled", "data": AppointmentRead.model_validate(appointment)}


@router.post("/{appointment_id}/reschedule", response_model=StandardSuccessResponse)
async def reschedule(
    appointment_id: int,
    body: AppointmentReschedule,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    appointment = await _driver_appointment(db, appointment_id, current_user)
    appointment = await reschedule_appointment(db, appointment, body)
    await notify_counterpart(broadcaster, appointment, current_user, "appointment.rescheduled")
    return {
        "success": True,
        "message": "Appointment rescheduled. Awaiting expert confirmation.",
        "data": AppointmentRead.model_validate(appointment),
    }
