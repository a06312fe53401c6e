"""
Expert side of appointments: the booking queue and the service packages
drivers can book.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from slugify import slugify

from api.deps import require_expert
from api.v1.appointments import check_list_filter, participant_appointment
from core.database import get_db
from core.logging import get_logger
from models.appointment import Appointment
from models.user import User
from repositories.appointment import AppointmentRepository, ServicePackageRepository
from schemas.appointment import (
    AppointmentComplete,
    AppointmentRead,
    AppointmentReject,
    ServicePackageCreate,
    ServicePackageRead,
    ServicePackageUpdate,
)
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.appointment_service import (
    complete_appointment,
    confirm_appointment,
    notify_counterpart,
    reject_appointment,
    start_appointment,
)
from services.broadcast_service import Broadcaster, get_broadcaster

logger = get_logger(__name__)

router = APIRouter()


async def _expert_appointment(db: AsyncSession, appointment_id: int, expert: User) -> Appointment:
    appointment = await participant_appointment(db, appointment_id, expert)
    if appointment.expert_id != expert.id:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


def _changed(message: str, appointment: Appointment):
    return {"success": True, "message": message, "data": AppointmentRead.model_validate(appointment)}


@router.get("/appointments", response_model=StandardSuccessResponse)
async def list_appointments(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    check_list_filter(status)
    rows, total = await AppointmentRepository(db).list_for_expert(current_user.id, page, per_page, status=status)
    items = [AppointmentRead.model_validate(a) for a in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}


@router.get("/appointments/upcoming-count", response_model=StandardSuccessResponse)
async def upcoming_count(current_user: User = Depends(require_expert), db: AsyncSession = Depends(get_db)):
    count = await AppointmentRepository(db).upcoming_count(current_user.id, as_expert=True)
    return {"success": True, "message": "Success", "data": {"count": count}}


@router.post("/appointments/{appointment_id}/confirm", response_model=StandardSuccessResponse)
async def confirm(
    appointment_id: int,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    appointment = await confirm_appointment(db, await _expert_appointment(db, appointment_id, current_user))
    await notify_counterpart(broadcaster, appointment, current_user, "appointment.status_changed")
    return _changed("Appointment confirmed", appointment)


@router.post("/appointments/{appointment_id}/reject", response_model=StandardSuccessResponse)
async def reject(
    appointment_id: int,
    body: AppointmentReject,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    appointment = await _expert_appointment(db, appointment_id, current_user)
    appointment = await reject_appointment(db, appointment, body.reason)
    await notify_counterpart(broadcaster, appointment, current_user, "appointment.status_changed")
    return _changed("Appointment rejected", appointment)


@router.post("/appointments/{appointment_id}/start", response_model=StandardSuccessResponse)
async def start(
    appointment_id: int,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    appointment = await start_appointment(db, await _expert_appointment(db, appointment_id, current_user))
    await notify_counterpart(broadcaster, appointment, current_user, "appointment.status_changed")
    return _changed("Appointment started", appointment)


@router.post("/appointments/{appointment_id}/complete", response_model=StandardSuccessResponse)
async def complete(
    appointment_id: int,
    body: AppointmentComplete,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    appointment = await _expert_appointment(db, appointment_id, current_user)
    appointment = await complete_appointment(db, appointment, body)
    await notify_counterpart(broadcaster, appointment, current_user, "appointment.status_changed")
    return _changed("Appointment completed", appointment)


@router.get("/services", response_model=StandardSuccessResponse)
async def list_services(current_user: User = Depends(require_expert), db: AsyncSession = Depends(get_db)):
    packages = await ServicePackageRepository(db).list_for_expert(current_user.id)
    return {"success": True, "message": "Success", "data": [ServicePackageRead.model_validate(p) for p in packages]}


@router.post("/services", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    body: ServicePackageCreate,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    repo = ServicePackageRepository(db)
    if any(p.slug == slugify(body.name) for p in await repo.list_for_expert(current_user.id)):
        raise HTTPException(status_code=422, detail="You already offer a service with this name.")
    package = await repo.create({**body.model_dump(), "expert_id": current_user.id})
    logger.info("Service package created", expert_id=current_user.id, service_package_id=package.id)
    return {"success": True, "message": "Service created", "data": ServicePackageRead.model_validate(package)}


@router.put("/services/{package_id}", response_model=StandardSuccessResponse)
async def update_service(
    package_id: int,
    body: ServicePackageUpdate,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    repo = ServicePackageRepository(db)
    package = await repo.get_owned(package_id, current_user.id)
    if not package:
        raise HTTPException(status_code=404, detail="Service not found")
    package = await repo.update(package, body)
    return {"success": True, "message": "Service updated", "data": ServicePackageRead.model_validate(package)}


@router.delete("/services/{package_id}", response_model=StandardSuccessResponse)
async def deactivate_service(
    package_id: int,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    """Booked appointments keep their copied lines, so packages are only switched off."""
    repo = ServicePackageRepository(db)
    package = await repo.get_owned(package_id, current_user.id)
    if not package:
        raise HTTPException(status_code=404, detail="Service not found")
    await repo.update(package, {"is_active": False})
    return {"success": True, "message": "Service removed", "data": None}
