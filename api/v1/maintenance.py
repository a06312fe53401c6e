"""
Maintenance types, reminders and the service log for a driver's vehicles.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_driver
from core.database import get_db
from core.logging import get_logger
from core.security import get_optional_user
from models.maintenance import MaintenanceReminder, MaintenanceType, ReminderStatus
from models.user import User
from repositories.maintenance import MaintenanceLogRepository, MaintenanceTypeRepository, ReminderRepository
from repositories.vehicle import VehicleRepository
from schemas.maintenance import (
    MaintenanceLogRead,
    MaintenanceTypeCreate,
    MaintenanceTypeRead,
    MaintenanceTypeUpdate,
    ReminderComplete,
    ReminderCreate,
    ReminderRead,
    ReminderSnooze,
    ReminderUpdate,
)
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.maintenance_service import complete_reminder, create_reminder, snooze_reminder, update_reminder

logger = get_logger(__name__)

router = APIRouter()


async def _own_type(db: AsyncSession, type_id: int, user: User) -> MaintenanceType:
    maintenance_type = await MaintenanceTypeRepository(db).get(type_id)
    if not maintenance_type:
        raise HTTPException(status_code=404, detail="Maintenance type not found")
    if maintenance_type.user_id != user.id:
        raise HTTPException(status_code=403, detail="System maintenance types cannot be changed.")
    return maintenance_type


async def _own_reminder(db: AsyncSession, reminder_id: int, user: User) -> MaintenanceReminder:
    reminder = await ReminderRepository(db).get_owned(reminder_id, user.id)
    if not reminder:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


@router.get("/maintenance-types", response_model=StandardSuccessResponse)
async def list_types(
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    types = await MaintenanceTypeRepository(db).list_visible(current_user.id if current_user else None)
    return {"success": True, "message": "Success", "data": [MaintenanceTypeRead.model_validate(t) for t in types]}


@router.post("/maintenance-types", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_type(
    body: MaintenanceTypeCreate,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    maintenance_type = await MaintenanceTypeRepository(db).create(
        {**body.model_dump(), "user_id": current_user.id, "sort_order": 100}
    )
    logger.info("Maintenance type created", user_id=current_user.id, maintenance_type_id=maintenance_type.id)
    return {
        "success": True,
        "message": "Maintenance type created",
        "data": MaintenanceTypeRead.model_validate(maintenance_type),
    }


@router.put("/maintenance-types/{type_id}", response_model=StandardSuccessResponse)
async def update_type(
    type_id: int,
    body: MaintenanceTypeUpdate,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    maintenance_type = await _own_type(db, type_id, current_user)
    maintenance_type = await MaintenanceTypeRepository(db).update(maintenance_type, body)
    return {
        "success": True,
        "message": "Maintenance type updated",
        "data": MaintenanceTypeRead.model_validate(maintenance_type),
    }


@router.delete("/maintenance-types/{type_id}", response_model=StandardSuccessResponse)
async def delete_type(
    type_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    maintenance_type = await _own_type(db, type_id, current_user)
    repo = MaintenanceTypeRepository(db)
    if await repo.in_use(maintenance_type.id):
        raise HTTPException(status_code=422, detail="This maintenance type is used by existing reminders.")
    await repo.delete(maintenance_type)
    return {"success": True, "message": "Maintenance type deleted", "data": None}


@router.get("/maintenance/reminders", response_model=StandardSuccessResponse)
async def list_reminders(
    vehicle_id: Optional[int] = None,
    status: Optional[ReminderStatus] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await ReminderRepository(db).list_for_user(
        current_user.id, page, per_page, vehicle_id=vehicle_id, status=status
    )
    items = [ReminderRead.model_validate(r) for r in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}


@router.post("/maintenance/reminders", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def create(
    body: ReminderCreate,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    if not await VehicleRepository(db).get_owned(body.vehicle_id, current_user.id):
        raise HTTPException(status_code=422, detail="The selected vehicle is invalid.")
    maintenance_type = await MaintenanceTypeRepository(db).get_visible(body.maintenance_type_id, current_user.id)
    if not maintenance_type:
        raise HTTPException(status_code=422, detail="The selected maintenance type is invalid.")

    reminder = await create_reminder(db, current_user, maintenance_type, body)
    return {"success": True, "message": "Reminder created", "data": ReminderRead.model_validate(reminder)}


@router.get("/maintenance/reminders/{reminder_id}", response_model=StandardSuccessResponse)
async def show_reminder(
    reminder_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    reminder = await _own_reminder(db, reminder_id, current_user)
    return {"success": True, "message": "Success", "data": ReminderRead.model_validate(reminder)}


@router.put("/maintenance/reminders/{reminder_id}", response_model=StandardSuccessResponse)
async def update(
    reminder_id: int,
    body: ReminderUpdate,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    reminder = await update_reminder(db, await _own_reminder(db, reminder_id, current_user), body)
    return {"success": True, "message": "Reminder updated", "data": ReminderRead.model_validate(reminder)}


@router.delete("/maintenance/reminders/{reminder_id}", response_model=StandardSuccessResponse)
async def delete(
    reminder_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    reminder = await _own_reminder(db, reminder_id, current_user)
    await ReminderRepository(db).soft_delete(reminder)
    logger.info("Maintenance reminder deleted", user_id=current_user.id, reminder_id=reminder_id)
    return {"success": True, "message": "Reminder deleted", "data": None}


@router.post("/maintenance/reminders/{reminder_id}/complete", response_model=StandardSuccessResponse)
async def complete(
    reminder_id: int,
    body: ReminderComplete,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    reminder, log = await complete_reminder(db, await _own_reminder(db, reminder_id, current_user), body)
    return {
        "success": True,
        "message": "Maintenance recorded",
        "data": {"reminder": ReminderRead.model_validate(reminder), "log": MaintenanceLogRead.model_validate(log)},
    }


@router.post("/maintenance/reminders/{reminder_id}/snooze", response_model=StandardSuccessResponse)
async def snooze(
    reminder_id: int,
    body: Optional[ReminderSnooze] = None,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    reminder = await _own_reminder(db, reminder_id, current_user)
    reminder = await snooze_reminder(db, reminder, body or ReminderSnooze())
    return {"success": True, "message": "Reminder snoozed", "data": ReminderRead.model_validate(reminder)}


@router.get("/maintenance/logs", response_model=StandardSuccessResponse)
async def list_logs(
    vehicle_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await MaintenanceLogRepository(db).list_for_user(current_user.id, page, per_page, vehicle_id=vehicle_id)
    items = [MaintenanceLogRead.model_validate(log) for log in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}
