from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_driver
from core.database import get_db
from core.logging import get_logger
from models.user import User
from repositories.vehicle import VehicleRepository
from schemas.responses import StandardSuccessResponse
from schemas.vehicle import VehicleCreate, VehicleRead, VehicleUpdate

logger = get_logger(__name__)

router = APIRouter()


async def _owned_vehicle(db: AsyncSession, vehicle_id: int, user: User):
    vehicle = await VehicleRepository(db).get_owned(vehicle_id, user.id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


@router.get("", response_model=StandardSuccessResponse)
async def list_vehicles(current_user: User = Depends(require_driver), db: AsyncSession = Depends(get_db)):
    vehicles = await VehicleRepository(db).list_for_user(current_user.id)
    return {"success": True, "message": "Success", "data": [VehicleRead.model_validate(v) for v in vehicles]}


@router.post("", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    body: VehicleCreate,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    if not body.vehicle_make_id and not body.custom_make:
        raise HTTPException(status_code=422, detail="Either vehicle_make_id or custom_make is required.")

    vehicle = await VehicleRepository(db).create_for_user(current_user.id, body)
    logger.info("Vehicle added", user_id=current_user.id, vehicle_id=vehicle.id)
    return {"success": True, "message": "Vehicle added", "data": VehicleRead.model_validate(vehicle)}


@router.get("/{vehicle_id}", response_model=StandardSuccessResponse)
async def show_vehicle(
    vehicle_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    vehicle = await _owned_vehicle(db, vehicle_id, current_user)
    return {"success": True, "message": "Success", "data": VehicleRead.model_validate(vehicle)}


@router.put("/{vehicle_id}", response_model=StandardSuccessResponse)
async def update_vehicle(
    vehicle_id: int,
    body: VehicleUpdate,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    repo = VehicleRepository(db)
    vehicle = await _owned_vehicle(db, vehicle_id, current_user)
    vehicle = await repo.update(vehicle, body)
    return {"success": True, "message": "Vehicle updated", "data": VehicleRead.model_validate(vehicle)}


@router.delete("/{vehicle_id}", response_model=StandardSuccessResponse)
async def delete_vehicle(
    vehicle_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    vehicle = await _owned_vehicle(db, vehicle_id, current_user)
    await VehicleRepository(db).soft_delete(vehicle)
    logger.info("Vehicle deleted", user_id=current_user.id, vehicle_id=vehicle_id)
    return {"success": True, "message": "Vehicle deleted"}


@router.put("/{vehicle_id}/primary", response_model=StandardSuccessResponse)
async def set_primary_vehicle(
    vehicle_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    repo = VehicleRepository(db)
    vehicle = await _owned_vehicle(db, vehicle_id, current_user)
    vehicle = await repo.set_primary(vehicle)
    return {"success": True, "message": "Primary vehicle updated", "data": VehicleRead.model_validate(vehicle)}
