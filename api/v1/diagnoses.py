from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_device_fingerprint, require_driver
from core.database import get_db
from core.logging import get_logger
from models.device import DeviceFingerprint
from models.reference import Region
from models.user import User
from repositories.diagnosis import DiagnosisRepository
from repositories.expert import ExpertRepository
from repositories.vehicle import VehicleRepository
from schemas.diagnosis import DiagnosisCreate, DiagnosisRead
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.broadcast_service import Broadcaster, get_broadcaster
from services.expert_service import expert_card
from services.quota_service import (
    allocate_driver_diagnosis,
    allocate_guest_diagnosis,
    dispatch_allocation,
    guest_quota,
)

logger = get_logger(__name__)

router = APIRouter()


async def _check_region(db: AsyncSession, body: DiagnosisCreate):
    if body.region_id is not None and await db.get(Region, body.region_id) is None:
        raise HTTPException(status_code=422, detail="The selected region is invalid.")


@router.post("", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_diagnosis(
    body: DiagnosisCreate,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Submit symptoms for AI diagnosis, consuming one diagnosis from the driver's quota."""
    if body.vehicle_id is not None:
        vehicle = await VehicleRepository(db).get_owned(body.vehicle_id, current_user.id)
        if vehicle is None:
            raise HTTPException(status_code=422, detail="The selected vehicle is invalid.")
    await _check_region(db, body)

    result = await allocate_driver_diagnosis(db, current_user, body)
    await dispatch_allocation(result, broadcaster)

    return {
        "success": True,
        "message": "Diagnosis submitted. Our AI is analyzing your symptoms.",
        "data": {
            "diagnosis": DiagnosisRead.model_validate(result.diagnosis),
            "leads_created": len(result.leads),
            "quota": result.quota,
        },
    }


@router.post("/guest", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_guest_diagnosis(
    body: DiagnosisCreate,
    fingerprint: DeviceFingerprint = Depends(require_device_fingerprint),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Submit a diagnosis without an account; the device's free quota is used."""
    body = body.model_copy(update={"vehicle_id": None})
    await _check_region(db, body)
    result = await allocate_guest_diagnosis(db, fingerprint, body)
    await dispatch_allocation(result, broadcaster)

    return {
        "success": True,
        "message": "Diagnosis submitted. Our AI is analyzing your symptoms.",
        "data": {
            "diagnosis": DiagnosisRead.model_validate(result.diagnosis),
            "leads_created": len(result.leads),
            "quota": result.guest_quota,
        },
    }


@router.get("/guest/quota", response_model=StandardSuccessResponse)
async def show_guest_quota(fingerprint: DeviceFingerprint = Depends(require_device_fingerprint)):
    return {"success": True, "message": "Success", "data": guest_quota(fingerprint)}


@router.get("", response_model=StandardSuccessResponse)
async def list_diagnoses(
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await DiagnosisRepository(db).list_for_user(current_user.id, page, per_page)
    items = [DiagnosisRead.model_validate(d) for d in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}


@router.get("/{diagnosis_id}", response_model=StandardSuccessResponse)
async def show_diagnosis(
    diagnosis_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    diagnosis = await DiagnosisRepository(db).get_owned(diagnosis_id, current_user.id)
    if not diagnosis:
        raise HTTPException(status_code=404, detail="Diagnosis not found")
    return {"success": True, "message": "Success", "data": DiagnosisRead.model_validate(diagnosis)}


@router.get("/{diagnosis_id}/experts", response_model=StandardSuccessResponse)
async def diagnosis_experts(
    diagnosis_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    """Available, verified experts serving the diagnosis region, best rated first."""
    diagnosis = await DiagnosisRepository(db).get_owned(diagnosis_id, current_user.id)
    if not diagnosis:
        raise HTTPException(status_code=404, detail="Diagnosis not found")

    experts = await ExpertRepository(db).best_rated_for_region(diagnosis.region_id, limit=10)
    return {"success": True, "message": "Success", "data": [expert_card(e) for e in experts]}
