from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_driver
from core.config import settings
from core.database import get_db
from core.logging import get_logger
from models.user import User
from repositories.appointment import ServicePackageRepository
from repositories.expert import ExpertRepository
from schemas.appointment import ServicePackageRead
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.expert_service import expert_card, expert_detail

logger = get_logger(__name__)

router = APIRouter()


@router.get("/nearby", response_model=StandardSuccessResponse)
async def nearby_experts(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0, le=settings.NEARBY_MAX_RADIUS_KM),
    specialization_id: Optional[int] = None,
    region_id: Optional[int] = None,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """
    Find available, verified experts around a point.

    Distance is the great-circle distance in km; results are nearest first.
    """
    radius_km = radius or settings.NEARBY_DEFAULT_RADIUS_KM
    rows = await ExpertRepository(db).nearby(
        latitude,
        longitude,
        radius_km,
        limit,
        specialization_id=specialization_id,
        region_id=region_id,
    )
    logger.info("Nearby search", latitude=latitude, longitude=longitude, radius_km=radius_km, results=len(rows))
    return {
        "success": True,
        "message": "Success",
        "data": [expert_card(profile, distance_km=distance) for profile, distance in rows],
    }


@router.get("", response_model=StandardSuccessResponse)
async def list_experts(
    region_id: Optional[int] = None,
    specialization_id: Optional[int] = None,
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await ExpertRepository(db).directory(
        page,
        per_page,
        region_id=region_id,
        specialization_id=specialization_id,
        search=search,
    )
    items = [expert_card(profile) for profile in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}


@router.get("/{expert_id}", response_model=StandardSuccessResponse)
async def show_expert(
    expert_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    repo = ExpertRepository(db)
    profile = await repo.get_by_user_id(expert_id, listed_only=True)
    if not profile:
        raise HTTPException(status_code=404, detail="Expert not found")
    reviews = await repo.visible_reviews(expert_id)
    return {"success": True, "message": "Success", "data": expert_detail(profile, reviews)}


@router.get("/{expert_id}/services", response_model=StandardSuccessResponse)
async def list_expert_services(
    expert_id: int,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    if not await ExpertRepository(db).get_by_user_id(expert_id, listed_only=True):
        raise HTTPException(status_code=404, detail="Expert not found")
    packages = await ServicePackageRepository(db).list_for_expert(expert_id, active_only=True)
    return {"success": True, "message": "Success", "data": [ServicePackageRead.model_validate(p) for p in packages]}
