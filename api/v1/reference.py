from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from models.reference import VehicleMake
from repositories.reference import ReferenceRepository
from schemas.common import RegionRead, SpecializationRead, VehicleMakeRead, VehicleModelRead
from schemas.responses import StandardSuccessResponse
from services.helpers import cast_setting_value

router = APIRouter()


@router.get("/regions", response_model=StandardSuccessResponse)
async def list_regions(db: AsyncSession = Depends(get_db)):
    regions = await ReferenceRepository(db).regions()
    return {"success": True, "message": "Success", "data": [RegionRead.model_validate(r) for r in regions]}


@router.get("/specializations", response_model=StandardSuccessResponse)
async def list_specializations(db: AsyncSession = Depends(get_db)):
    specs = await ReferenceRepository(db).specializations()
    return {"success": True, "message": "Success", "data": [SpecializationRead.model_validate(s) for s in specs]}


@router.get("/vehicle-makes", response_model=StandardSuccessResponse)
async def list_vehicle_makes(db: AsyncSession = Depends(get_db)):
    makes = await ReferenceRepository(db).vehicle_makes()
    return {"success": True, "message": "Success", "data": [VehicleMakeRead.model_validate(m) for m in makes]}


@router.get("/vehicle-makes/{make_id}/models", response_model=StandardSuccessResponse)
async def list_vehicle_models(make_id: int, db: AsyncSession = Depends(get_db)):
    if await db.get(VehicleMake, make_id) is None:
        raise HTTPException(status_code=404, detail="Vehicle make not found")
    models = await ReferenceRepository(db).vehicle_models(make_id)
    return {"success": True, "message": "Success", "data": [VehicleModelRead.model_validate(m) for m in models]}


@router.get("/settings/public", response_model=StandardSuccessResponse)
async def public_settings(db: AsyncSession = Depends(get_db)):
    rows = await ReferenceRepository(db).public_settings()
    data = {row.key: cast_setting_value(row.value, row.type) for row in rows}
    return {"success": True, "message": "Success", "data": data}
