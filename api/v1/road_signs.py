from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from repositories.learning import LearningRepository
from schemas.learning import RoadSignCategoryRead, RoadSignRead
from schemas.responses import StandardSuccessResponse

router = APIRouter()


@router.get("", response_model=StandardSuccessResponse)
async def list_road_signs(
    search: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    signs = await LearningRepository(db).road_signs(search=search)
    return {"success": True, "message": "Success", "data": [RoadSignRead.model_validate(s) for s in signs]}


@router.get("/categories", response_model=StandardSuccessResponse)
async def list_categories(db: AsyncSession = Depends(get_db)):
    data = []
    for category, count in await LearningRepository(db).road_sign_categories():
        item = RoadSignCategoryRead.model_validate(category).model_dump()
        item["signs_count"] = count
        data.append(item)
    return {"success": True, "message": "Success", "data": data}


@router.get("/categories/{slug}", response_model=StandardSuccessResponse)
async def signs_by_category(slug: str, db: AsyncSession = Depends(get_db)):
    repo = LearningRepository(db)
    category = await repo.road_sign_category_by_slug(slug)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    signs = await repo.road_signs(category_slug=slug)
    return {
        "success": True,
        "message": "Success",
        "data": {
            "category": RoadSignCategoryRead.model_validate(category),
            "signs": [RoadSignRead.model_validate(s) for s in signs],
        },
    }


@router.get("/{sign_id}", response_model=StandardSuccessResponse)
async def show_road_sign(sign_id: int, db: AsyncSession = Depends(get_db)):
    sign = await LearningRepository(db).road_sign(sign_id)
    if not sign:
        raise HTTPException(status_code=404, detail="Road sign not found")
    return {"success": True, "message": "Success", "data": RoadSignRead.model_validate(sign)}
