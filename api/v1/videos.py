from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from repositories.learning import LearningRepository
from schemas.learning import VideoCategoryRead, VideoRead
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.learning_service import record_view

router = APIRouter()


@router.get("", response_model=StandardSuccessResponse)
async def list_videos(
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await LearningRepository(db).videos(
        page, per_page, category_slug=category, featured=featured, search=search
    )
    items = [VideoRead.model_validate(v) for v in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}


@router.get("/categories", response_model=StandardSuccessResponse)
async def list_categories(db: AsyncSession = Depends(get_db)):
    data = []
    for category, count in await LearningRepository(db).video_categories():
        item = VideoCategoryRead.model_validate(category).model_dump()
        item["videos_count"] = count
        data.append(item)
    return {"success": True, "message": "Success", "data": data}


@router.get("/featured", response_model=StandardSuccessResponse)
async def featured_videos(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    rows, _ = await LearningRepository(db).videos(1, limit, featured=True)
    return {"success": True, "message": "Success", "data": [VideoRead.model_validate(v) for v in rows]}


@router.get("/{video_id}", response_model=StandardSuccessResponse)
async def show_video(video_id: int, db: AsyncSession = Depends(get_db)):
    video = await LearningRepository(db).video(video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    video = await record_view(db, video)
    return {"success": True, "message": "Success", "data": VideoRead.model_validate(video)}
