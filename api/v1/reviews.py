from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_driver
from core.database import get_db
from models.lead import Lead
from models.user import User
from repositories.lead import ReviewRepository
from schemas.expert import ReviewCreate, ReviewRead
from schemas.responses import StandardSuccessResponse
from services.lead_service import create_review

router = APIRouter()


@router.post("", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def submit_review(
    body: ReviewCreate,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    """Rate the expert behind one of the driver's leads. One review per lead."""
    result = await db.execute(select(Lead).where(Lead.id == body.lead_id, Lead.driver_id == current_user.id))
    lead = result.scalar_one_or_none()
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    if await ReviewRepository(db).get_by_lead(lead.id):
        raise HTTPException(status_code=422, detail="This lead has already been reviewed.")

    review = await create_review(db, lead, current_user, body.rating, body.comment)
    return {"success": True, "message": "Review submitted", "data": ReviewRead.model_validate(review)}
