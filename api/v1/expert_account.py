"""
Expert self-service: profile, availability, KYC and reviews.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_expert
from core.database import get_db
from core.logging import get_logger
from models.profile import ExpertProfile, KycStatus
from models.user import User
from repositories.lead import ReviewRepository
from schemas.expert import (
    AvailabilityUpdate,
    ExpertProfileUpdate,
    ReviewRead,
    ReviewResponse,
    WorkingHoursUpdate,
)
from schemas.responses import PaginatedData, StandardSuccessResponse
from schemas.user import ExpertProfileRead
from services.expert_service import submit_kyc, update_expert_profile
from services.lead_service import respond_to_review

logger = get_logger(__name__)

router = APIRouter()


def _profile(user: User) -> ExpertProfile:
    if user.expert_profile is None:
        raise HTTPException(status_code=404, detail="Expert profile not found")
    return user.expert_profile


@router.get("/profile", response_model=StandardSuccessResponse)
async def show_profile(current_user: User = Depends(require_expert)):
    return {"success": True, "message": "Success", "data": ExpertProfileRead.model_validate(_profile(current_user))}


@router.put("/profile", response_model=StandardSuccessResponse)
async def update_profile(
    body: ExpertProfileUpdate,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    profile = await update_expert_profile(db, _profile(current_user), body)
    return {"success": True, "message": "Profile updated", "data": ExpertProfileRead.model_validate(profile)}


@router.put("/profile/availability", response_model=StandardSuccessResponse)
async def update_availability(
    body: AvailabilityUpdate,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    profile = _profile(current_user)
    profile.is_available = body.is_available
    await db.commit()
    logger.info("Availability updated", user_id=current_user.id, is_available=body.is_available)
    return {"success": True, "message": "Availability updated"}


@router.put("/profile/working-hours", response_model=StandardSuccessResponse)
async def update_working_hours(
    body: WorkingHoursUpdate,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    profile = _profile(current_user)
    profile.working_hours = body.working_hours
    await db.commit()
    return {"success": True, "message": "Working hours updated"}


@router.get("/kyc/status", response_model=StandardSuccessResponse)
async def kyc_status(current_user: User = Depends(require_expert)):
    profile = _profile(current_user)
    return {
        "success": True,
        "message": "Success",
        "data": {
            "kyc_status": profile.kyc_status,
            "kyc_submitted_at": profile.kyc_submitted_at,
            "kyc_approved_at": profile.kyc_approved_at,
            "kyc_rejection_reason": profile.kyc_rejection_reason,
        },
    }


@router.post("/kyc/submit", response_model=StandardSuccessResponse)
async def submit_kyc_review(current_user: User = Depends(require_expert), db: AsyncSession = Depends(get_db)):
    profile = _profile(current_user)
    if profile.kyc_status not in (KycStatus.PENDING, KycStatus.REJECTED):
        raise HTTPException(status_code=400, detail=f"KYC is already {profile.kyc_status.value}.")
    await submit_kyc(db, profile)
    return {"success": True, "message": "KYC documents submitted for review"}


@router.get("/reviews", response_model=StandardSuccessResponse)
async def my_reviews(
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await ReviewRepository(db).list_for_expert(current_user.id, page, per_page)
    items = [ReviewRead.model_validate(r) for r in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}


@router.post("/reviews/{review_id}/respond", response_model=StandardSuccessResponse)
async def respond_review(
    review_id: int,
    body: ReviewResponse,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewRepository(db).get(review_id)
    if not review or review.expert_id != current_user.id:
        raise HTTPException(status_code=404, detail="Review not found")
    review = await respond_to_review(db, review, body.response)
    return {"success": True, "message": "Response added", "data": ReviewRead.model_validate(review)}
