"""
Back-office endpoints: dashboard, expert verification and account status.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_admin
from core.database import get_db
from core.logging import get_logger
from models.profile import KycStatus
from models.user import User
from repositories.admin import AdminRepository
from repositories.expert import ExpertRepository
from schemas.expert import KycDecision
from schemas.responses import StandardSuccessResponse
from schemas.user import ExpertProfileRead, UserSummary
from services.authentication_service import invalidate_all_sessions
from services.expert_service import decide_kyc

logger = get_logger(__name__)

router = APIRouter()


@router.get("/dashboard", response_model=StandardSuccessResponse)
async def dashboard(current_user: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return {"success": True, "message": "Success", "data": await AdminRepository(db).dashboard()}


@router.get("/kyc", response_model=StandardSuccessResponse)
async def pending_kyc(current_user: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    profiles = await AdminRepository(db).submitted_kyc()
    data = [
        {"user": UserSummary.model_validate(p.user), "profile": ExpertProfileRead.model_validate(p)}
        for p in profiles
    ]
    return {"success": True, "message": "Success", "data": data}


@router.post("/kyc/{user_id}/decision", response_model=StandardSuccessResponse)
async def kyc_decision(
    user_id: int,
    body: KycDecision,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    profile = await ExpertRepository(db).get_by_user_id(user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Expert not found")
    if profile.kyc_status != KycStatus.SUBMITTED:
        raise HTTPException(status_code=400, detail="KYC has not been submitted for review.")

    profile = await decide_kyc(db, profile, body.approved, body.reason, current_user)
    message = "KYC approved" if body.approved else "KYC rejected"
    return {"success": True, "message": message, "data": ExpertProfileRead.model_validate(profile)}


async def _set_active(db: AsyncSession, user_id: int, is_active: bool, admin: User) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot change your own account status.")

    user.is_active = is_active
    await db.commit()
    if not is_active:
        await invalidate_all_sessions(db, user.id)
    logger.info("User status changed", user_id=user.id, is_active=is_active, admin_id=admin.id)
    return user


@router.post("/users/{user_id}/activate", response_model=StandardSuccessResponse)
async def activate_user(user_id: int, current_user: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    await _set_active(db, user_id, True, current_user)
    return {"success": True, "message": "User activated"}


@router.post("/users/{user_id}/deactivate", response_model=StandardSuccessResponse)
async def deactivate_user(user_id: int, current_user: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    await _set_active(db, user_id, False, current_user)
    return {"success": True, "message": "User deactivated"}
