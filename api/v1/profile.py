from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.logging import get_logger
from core.security import get_current_active_user
from models.user import User
from repositories.user import UserRepository
from schemas.responses import StandardSuccessResponse
from schemas.user import PasswordUpdate, ProfileUpdate, UserRead
from services.helpers import verify_password

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=StandardSuccessResponse)
async def show_profile(current_user: User = Depends(get_current_active_user)):
    return {"success": True, "message": "Success", "data": UserRead.model_validate(current_user)}


@router.put("", response_model=StandardSuccessResponse)
async def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True)
    if changes.get("phone") and changes["phone"] != current_user.phone:
        other = await UserRepository(db).get_by_phone(changes["phone"])
        if other and other.id != current_user.id:
            raise HTTPException(status_code=422, detail="The phone has already been taken.")

    for field, value in changes.items():
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)
    logger.info("Profile updated", user_id=current_user.id, fields=list(changes))
    return {"success": True, "message": "Profile updated", "data": UserRead.model_validate(current_user)}


@router.put("/password", response_model=StandardSuccessResponse)
async def change_password(
    body: PasswordUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    if not verify_password(body.current_password, current_user.password_hash):
        raise HTTPException(status_code=422, detail="The current password is incorrect.")

    await UserRepository(db).set_password(current_user, body.password)
    logger.info("Password changed", user_id=current_user.id)
    return {"success": True, "message": "Password updated"}
