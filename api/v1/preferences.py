from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.security import get_current_active_user
from models.user import User, UserPreference
from schemas.responses import StandardSuccessResponse
from schemas.user import PreferenceUpdate, UserPreferenceRead

router = APIRouter()


async def _preferences_for(db: AsyncSession, user: User) -> UserPreference:
    if user.preferences is None:
        user.preferences = UserPreference(user_id=user.id)
        await db.commit()
        await db.refresh(user.preferences)
    return user.preferences


@router.get("", response_model=StandardSuccessResponse)
async def show_preferences(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    preferences = await _preferences_for(db, current_user)
    return {"success": True, "message": "Success", "data": UserPreferenceRead.model_validate(preferences)}


@router.put("", response_model=StandardSuccessResponse)
async def update_preferences(
    body: PreferenceUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    preferences = await _preferences_for(db, current_user)
    for field, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(preferences, field, value)
    await db.commit()
    await db.refresh(preferences)
    return {"success": True, "message": "Preferences updated", "data": UserPreferenceRead.model_validate(preferences)}
