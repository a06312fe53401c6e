"""
User Repository

Data access layer for users, their role profiles and preferences.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from models.profile import DriverProfile, ExpertProfile
from models.user import User, UserPreference, UserRole
from repositories.base import BaseRepository
from schemas.authentication import RegisterRequest
from services.helpers import hash_password

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User, RegisterRequest, RegisterRequest]):
    """Repository for users."""

    def __init__(self, db_session: AsyncSession):
        super().__init__(User, db_session)
        self.db_session = db_session

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db_session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_by_phone(self, phone: str) -> Optional[User]:
        result = await self.db_session.execute(select(User).where(User.phone == phone))
        return result.scalar_one_or_none()

    async def register(self, data: RegisterRequest) -> User:
        """Create the user with preferences and the profile for its role."""
        try:
            user = User(
                first_name=data.first_name,
                last_name=data.last_name,
                email=data.email.lower(),
                phone=data.phone,
                password_hash=hash_password(data.password),
                role=data.role,
            )
            user.preferences = UserPreference()
            if data.role == UserRole.DRIVER:
                user.driver_profile = DriverProfile(
                    free_diagnoses_remaining=settings.DRIVER_FREE_DIAGNOSES,
                    paid_diagnoses_remaining=0,
                    total_diagnoses_used=0,
                )
            elif data.role == UserRole.EXPERT:
                user.expert_profile = ExpertProfile(
                    free_leads_remaining=settings.EXPERT_FREE_LEADS,
                    total_leads_received=0,
                )
            self.db_session.add(user)
            await self.db_session.commit()
            await self.db_session.refresh(user)
            logger.info(f"Registered user ID {user.id} as {user.role.value}")
            return user
        except SQLAlchemyError as e:
            await self.db_session.rollback()
            logger.exception(f"Database error registering user: {str(e)}")
            raise

    async def set_password(self, user: User, password: str) -> User:
        return await self.update(user, {"password_hash": hash_password(password)})
