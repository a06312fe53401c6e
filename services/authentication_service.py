from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.logging import get_logger
from models.authentication import OtpCode, OtpType, UserSession
from models.user import User
from scripts.authentication_helpers import (
    generate_access_token,
    generate_otp,
    hash_otp,
    hash_token,
    is_expired,
)
from services.helpers import utcnow

logger = get_logger(__name__)


async def create_otp(db: AsyncSession, user: User, otp_type: OtpType) -> str:
    """Issue a fresh code, invalidating any unverified code of the same type."""
    await db.execute(
        delete(OtpCode).where(
            OtpCode.contact == user.email,
            OtpCode.type == otp_type,
            OtpCode.verified == False,  # noqa: E712
        )
    )
    otp = generate_otp()
    otp_code = OtpCode(
        user_id=user.id,
        contact=user.email,
        type=otp_type,
        otp_hash=hash_otp(otp),
        expires_at=utcnow() + timedelta(minutes=settings.OTP_TTL_MINUTES),
    )
    db.add(otp_code)
    await db.commit()
    logger.info("OTP issued", user_id=user.id, otp_type=otp_type.value)
    return otp


async def verify_otp(
    db: AsyncSession,
    email: str,
    otp_type: OtpType,
    otp: str,
    allow_verified: bool = False,
) -> Tuple[Optional[OtpCode], str]:
    """Check a code; returns the row on success and a message either way.

    ``allow_verified`` accepts a code already confirmed through
    ``/verify-otp`` as long as it has not expired (password reset flow).
    """
    query = (
        select(OtpCode)
        .where(OtpCode.contact == email, OtpCode.type == otp_type)
        .order_by(OtpCode.id.desc())
        .limit(1)
    )
    otp_code = (await db.execute(query)).scalar_one_or_none()

    if not otp_code:
        return None, "Invalid or expired OTP code."

    if otp_code.verified and not allow_verified:
        return None, "Invalid or expired OTP code."

    if is_expired(otp_code.expires_at):
        return None, "Invalid or expired OTP code."

    if otp_code.attempts >= settings.MAX_ATTEMPTS:
        return None, "Maximum attempts exceeded."

    if otp_code.otp_hash != hash_otp(otp):
        otp_code.attempts += 1
        await db.commit()
        return None, "Invalid or expired OTP code."

    if not otp_code.verified:
        otp_code.verified = True
        otp_code.verified_at = utcnow()
        await db.commit()
    return otp_code, "OTP verified successfully."


async def delete_otps(db: AsyncSession, email: str, otp_type: OtpType):
    await db.execute(delete(OtpCode).where(OtpCode.contact == email, OtpCode.type == otp_type))
    await db.commit()


async def create_user_session(db: AsyncSession, user_id: int, user_agent: str = "", ip_address: str = "") -> str:
    """Create a session row and return the plain bearer token."""
    token = generate_access_token()
    session = UserSession(
        user_id=user_id,
        token_hash=hash_token(token),
        expires_at=utcnow() + timedelta(minutes=settings.SESSION_DURATION),
        user_agent=user_agent,
        ip_address=ip_address,
    )
    db.add(session)
    await db.commit()
    return token


async def get_session_for_token(db: AsyncSession, token: str) -> Optional[UserSession]:
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == hash_token(token),
            UserSession.is_active == True,  # noqa: E712
        )
    )
    session = result.scalar_one_or_none()
    if not session or is_expired(session.expires_at):
        return None
    return session


async def invalidate_session(db: AsyncSession, session_id: str):
    await db.execute(
        update(UserSession)
        .where(UserSession.session_id == session_id)
        .values(is_active=False)
    )
    await db.commit()


async def invalidate_all_sessions(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(UserSession)
        .where(UserSession.user_id == user_id, UserSession.is_active == True)  # noqa: E712
        .values(is_active=False)
    )
    await db.commit()
    return result.rowcount
