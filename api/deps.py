"""
Dependency injection utilities for API endpoints.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.exceptions import DeviceIdentificationError
from core.security import get_current_active_user, get_optional_user
from models.device import DeviceFingerprint
from models.user import User, UserRole
from repositories.diagnosis import DeviceFingerprintRepository


def require_role(*roles: UserRole):
    def checker(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action.",
            )
        return current_user

    return checker


require_driver = require_role(UserRole.DRIVER)
require_expert = require_role(UserRole.EXPERT)
require_admin = require_role(UserRole.ADMIN)


def require_approved_expert(current_user: User = Depends(require_expert)) -> User:
    """Experts may work leads only once their KYC is approved."""
    profile = current_user.expert_profile
    if not profile or not profile.is_kyc_approved:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account must be verified before you can access leads.",
        )
    return current_user


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


async def get_device_fingerprint(
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> Optional[DeviceFingerprint]:
    """Resolve the guest device from the ``X-Device-*`` headers.

    A request without ``X-Device-ID`` is rejected unless it is authenticated,
    in which case there is no fingerprint to track.
    """
    device_id = request.headers.get("X-Device-ID")
    if not device_id:
        if current_user is None:
            raise DeviceIdentificationError()
        return None

    return await DeviceFingerprintRepository(db).touch(
        device_id=device_id,
        device_type=request.headers.get("X-Device-Type"),
        device_model=request.headers.get("X-Device-Model"),
        os_version=request.headers.get("X-OS-Version"),
        app_version=request.headers.get("X-App-Version"),
        ip_address=client_ip(request),
        user_id=current_user.id if current_user else None,
    )


async def require_device_fingerprint(
    fingerprint: Optional[DeviceFingerprint] = Depends(get_device_fingerprint),
) -> DeviceFingerprint:
    if fingerprint is None:
        raise DeviceIdentificationError()
    return fingerprint
