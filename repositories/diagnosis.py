import logging
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.device import DeviceFingerprint
from models.diagnosis import Diagnosis
from repositories.base import BaseRepository
from schemas.diagnosis import DiagnosisCreate

logger = logging.getLogger(__name__)


class DiagnosisRepository(BaseRepository[Diagnosis, DiagnosisCreate, DiagnosisCreate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Diagnosis, db_session)
        self.db_session = db_session

    async def list_for_user(self, user_id: int, page: int, per_page: int) -> Tuple[List[Diagnosis], int]:
        query = (
            select(Diagnosis)
            .where(Diagnosis.user_id == user_id, Diagnosis.deleted_at.is_(None))
            .order_by(Diagnosis.created_at.desc(), Diagnosis.id.desc())
        )
        return await self.paginate(query, page, per_page)

    async def get_owned(self, diagnosis_id: int, user_id: int) -> Optional[Diagnosis]:
        result = await self.db_session.execute(
            select(Diagnosis).where(
                Diagnosis.id == diagnosis_id,
                Diagnosis.user_id == user_id,
                Diagnosis.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()


class DeviceFingerprintRepository(BaseRepository[DeviceFingerprint, DiagnosisCreate, DiagnosisCreate]):
    """Guest devices identified by the ``X-Device-ID`` header."""

    def __init__(self, db_session: AsyncSession):
        super().__init__(DeviceFingerprint, db_session)
        self.db_session = db_session

    async def get_by_device_id(self, device_id: str) -> Optional[DeviceFingerprint]:
        result = await self.db_session.execute(
            select(DeviceFingerprint).where(DeviceFingerprint.device_id == device_id)
        )
        return result.scalar_one_or_none()

    async def touch(
        self,
        device_id: str,
        device_type: Optional[str] = None,
        device_model: Optional[str] = None,
        os_version: Optional[str] = None,
        app_version: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> DeviceFingerprint:
        """Get or create the fingerprint and refresh its client details."""
        fingerprint = await self.get_by_device_id(device_id)
        if fingerprint is None:
            fingerprint = DeviceFingerprint(
                device_id=device_id,
                device_type=device_type,
                device_model=device_model,
                os_version=os_version,
                app_version=app_version,
                ip_address=ip_address,
                diagnoses_used=0,
                user_id=user_id,
            )
            self.db_session.add(fingerprint)
            try:
                await self.db_session.commit()
                logger.info(f"Registered guest device {device_id}")
                await self.db_session.refresh(fingerprint)
                return fingerprint
            except IntegrityError:
                # Another request registered the same device first
                await self.db_session.rollback()
                logger.info(f"Guest device {device_id} was registered concurrently")
                fingerprint = await self.get_by_device_id(device_id)

        fingerprint.ip_address = ip_address or fingerprint.ip_address
        fingerprint.app_version = app_version or fingerprint.app_version
        if user_id and not fingerprint.user_id:
            fingerprint.user_id = user_id
        await self.db_session.commit()
        await self.db_session.refresh(fingerprint)
        return fingerprint
