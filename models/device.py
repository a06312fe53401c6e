from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from core.database import Base


class DeviceFingerprint(Base):
    """A guest mobile client, keyed by the client-generated device id."""

    __tablename__ = "device_fingerprints"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(String(255), unique=True, nullable=False, index=True)
    device_type = Column(String(50), nullable=True)  # ios, android
    device_model = Column(String(100), nullable=True)
    os_version = Column(String(50), nullable=True)
    app_version = Column(String(50), nullable=True)
    ip_address = Column(String(45), nullable=True)
    diagnoses_used = Column(Integer, nullable=False, default=0)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def remaining(self, limit: int) -> int:
        return max(0, limit - (self.diagnoses_used or 0))

    def __repr__(self):
        return f"<DeviceFingerprint(device_id='{self.device_id}', used={self.diagnoses_used})>"
