"""
Diagnosis model.

A symptom report submitted by a driver or a guest device. Created as
``pending``; the AI processing task moves it through ``processing`` to
``completed`` or ``failed``.
"""

import uuid
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Float, JSON,
    ForeignKey, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum as PyEnum

from core.database import Base


class DiagnosisInputType(str, PyEnum):
    TEXT = "text"
    VOICE = "voice"
    IMAGE = "image"
    TEXT_IMAGE = "text_image"
    VOICE_IMAGE = "voice_image"


class DiagnosisStatus(str, PyEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class UrgencyLevel(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Diagnosis(Base):
    __tablename__ = "diagnoses"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)
    device_fingerprint_id = Column(Integer, ForeignKey("device_fingerprints.id", ondelete="SET NULL"), nullable=True)
    region_id = Column(Integer, ForeignKey("regions.id", ondelete="SET NULL"), nullable=True)

    input_type = Column(SQLEnum(DiagnosisInputType), nullable=False, default=DiagnosisInputType.TEXT)
    symptoms_description = Column(Text, nullable=False)
    vehicle_info = Column(String(255), nullable=True)
    voice_recording_url = Column(String(500), nullable=True)
    voice_transcription = Column(Text, nullable=True)

    # AI result
    ai_provider = Column(String(50), nullable=True)
    ai_model = Column(String(100), nullable=True)
    ai_diagnosis = Column(Text, nullable=True)
    ai_possible_causes = Column(JSON, nullable=True)
    ai_recommended_actions = Column(JSON, nullable=True)
    ai_urgency_level = Column(SQLEnum(UrgencyLevel), nullable=True)
    ai_confidence_score = Column(Float, nullable=True)
    ai_safety_warnings = Column(JSON, nullable=True)
    ai_full_response = Column(JSON, nullable=True)

    status = Column(SQLEnum(DiagnosisStatus), nullable=False, default=DiagnosisStatus.PENDING, index=True)
    error_message = Column(Text, nullable=True)
    is_free = Column(Boolean, nullable=False, default=True)
    expert_contact_unlocked = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    images = relationship(
        "DiagnosisImage",
        back_populates="diagnosis",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="DiagnosisImage.sort_order",
    )
    vehicle = relationship("Vehicle", lazy="selectin")

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    def __repr__(self):
        return f"<Diagnosis(id={self.id}, status={self.status})>"


class DiagnosisImage(Base):
    __tablename__ = "diagnosis_images"

    id = Column(Integer, primary_key=True, index=True)
    diagnosis_id = Column(Integer, ForeignKey("diagnoses.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(500), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    diagnosis = relationship("Diagnosis", back_populates="images")
