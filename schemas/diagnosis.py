"""
Diagnosis Schemas

Request/response models for driver and guest diagnosis submissions.
"""

from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.config import settings
from models.diagnosis import DiagnosisInputType, DiagnosisStatus, UrgencyLevel


class DiagnosisCreate(BaseModel):
    """Payload for a new diagnosis, shared by the driver and guest paths."""

    symptoms_description: str = Field(..., min_length=10, max_length=2000)
    input_type: DiagnosisInputType = DiagnosisInputType.TEXT
    vehicle_id: Optional[int] = None
    region_id: Optional[int] = None
    specialization_ids: List[int] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list, description="Uploaded image URLs")
    voice_recording_url: Optional[str] = Field(None, max_length=500)
    vehicle_info: Optional[str] = Field(None, max_length=255, description="Free text for guests without a saved vehicle")

    @field_validator("images")
    @classmethod
    def check_image_count(cls, v):
        if len(v) > settings.MAX_DIAGNOSIS_IMAGES:
            raise ValueError(f"A maximum of {settings.MAX_DIAGNOSIS_IMAGES} images is allowed")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "symptoms_description": "Engine makes a knocking sound when accelerating uphill",
                "input_type": "text",
                "region_id": 1,
                "specialization_ids": [2],
                "images": [],
            }
        }
    }


class DiagnosisImageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    image_url: str
    sort_order: int


class DiagnosisRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    user_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    region_id: Optional[int] = None
    input_type: DiagnosisInputType
    symptoms_description: str
    voice_transcription: Optional[str] = None
    status: DiagnosisStatus
    ai_diagnosis: Optional[str] = None
    ai_possible_causes: Optional[List[Any]] = None
    ai_recommended_actions: Optional[List[Any]] = None
    ai_urgency_level: Optional[UrgencyLevel] = None
    ai_confidence_score: Optional[float] = None
    ai_safety_warnings: Optional[List[Any]] = None
    error_message: Optional[str] = None
    is_free: bool
    expert_contact_unlocked: bool
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    images: List[DiagnosisImageRead] = []


class QuotaSnapshot(BaseModel):
    free_remaining: int
    paid_remaining: int
    total_remaining: int


class GuestQuota(BaseModel):
    total_free: int
    used: int
    remaining: int
    can_diagnose: bool
