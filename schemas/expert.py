from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from schemas.common import RegionRead, SpecializationRead


class ExpertListItem(BaseModel):
    """Public expert card used by list, nearby and matching endpoints."""

    model_config = ConfigDict(from_attributes=True)

    user_id: int
    name: str
    avatar: Optional[str] = None
    business_name: Optional[str] = None
    city: Optional[str] = None
    region_id: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: float
    rating_count: int
    jobs_completed: int
    experience_years: Optional[int] = None
    is_priority_listed: bool
    is_available: bool
    specializations: List[SpecializationRead] = []
    distance_km: Optional[float] = None


class ReviewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lead_id: int
    expert_id: int
    driver_id: int
    rating: int
    comment: Optional[str] = None
    expert_response: Optional[str] = None
    expert_responded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ExpertDetail(ExpertListItem):
    bio: Optional[str] = None
    address: Optional[str] = None
    whatsapp_number: Optional[str] = None
    alternate_phone: Optional[str] = None
    working_hours: Optional[dict] = None
    service_regions: List[RegionRead] = []
    reviews: List[ReviewRead] = []


class ExpertProfileUpdate(BaseModel):
    business_name: Optional[str] = Field(None, max_length=255)
    bio: Optional[str] = Field(None, max_length=2000)
    experience_years: Optional[int] = Field(None, ge=0, le=80)
    region_id: Optional[int] = None
    city: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    whatsapp_number: Optional[str] = Field(None, max_length=20)
    alternate_phone: Optional[str] = Field(None, max_length=20)
    specialization_ids: Optional[List[int]] = None
    service_region_ids: Optional[List[int]] = None


class AvailabilityUpdate(BaseModel):
    is_available: bool


class WorkingHoursUpdate(BaseModel):
    working_hours: Dict[str, Optional[Dict[str, str]]] = Field(
        ...,
        description="Day name to {open, close}; null marks a closed day",
    )


class KycDecision(BaseModel):
    approved: bool
    reason: Optional[str] = Field(None, max_length=500)


class ReviewCreate(BaseModel):
    lead_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class ReviewResponse(BaseModel):
    response: str = Field(..., min_length=1, max_length=1000)
