from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.config import settings
from models.profile import KycStatus
from models.user import UserRole
from schemas.common import RegionRead, SpecializationRead


class DriverProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    region_id: Optional[int] = None
    city: Optional[str] = None
    license_number: Optional[str] = None
    driving_experience_years: Optional[int] = None
    free_diagnoses_remaining: int
    paid_diagnoses_remaining: int
    total_diagnoses_used: int
    diagnoses_remaining: int


class ExpertProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    business_name: Optional[str] = None
    bio: Optional[str] = None
    experience_years: Optional[int] = None
    region_id: Optional[int] = None
    city: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    whatsapp_number: Optional[str] = None
    alternate_phone: Optional[str] = None
    kyc_status: KycStatus
    kyc_submitted_at: Optional[datetime] = None
    kyc_approved_at: Optional[datetime] = None
    kyc_rejection_reason: Optional[str] = None
    free_leads_remaining: int
    total_leads_received: int
    rating: float
    rating_count: int
    jobs_completed: int
    is_priority_listed: bool
    is_available: bool
    working_hours: Optional[dict] = None
    specializations: List[SpecializationRead] = []
    service_regions: List[RegionRead] = []


class UserPreferenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    language: str
    region: str
    currency: str
    distance_unit: str
    push_notifications: bool
    email_notifications: bool
    sms_notifications: bool
    maintenance_reminders: bool
    marketing_emails: bool
    theme: str


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    avatar: Optional[str] = None
    is_active: bool
    email_verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    driver_profile: Optional[DriverProfileRead] = None
    expert_profile: Optional[ExpertProfileRead] = None
    preferences: Optional[UserPreferenceRead] = None


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    role: UserRole
    avatar: Optional[str] = None


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)


class PasswordUpdate(BaseModel):
    current_password: str
    password: str = Field(..., min_length=settings.PASSWORD_MIN_LENGTH)
    password_confirmation: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class PreferenceUpdate(BaseModel):
    language: Optional[str] = None
    region: Optional[str] = Field(None, max_length=5)
    currency: Optional[str] = Field(None, max_length=5)
    distance_unit: Optional[str] = None
    push_notifications: Optional[bool] = None
    email_notifications: Optional[bool] = None
    sms_notifications: Optional[bool] = None
    maintenance_reminders: Optional[bool] = None
    marketing_emails: Optional[bool] = None
    theme: Optional[str] = None

    @field_validator("language")
    @classmethod
    def check_language(cls, v):
        if v is not None and v not in ("en", "fr"):
            raise ValueError("language must be one of: en, fr")
        return v

    @field_validator("distance_unit")
    @classmethod
    def check_distance_unit(cls, v):
        if v is not None and v not in ("km", "miles"):
            raise ValueError("distance_unit must be one of: km, miles")
        return v

    @field_validator("theme")
    @classmethod
    def check_theme(cls, v):
        if v is not None and v not in ("light", "dark", "system"):
            raise ValueError("theme must be one of: light, dark, system")
        return v
