from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from models.lead import LeadStatus
from schemas.diagnosis import DiagnosisRead


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    diagnosis_id: int
    expert_id: int
    driver_id: Optional[int] = None
    status: LeadStatus
    is_free_lead: bool
    lead_package_purchase_id: Optional[int] = None
    viewed_at: Optional[datetime] = None
    contacted_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class LeadDetail(LeadRead):
    diagnosis: Optional[DiagnosisRead] = None


class LeadActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    activity_type: str
    description: Optional[str] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None


class LeadClose(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class LeadStats(BaseModel):
    total: int
    new: int
    viewed: int
    contacted: int
    converted: int
    this_month: int
    free_leads_remaining: int
