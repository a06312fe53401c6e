from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from models.package import BillingPeriod, PaymentStatus, PurchaseStatus, SubscriptionStatus


class LeadPackageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: Optional[str] = None
    leads_count: int
    price: float
    currency: str
    price_per_lead: Optional[float] = None
    validity_days: Optional[int] = None
    is_featured: bool


class DiagnosisPackageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: Optional[str] = None
    diagnoses_count: int
    price: float
    currency: str
    price_per_diagnosis: Optional[float] = None
    includes_images: bool
    includes_voice: bool
    includes_expert_contact: bool
    is_featured: bool


class SubscriptionPlanRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: Optional[str] = None
    billing_period: BillingPeriod
    price: float
    currency: str
    leads_per_month: Optional[int] = None
    priority_listing: bool
    featured_profile: bool
    analytics_access: bool
    features: Optional[List[Any]] = None


class ExpertSubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subscription_plan_id: int
    status: SubscriptionStatus
    starts_at: datetime
    ends_at: datetime
    cancelled_at: Optional[datetime] = None
    auto_renew: bool
    plan: Optional[SubscriptionPlanRead] = None


class LeadPackagePurchaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lead_package_id: int
    leads_purchased: int
    leads_remaining: int
    amount_paid: float
    currency: str
    status: PurchaseStatus
    expires_at: Optional[datetime] = None


class DiagnosisPackagePurchaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    diagnosis_package_id: int
    diagnoses_purchased: int
    diagnoses_remaining: int
    amount_paid: float
    currency: str
    status: PurchaseStatus


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    payable_type: str
    payable_id: int
    payment_reference: str
    provider: str
    amount: float
    currency: str
    status: PaymentStatus
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PurchaseRequest(BaseModel):
    package_id: int
    provider_reference: Optional[str] = Field(None, max_length=255)


class SubscribeRequest(BaseModel):
    plan_id: int
    auto_renew: bool = True
    provider_reference: Optional[str] = Field(None, max_length=255)
