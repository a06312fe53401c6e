"""
Packages, subscriptions, purchases and payments.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Numeric, JSON,
    ForeignKey, Index, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy import event
from slugify import slugify
from enum import Enum as PyEnum

from core.database import Base


class BillingPeriod(str, PyEnum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, PyEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PENDING = "pending"


class PurchaseStatus(str, PyEnum):
    ACTIVE = "active"
    EXHAUSTED = "exhausted"
    EXPIRED = "expired"


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class LeadPackage(Base):
    __tablename__ = "lead_packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    leads_count = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(5), nullable=False, default="GHS")
    price_per_lead = Column(Numeric(10, 2), nullable=True)
    validity_days = Column(Integer, nullable=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DiagnosisPackage(Base):
    __tablename__ = "diagnosis_packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    diagnoses_count = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(5), nullable=False, default="GHS")
    price_per_diagnosis = Column(Numeric(10, 2), nullable=True)
    includes_images = Column(Boolean, nullable=False, default=True)
    includes_voice = Column(Boolean, nullable=False, default=True)
    includes_expert_contact = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    billing_period = Column(SQLEnum(BillingPeriod), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(5), nullable=False, default="GHS")
    leads_per_month = Column(Integer, nullable=True)  # None means unlimited
    priority_listing = Column(Boolean, nullable=False, default=False)
    featured_profile = Column(Boolean, nullable=False, default=False)
    analytics_access = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    features = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ExpertSubscription(Base):
    __tablename__ = "expert_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_plan_id = Column(Integer, ForeignKey("subscription_plans.id", ondelete="CASCADE"), nullable=False)
    status = Column(SQLEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.PENDING)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    auto_renew = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    plan = relationship("SubscriptionPlan", lazy="selectin")


class LeadPackagePurchase(Base):
    __tablename__ = "lead_package_purchases"
    __table_args__ = (Index("ix_lead_package_purchases_user_status", "user_id", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    lead_package_id = Column(Integer, ForeignKey("lead_packages.id", ondelete="CASCADE"), nullable=False)
    leads_purchased = Column(Integer, nullable=False)
    leads_remaining = Column(Integer, nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(5), nullable=False, default="GHS")
    status = Column(SQLEnum(PurchaseStatus), nullable=False, default=PurchaseStatus.ACTIVE)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class DiagnosisPackagePurchase(Base):
    __tablename__ = "diagnosis_package_purchases"
    __table_args__ = (Index("ix_diagnosis_package_purchases_user_status", "user_id", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    diagnosis_package_id = Column(Integer, ForeignKey("diagnosis_packages.id", ondelete="CASCADE"), nullable=False)
    diagnoses_purchased = Column(Integer, nullable=False)
    diagnoses_remaining = Column(Integer, nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(5), nullable=False, default="GHS")
    status = Column(SQLEnum(PurchaseStatus), nullable=False, default=PurchaseStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Payment(Base):
    """A payment for any purchasable row; ``payable_type`` names the table."""

    __tablename__ = "payments"
    __table_args__ = (Index("ix_payments_payable", "payable_type", "payable_id"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    payable_type = Column(String(50), nullable=False)
    payable_id = Column(Integer, nullable=False)
    payment_reference = Column(String(100), unique=True, nullable=False)
    provider = Column(String(50), nullable=False, default="paystack")
    provider_reference = Column(String(255), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(5), nullable=False, default="GHS")
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    provider_response = Column(JSON, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


@event.listens_for(LeadPackage, "before_insert")
@event.listens_for(DiagnosisPackage, "before_insert")
@event.listens_for(SubscriptionPlan, "before_insert")
def before_insert(mapper, connection, target):
    if target.name and not target.slug:
        target.slug = slugify(target.name)
