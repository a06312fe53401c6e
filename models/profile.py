"""
Role-specific profiles.

Driver profiles carry the diagnosis quota; expert profiles carry the free-lead
quota, KYC state, location and marketplace stats.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Float, Date, JSON,
    ForeignKey, Table, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum as PyEnum

from core.database import Base


expert_specializations = Table(
    "expert_specializations",
    Base.metadata,
    Column("expert_profile_id", Integer, ForeignKey("expert_profiles.id", ondelete="CASCADE"), primary_key=True),
    Column("specialization_id", Integer, ForeignKey("specializations.id", ondelete="CASCADE"), primary_key=True),
)

expert_service_regions = Table(
    "expert_service_regions",
    Base.metadata,
    Column("expert_profile_id", Integer, ForeignKey("expert_profiles.id", ondelete="CASCADE"), primary_key=True),
    Column("region_id", Integer, ForeignKey("regions.id", ondelete="CASCADE"), primary_key=True),
)


class KycStatus(str, PyEnum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class DriverProfile(Base):
    __tablename__ = "driver_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    region_id = Column(Integer, ForeignKey("regions.id", ondelete="SET NULL"), nullable=True)
    city = Column(String(100), nullable=True)
    license_number = Column(String(50), nullable=True)
    license_expiry = Column(Date, nullable=True)
    driving_experience_years = Column(Integer, nullable=True)

    # Quota
    free_diagnoses_remaining = Column(Integer, nullable=False, default=5)
    paid_diagnoses_remaining = Column(Integer, nullable=False, default=0)
    total_diagnoses_used = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="driver_profile", lazy="selectin")

    @property
    def diagnoses_remaining(self) -> int:
        return (self.free_diagnoses_remaining or 0) + (self.paid_diagnoses_remaining or 0)

    def __repr__(self):
        return (
            f"<DriverProfile(user_id={self.user_id}, free={self.free_diagnoses_remaining}, "
            f"paid={self.paid_diagnoses_remaining})>"
        )


class ExpertProfile(Base):
    __tablename__ = "expert_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    business_name = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    experience_years = Column(Integer, nullable=True)
    region_id = Column(Integer, ForeignKey("regions.id", ondelete="SET NULL"), nullable=True, index=True)
    city = Column(String(100), nullable=True)
    address = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    whatsapp_number = Column(String(20), nullable=True)
    alternate_phone = Column(String(20), nullable=True)

    # KYC
    kyc_status = Column(SQLEnum(KycStatus), nullable=False, default=KycStatus.PENDING)
    kyc_submitted_at = Column(DateTime(timezone=True), nullable=True)
    kyc_approved_at = Column(DateTime(timezone=True), nullable=True)
    kyc_rejection_reason = Column(Text, nullable=True)

    # Lead quota
    free_leads_remaining = Column(Integer, nullable=False, default=4)
    total_leads_received = Column(Integer, nullable=False, default=0)

    # Marketplace stats
    rating = Column(Float, nullable=False, default=0.0)
    rating_count = Column(Integer, nullable=False, default=0)
    jobs_completed = Column(Integer, nullable=False, default=0)
    is_priority_listed = Column(Boolean, nullable=False, default=False)
    is_available = Column(Boolean, nullable=False, default=True)
    working_hours = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="expert_profile", lazy="selectin")
    specializations = relationship("Specialization", secondary=expert_specializations, lazy="selectin")
    service_regions = relationship("Region", secondary=expert_service_regions, lazy="selectin")

    @property
    def is_kyc_approved(self) -> bool:
        return self.kyc_status == KycStatus.APPROVED

    def update_rating(self, new_rating: int) -> None:
        """Fold one new review into the running average."""
        total = (self.rating or 0) * (self.rating_count or 0) + new_rating
        self.rating_count = (self.rating_count or 0) + 1
        self.rating = round(total / self.rating_count, 2)

    def __repr__(self):
        return f"<ExpertProfile(user_id={self.user_id}, free_leads={self.free_leads_remaining})>"
