"""
Lead model.

A lead introduces one diagnosis to one expert and moves through
new -> viewed -> contacted -> converted, or to closed/expired. Leads are
never hard-deleted; every transition writes a ``LeadActivity`` row.
"""

import uuid
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, JSON,
    ForeignKey, Index, UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum as PyEnum

from core.database import Base


class LeadStatus(str, PyEnum):
    NEW = "new"
    VIEWED = "viewed"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    CLOSED = "closed"
    EXPIRED = "expired"


TERMINAL_LEAD_STATUSES = (LeadStatus.CONVERTED, LeadStatus.CLOSED, LeadStatus.EXPIRED)
INACTIVE_LEAD_STATUSES = (LeadStatus.CLOSED, LeadStatus.EXPIRED)


class Lead(Base):
    __tablename__ = "leads"
    __table_args__ = (Index("ix_leads_expert_status", "expert_id", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    diagnosis_id = Column(Integer, ForeignKey("diagnoses.id", ondelete="CASCADE"), nullable=False, index=True)
    expert_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    lead_package_purchase_id = Column(
        Integer, ForeignKey("lead_package_purchases.id", ondelete="SET NULL"), nullable=True
    )
    status = Column(SQLEnum(LeadStatus), nullable=False, default=LeadStatus.NEW)
    is_free_lead = Column(Boolean, nullable=False, default=False)

    viewed_at = Column(DateTime(timezone=True), nullable=True)
    contacted_at = Column(DateTime(timezone=True), nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    diagnosis = relationship("Diagnosis", lazy="selectin")
    activities = relationship(
        "LeadActivity",
        back_populates="lead",
        order_by="LeadActivity.id",
        cascade="all, delete-orphan",
    )

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_LEAD_STATUSES

    def __repr__(self):
        return f"<Lead(id={self.id}, expert_id={self.expert_id}, status={self.status})>"


class LeadActivity(Base):
    __tablename__ = "lead_activities"

    id = Column(Integer, primary_key=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    activity_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    lead = relationship("Lead", back_populates="activities")


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("lead_id", name="uq_reviews_lead"),)

    id = Column(Integer, primary_key=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)
    expert_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    expert_response = Column(Text, nullable=True)
    expert_responded_at = Column(DateTime(timezone=True), nullable=True)
    is_visible = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
