"""
User model for authentication and role-specific profiles.

A single ``users`` table carries the role; drivers and experts each get a
profile row (see ``models.profile``) joined by ``user_id``.
"""

import uuid
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum as PyEnum

from core.database import Base


class UserRole(str, PyEnum):
    DRIVER = "driver"
    EXPERT = "expert"
    ADMIN = "admin"


class User(Base):
    """User model for authentication and user management."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), unique=True, nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.DRIVER)
    avatar = Column(String(500), nullable=True)
    fcm_token = Column(String(500), nullable=True)

    is_active = Column(Boolean, default=True)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    driver_profile = relationship("DriverProfile", back_populates="user", uselist=False, lazy="selectin")
    expert_profile = relationship("ExpertProfile", back_populates="user", uselist=False, lazy="selectin")
    preferences = relationship(
        "UserPreference",
        back_populates="user",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER

    @property
    def is_expert(self) -> bool:
        return self.role == UserRole.EXPERT

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"


class UserPreference(Base):
    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    language = Column(String(5), nullable=False, default="en")
    region = Column(String(5), nullable=False, default="GH")
    currency = Column(String(5), nullable=False, default="GHS")
    distance_unit = Column(String(10), nullable=False, default="km")
    push_notifications = Column(Boolean, nullable=False, default=True)
    email_notifications = Column(Boolean, nullable=False, default=True)
    sms_notifications = Column(Boolean, nullable=False, default=False)
    maintenance_reminders = Column(Boolean, nullable=False, default=True)
    marketing_emails = Column(Boolean, nullable=False, default=False)
    theme = Column(String(10), nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="preferences")
