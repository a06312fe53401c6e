"""
Reference data: regions, specializations, vehicle makes/models and app settings.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy import event
from slugify import slugify

from core.database import Base


class Region(Base):
    __tablename__ = "regions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(10), unique=True, nullable=False)
    capital = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Region(id={self.id}, name='{self.name}')>"


class Specialization(Base):
    __tablename__ = "specializations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class VehicleMake(Base):
    __tablename__ = "vehicle_makes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    logo = Column(String(500), nullable=True)
    country = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    models = relationship("VehicleModel", back_populates="make")


class VehicleModel(Base):
    __tablename__ = "vehicle_models"
    __table_args__ = (UniqueConstraint("vehicle_make_id", "slug", name="uq_vehicle_models_make_slug"),)

    id = Column(Integer, primary_key=True, index=True)
    vehicle_make_id = Column(Integer, ForeignKey("vehicle_makes.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False)
    type = Column(String(20), nullable=False, default="sedan")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    make = relationship("VehicleMake", back_populates="models")


class Setting(Base):
    """Key/value application setting; ``type`` drives how ``value`` is cast."""

    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default="string")  # string, integer, boolean, json
    group = Column(String(50), nullable=False, default="general")
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


@event.listens_for(Specialization, "before_insert")
@event.listens_for(VehicleMake, "before_insert")
@event.listens_for(VehicleModel, "before_insert")
def before_insert(mapper, connection, target):
    if target.name and not target.slug:
        target.slug = slugify(target.name)
