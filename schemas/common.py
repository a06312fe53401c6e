"""
Common schemas used across the application.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema for ORM-backed read models."""

    model_config = ConfigDict(from_attributes=True)


class RegionRead(BaseSchema):
    id: int
    name: str
    code: str
    capital: Optional[str] = None


class SpecializationRead(BaseSchema):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None


class VehicleMakeRead(BaseSchema):
    id: int
    name: str
    slug: str
    logo: Optional[str] = None
    country: Optional[str] = None


class VehicleModelRead(BaseSchema):
    id: int
    vehicle_make_id: int
    name: str
    slug: str
    type: str
