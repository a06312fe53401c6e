from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum as PyEnum

from core.database import Base


class FuelType(str, PyEnum):
    PETROL = "petrol"
    DIESEL = "diesel"
    ELECTRIC = "electric"
    HYBRID = "hybrid"
    LPG = "lpg"
    OTHER = "other"


class Transmission(str, PyEnum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    CVT = "cvt"
    OTHER = "other"


class MileageUnit(str, PyEnum):
    KM = "km"
    MILES = "miles"


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_make_id = Column(Integer, ForeignKey("vehicle_makes.id", ondelete="SET NULL"), nullable=True)
    vehicle_model_id = Column(Integer, ForeignKey("vehicle_models.id", ondelete="SET NULL"), nullable=True)
    custom_make = Column(String(100), nullable=True)
    custom_model = Column(String(100), nullable=True)
    year = Column(Integer, nullable=True)
    color = Column(String(50), nullable=True)
    license_plate = Column(String(20), nullable=True)
    vin = Column(String(50), nullable=True)
    fuel_type = Column(SQLEnum(FuelType), nullable=True)
    transmission = Column(SQLEnum(Transmission), nullable=True)
    mileage = Column(Integer, nullable=True)
    mileage_unit = Column(SQLEnum(MileageUnit), nullable=False, default=MileageUnit.KM)
    nickname = Column(String(100), nullable=True)
    image = Column(String(500), nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    make = relationship("VehicleMake", lazy="selectin")
    model = relationship("VehicleModel", lazy="selectin")

    @property
    def make_name(self):
        return self.make.name if self.make else self.custom_make

    @property
    def model_name(self):
        return self.model.name if self.model else self.custom_model

    @property
    def display_name(self) -> str:
        parts = [str(self.year) if self.year else None, self.make_name, self.model_name]
        return " ".join(p for p in parts if p) or (self.nickname or "Vehicle")
