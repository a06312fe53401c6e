from datetime import datetime, date
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.vehicle import FuelType, Transmission, MileageUnit


def _max_year() -> int:
    return date.today().year + 1


class VehicleBase(BaseModel):
    vehicle_make_id: Optional[int] = None
    vehicle_model_id: Optional[int] = None
    custom_make: Optional[str] = Field(None, max_length=100)
    custom_model: Optional[str] = Field(None, max_length=100)
    year: Optional[int] = None
    color: Optional[str] = Field(None, max_length=50)
    license_plate: Optional[str] = Field(None, max_length=20)
    vin: Optional[str] = Field(None, max_length=50)
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    mileage: Optional[int] = Field(None, ge=0)
    mileage_unit: Optional[MileageUnit] = None
    nickname: Optional[str] = Field(None, max_length=100)
    image: Optional[str] = Field(None, max_length=500)

    @field_validator("year")
    @classmethod
    def check_year(cls, v):
        if v is not None and not (1900 <= v <= _max_year()):
            raise ValueError(f"year must be between 1900 and {_max_year()}")
        return v


class VehicleCreate(VehicleBase):
    is_primary: bool = False


class VehicleUpdate(VehicleBase):
    pass


class VehicleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    vehicle_make_id: Optional[int] = None
    vehicle_model_id: Optional[int] = None
    make_name: Optional[str] = None
    model_name: Optional[str] = None
    display_name: str
    year: Optional[int] = None
    color: Optional[str] = None
    license_plate: Optional[str] = None
    vin: Optional[str] = None
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    mileage: Optional[int] = None
    mileage_unit: MileageUnit
    nickname: Optional[str] = None
    image: Optional[str] = None
    is_primary: bool
    created_at: Optional[datetime] = None
