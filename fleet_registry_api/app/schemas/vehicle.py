"""
Pydantic models for vehicle catalog items.

A catalog item describes a make and model (brand, model, category and
an optional icon), not an individual registered vehicle.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class VehicleType(str, Enum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    TRUCK = "truck"
    BUS = "bus"
    VAN = "van"
    SUV = "suv"


class VehicleBase(BaseModel):
    model_config = {"str_strip_whitespace": True}

    brand_name: str = Field(..., min_length=1, examples=["Tata"])
    model_name: str = Field(..., min_length=1, examples=["Ace Gold"])
    vehicle_type: VehicleType = Field(..., examples=["truck"])
    icon: Optional[str] = Field(None, examples=["truck-small.svg"])
    status: str = Field("active", examples=["active"])


class VehicleCreate(VehicleBase):
    """Schema for creating a catalog item."""
    pass


class VehicleRead(VehicleBase):
    id: str
    created_at: datetime
    updated_at: datetime


class VehicleUpdate(BaseModel):
    """Schema for updating a catalog item.

    All fields are optional; only provided fields will be updated.
    """

    model_config = {"str_strip_whitespace": True}

    brand_name: Optional[str] = Field(None, min_length=1)
    model_name: Optional[str] = Field(None, min_length=1)
    vehicle_type: Optional[VehicleType] = None
    icon: Optional[str] = None
    status: Optional[str] = None


class VehicleSnapshot(BaseModel):
    id: str
    brand_name: Optional[str] = None
    model_name: Optional[str] = None
    vehicle_type: Optional[str] = None
