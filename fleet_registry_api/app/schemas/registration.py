"""
Pydantic models for vehicle registrations.

A registration is one physical vehicle: its number plate, chassis and
engine numbers, the catalog item it is an instance of (``vehicle_id``)
and its assigned driver (``driver_id``).  The read model embeds the
resolved ``vehicle`` and ``driver`` snapshots, ``null`` when dangling.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .reference import DriverSnapshot
from .vehicle import VehicleSnapshot


class RegistrationBase(BaseModel):
    model_config = {"str_strip_whitespace": True}

    vehicle_number: str = Field(..., min_length=1, examples=["MH12AB1234"])
    chassis_number: str = Field(..., min_length=1, examples=["MA3EWDE1S00123456"])
    engine_number: str = Field(..., min_length=1, examples=["K12MN1234567"])
    status: Optional[str] = Field(None, examples=["active"])


class RegistrationCreate(RegistrationBase):
    vehicle_id: str
    driver_id: str


class RegistrationUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    model_config = {"str_strip_whitespace": True}

    vehicle_number: Optional[str] = Field(None, min_length=1)
    chassis_number: Optional[str] = Field(None, min_length=1)
    engine_number: Optional[str] = Field(None, min_length=1)
    status: Optional[str] = None
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None


class RegistrationRead(RegistrationBase):
    id: str
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    vehicle: Optional[VehicleSnapshot] = None
    driver: Optional[DriverSnapshot] = None
