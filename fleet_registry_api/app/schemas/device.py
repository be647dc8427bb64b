"""
Pydantic models for onboarded telematics devices.

A device record stores up to four reference fields (``account_id``,
``vehicle_id``, ``registration_id`` and ``driver_id``).  The read model
adds the resolved snapshots under ``account``, ``vehicle``,
``registration`` and ``driver``; a snapshot is ``null`` when the
reference is absent or points at a record that no longer exists.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .reference import AccountSnapshot, DriverSnapshot, RegistrationSnapshot
from .vehicle import VehicleSnapshot


class DeviceBase(BaseModel):
    model_config = {"str_strip_whitespace": True}

    imei: str = Field(..., min_length=1, examples=["356938035643809"])
    serial_no: str = Field(..., min_length=1, examples=["SN-7781-A"])
    sim_no1: str = Field(..., min_length=1, examples=["8991101200003204510"])
    sim_no1_operator: str = Field(..., min_length=1, examples=["Airtel"])
    sim_no2: Optional[str] = None
    sim_no2_operator: Optional[str] = None
    vehicle_description: str = Field(..., min_length=1, examples=["Reefer truck, north depot"])
    status: Optional[str] = None
    is_active: bool = True


class DeviceCreate(DeviceBase):
    """Schema for onboarding a device.

    Reference identifiers are checked for format by the service, which
    answers ``400 invalid_reference`` for malformed values.
    """

    account_id: str
    vehicle_id: Optional[str] = None
    registration_id: Optional[str] = None
    driver_id: Optional[str] = None


class DeviceUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged.

    Sending ``null`` for an optional field removes it.
    """

    model_config = {"str_strip_whitespace": True}

    imei: Optional[str] = Field(None, min_length=1)
    serial_no: Optional[str] = Field(None, min_length=1)
    sim_no1: Optional[str] = Field(None, min_length=1)
    sim_no1_operator: Optional[str] = Field(None, min_length=1)
    sim_no2: Optional[str] = None
    sim_no2_operator: Optional[str] = None
    vehicle_description: Optional[str] = Field(None, min_length=1)
    status: Optional[str] = None
    is_active: Optional[bool] = None
    account_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    registration_id: Optional[str] = None
    driver_id: Optional[str] = None


class DeviceRead(DeviceBase):
    id: str
    account_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    registration_id: Optional[str] = None
    driver_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    account: Optional[AccountSnapshot] = None
    vehicle: Optional[VehicleSnapshot] = None
    registration: Optional[RegistrationSnapshot] = None
    driver: Optional[DriverSnapshot] = None


class DeviceStats(BaseModel):
    total_devices: int
    active_devices: int
    inactive_devices: int
