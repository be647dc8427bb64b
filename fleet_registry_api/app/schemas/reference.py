"""
Pydantic models for referenced entities.

Accounts and drivers are only managed here far enough to be linked
from devices and registrations.  Each has a create model, a read model
and the public snapshot embedded into resolved views.  The registration
snapshot lives here too; the full registration models are in
``registration``.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AccountCreate(BaseModel):
    model_config = {"str_strip_whitespace": True}

    account_name: str = Field(..., min_length=1, examples=["Acme Logistics"])
    level: int = Field(1, ge=1, le=5)


class AccountRead(AccountCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class AccountSnapshot(BaseModel):
    id: str
    account_name: Optional[str] = None


class DriverCreate(BaseModel):
    model_config = {"str_strip_whitespace": True}

    name: str = Field(..., min_length=1, examples=["Ravi Kumar"])
    contact_no: str = Field(..., min_length=1, examples=["+91 98765 43210"])
    email: str = Field(..., min_length=3, examples=["ravi.kumar@example.com"])
    license_no: str = Field(..., min_length=1, examples=["DL-0420110012345"])
    is_active: bool = True


class DriverRead(DriverCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class DriverSnapshot(BaseModel):
    id: str
    name: Optional[str] = None
    license_no: Optional[str] = None
    contact_no: Optional[str] = None


class RegistrationSnapshot(BaseModel):
    id: str
    vehicle_number: Optional[str] = None
