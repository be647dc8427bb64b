"""
Top-level router for version 1 of the API.

This router aggregates the entity routers under a unified prefix.
When new entities are introduced, include their routers here.
"""

from fastapi import APIRouter

from .endpoints import devices, references, registrations, vehicles

router = APIRouter()

router.include_router(devices.router, prefix="/devices", tags=["devices"])
router.include_router(vehicles.router, prefix="/vehicles", tags=["vehicles"])
router.include_router(references.accounts_router, prefix="/accounts", tags=["accounts"])
router.include_router(references.drivers_router, prefix="/drivers", tags=["drivers"])
router.include_router(registrations.router, prefix="/registrations", tags=["registrations"])
