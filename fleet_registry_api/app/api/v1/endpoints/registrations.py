"""
Vehicle registration endpoints for API v1.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from fleet_registry_api.app.api.v1.dependencies import export_response, get_registration_service
from fleet_registry_api.app.core.filters import FilterParams
from fleet_registry_api.app.schemas.common import MessageResponse, PageResponse
from fleet_registry_api.app.schemas.registration import (
    RegistrationCreate,
    RegistrationRead,
    RegistrationUpdate,
)
from fleet_registry_api.app.services.export_service import ExportFormat
from fleet_registry_api.app.services.pagination import MAX_PAGE
from fleet_registry_api.app.services.registration_service import RegistrationService

router = APIRouter()


def registration_filters(
    search: Optional[str] = Query(None, description="Free text over plate, chassis and engine numbers"),
    vehicle_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
) -> FilterParams:
    return FilterParams(
        search=search,
        references={"vehicle_id": vehicle_id, "driver_id": driver_id},
        exact={"status": status},
    )


@router.post("/", response_model=RegistrationRead, status_code=status.HTTP_201_CREATED)
async def create_registration(
    registration: RegistrationCreate,
    service: RegistrationService = Depends(get_registration_service),
):
    """Register a vehicle.  The catalog item and the driver must exist."""
    return await service.create(registration.model_dump())


@router.get("/", response_model=PageResponse[RegistrationRead])
async def list_registrations(
    filters: FilterParams = Depends(registration_filters),
    page: int = Query(1, le=MAX_PAGE),
    limit: int = Query(10, ge=0),
    service: RegistrationService = Depends(get_registration_service),
):
    result = await service.list(filters, page=page, limit=limit)
    return result.to_dict()


@router.get("/search", response_model=PageResponse[RegistrationRead])
async def search_registrations(
    search: str = Query(..., min_length=1),
    page: int = Query(1, le=MAX_PAGE),
    limit: int = Query(10, ge=0),
    service: RegistrationService = Depends(get_registration_service),
):
    """Search registrations, also matching the vehicle brand/model and the driver."""
    result = await service.list(FilterParams(search=search), page=page, limit=limit, cross_reference=True)
    return result.to_dict()


@router.get("/export")
async def export_registrations(
    export_format: ExportFormat = Query(..., alias="format", description="csv, xlsx or pdf"),
    filters: FilterParams = Depends(registration_filters),
    service: RegistrationService = Depends(get_registration_service),
):
    encoder, stream = await service.open_export(export_format, filters)
    return export_response(encoder, stream)


@router.get("/{registration_id}", response_model=RegistrationRead)
async def get_registration(
    registration_id: str, service: RegistrationService = Depends(get_registration_service)
):
    return await service.get(registration_id)


@router.patch("/{registration_id}", response_model=RegistrationRead)
async def update_registration(
    registration_id: str,
    updates: RegistrationUpdate,
    service: RegistrationService = Depends(get_registration_service),
):
    """Partially update a registration; changed numbers are checked for uniqueness."""
    return await service.update(registration_id, updates.model_dump(exclude_unset=True))


@router.delete("/{registration_id}", response_model=MessageResponse)
async def delete_registration(
    registration_id: str, service: RegistrationService = Depends(get_registration_service)
):
    await service.delete(registration_id)
    return {"message": "Vehicle registration deleted successfully"}
