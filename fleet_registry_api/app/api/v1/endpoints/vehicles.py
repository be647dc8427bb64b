"""
Vehicle catalog endpoints for API v1.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from fleet_registry_api.app.api.v1.dependencies import export_response, get_vehicle_service
from fleet_registry_api.app.core.filters import FilterParams
from fleet_registry_api.app.schemas.common import MessageResponse, PageResponse
from fleet_registry_api.app.schemas.vehicle import VehicleCreate, VehicleRead, VehicleType, VehicleUpdate
from fleet_registry_api.app.services.export_service import ExportFormat
from fleet_registry_api.app.services.pagination import MAX_PAGE
from fleet_registry_api.app.services.vehicle_service import VehicleService

router = APIRouter()


def vehicle_filters(
    search: Optional[str] = Query(None, description="Free text over brand, model, type and icon"),
    vehicle_type: Optional[VehicleType] = Query(None),
    status: Optional[str] = Query(None),
) -> FilterParams:
    return FilterParams(
        search=search,
        exact={
            "vehicle_type": vehicle_type.value if vehicle_type else None,
            "status": status,
        },
    )


@router.post("/", response_model=VehicleRead, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    vehicle: VehicleCreate,
    service: VehicleService = Depends(get_vehicle_service),
) -> VehicleRead:
    return await service.create(vehicle.model_dump())


@router.get("/", response_model=PageResponse[VehicleRead])
async def list_vehicles(
    filters: FilterParams = Depends(vehicle_filters),
    page: int = Query(1, le=MAX_PAGE),
    limit: int = Query(10, ge=0),
    service: VehicleService = Depends(get_vehicle_service),
):
    """List catalog items, newest first, optionally filtered by type and status."""
    result = await service.list(filters, page=page, limit=limit)
    return result.to_dict()


@router.get("/search", response_model=PageResponse[VehicleRead])
async def search_vehicles(
    search: str = Query(..., min_length=1),
    page: int = Query(1, le=MAX_PAGE),
    limit: int = Query(10, ge=0),
    service: VehicleService = Depends(get_vehicle_service),
):
    result = await service.list(FilterParams(search=search), page=page, limit=limit, cross_reference=True)
    return result.to_dict()


@router.get("/export")
async def export_vehicles(
    export_format: ExportFormat = Query(..., alias="format", description="csv, xlsx or pdf"),
    filters: FilterParams = Depends(vehicle_filters),
    service: VehicleService = Depends(get_vehicle_service),
):
    """Download every matching catalog item in the requested format."""
    encoder, stream = await service.open_export(export_format, filters)
    return export_response(encoder, stream)


@router.get("/{vehicle_id}", response_model=VehicleRead)
async def get_vehicle(vehicle_id: str, service: VehicleService = Depends(get_vehicle_service)):
    return await service.get(vehicle_id)


@router.patch("/{vehicle_id}", response_model=VehicleRead)
async def update_vehicle(
    vehicle_id: str,
    updates: VehicleUpdate,
    service: VehicleService = Depends(get_vehicle_service),
):
    """Partially update a catalog item; unspecified fields remain unchanged."""
    return await service.update(vehicle_id, updates.model_dump(exclude_unset=True))


@router.patch("/{vehicle_id}/activate", response_model=VehicleRead)
async def activate_vehicle(vehicle_id: str, service: VehicleService = Depends(get_vehicle_service)):
    return await service.activate(vehicle_id)


@router.patch("/{vehicle_id}/deactivate", response_model=VehicleRead)
async def deactivate_vehicle(vehicle_id: str, service: VehicleService = Depends(get_vehicle_service)):
    return await service.deactivate(vehicle_id)


@router.delete("/{vehicle_id}", response_model=MessageResponse)
async def delete_vehicle(vehicle_id: str, service: VehicleService = Depends(get_vehicle_service)):
    await service.delete(vehicle_id)
    return {"message": "Vehicle deleted successfully"}
