"""
Device onboarding endpoints for API v1.

Every read returns result views: the stored device plus the resolved
``account``, ``vehicle``, ``registration`` and ``driver`` snapshots
(``null`` when a reference is absent or dangling).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from fleet_registry_api.app.api.v1.dependencies import export_response, get_device_service
from fleet_registry_api.app.core.filters import FilterParams
from fleet_registry_api.app.schemas.common import MessageResponse, PageResponse
from fleet_registry_api.app.schemas.device import DeviceCreate, DeviceRead, DeviceStats, DeviceUpdate
from fleet_registry_api.app.services.device_service import DeviceService
from fleet_registry_api.app.services.export_service import ExportFormat
from fleet_registry_api.app.services.pagination import MAX_PAGE

router = APIRouter()


def device_filters(
    search: Optional[str] = Query(None, description="Free text over device fields"),
    account_id: Optional[str] = Query(None),
    vehicle_id: Optional[str] = Query(None),
    registration_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    sim_operator: Optional[str] = Query(None, description="Carrier name on either SIM"),
) -> FilterParams:
    return FilterParams(
        search=search,
        references={
            "account_id": account_id,
            "vehicle_id": vehicle_id,
            "registration_id": registration_id,
            "driver_id": driver_id,
        },
        flag=is_active,
        substrings={"sim_operator": sim_operator},
    )


@router.post("/", response_model=DeviceRead, status_code=status.HTTP_201_CREATED)
async def create_device(
    device: DeviceCreate,
    service: DeviceService = Depends(get_device_service),
) -> DeviceRead:
    """Onboard a device.

    Answers 409 if the IMEI or serial number is already registered.
    """
    return await service.create(device.model_dump())


@router.get("/", response_model=PageResponse[DeviceRead])
async def list_devices(
    filters: FilterParams = Depends(device_filters),
    page: int = Query(1, le=MAX_PAGE),
    limit: int = Query(10, ge=0),
    service: DeviceService = Depends(get_device_service),
):
    """List devices, newest first.

    - **search** matches IMEI, serial, SIM numbers, carriers and description.
    - **account_id**, **vehicle_id**, **registration_id**, **driver_id** are exact matches.
    - **is_active** and **sim_operator** narrow the result further.
    """
    result = await service.list(filters, page=page, limit=limit)
    return result.to_dict()


@router.get("/search", response_model=PageResponse[DeviceRead])
async def search_devices(
    filters: FilterParams = Depends(device_filters),
    page: int = Query(1, le=MAX_PAGE),
    limit: int = Query(10, ge=0),
    service: DeviceService = Depends(get_device_service),
):
    """Like the list, but the free text also matches the account name,
    the vehicle brand and model, the registration number and the driver's
    name, licence and contact number."""
    result = await service.list(filters, page=page, limit=limit, cross_reference=True)
    return result.to_dict()


@router.get("/stats", response_model=DeviceStats)
async def device_stats(service: DeviceService = Depends(get_device_service)):
    return await service.stats()


@router.get("/export")
async def export_devices(
    export_format: ExportFormat = Query(..., alias="format", description="csv, xlsx or pdf"),
    filters: FilterParams = Depends(device_filters),
    service: DeviceService = Depends(get_device_service),
):
    """Download every matching device in the requested format."""
    encoder, stream = await service.open_export(export_format, filters)
    return export_response(encoder, stream)


@router.get("/account/{account_id}", response_model=List[DeviceRead])
async def devices_for_account(account_id: str, service: DeviceService = Depends(get_device_service)):
    """Active devices owned by an account."""
    return await service.devices_for("account_id", account_id)


@router.get("/registration/{registration_id}", response_model=List[DeviceRead])
async def devices_for_registration(
    registration_id: str, service: DeviceService = Depends(get_device_service)
):
    """Active devices installed in a registered vehicle."""
    return await service.devices_for("registration_id", registration_id)


@router.get("/{device_id}", response_model=DeviceRead)
async def get_device(device_id: str, service: DeviceService = Depends(get_device_service)):
    return await service.get(device_id)


@router.patch("/{device_id}", response_model=DeviceRead)
async def update_device(
    device_id: str,
    updates: DeviceUpdate,
    service: DeviceService = Depends(get_device_service),
):
    """Partially update a device.

    Only fields present in the body are applied; changing the IMEI or
    serial number re-checks uniqueness.
    """
    return await service.update(device_id, updates.model_dump(exclude_unset=True))


@router.patch("/{device_id}/activate", response_model=DeviceRead)
async def activate_device(device_id: str, service: DeviceService = Depends(get_device_service)):
    return await service.set_active(device_id, True)


@router.patch("/{device_id}/deactivate", response_model=DeviceRead)
async def deactivate_device(device_id: str, service: DeviceService = Depends(get_device_service)):
    return await service.set_active(device_id, False)


@router.delete("/{device_id}", response_model=MessageResponse)
async def delete_device(device_id: str, service: DeviceService = Depends(get_device_service)):
    await service.delete(device_id)
    return {"message": "Device deleted successfully"}
