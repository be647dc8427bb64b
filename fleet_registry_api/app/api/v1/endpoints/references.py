"""
Endpoints for accounts and drivers.

These entities only need enough surface to be created, browsed and
removed so that devices and registrations can point at them.  Both
routers share one set of route functions built by ``_crud_router``.
"""

from typing import Callable, Optional, Type

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from fleet_registry_api.app.api.v1.dependencies import (
    get_account_service,
    get_driver_service,
)
from fleet_registry_api.app.core.filters import FilterParams
from fleet_registry_api.app.schemas.common import MessageResponse, PageResponse
from fleet_registry_api.app.schemas.reference import (
    AccountCreate,
    AccountRead,
    DriverCreate,
    DriverRead,
)
from fleet_registry_api.app.services.pagination import MAX_PAGE
from fleet_registry_api.app.services.record_service import RecordService


def _crud_router(
    create_model: Type[BaseModel],
    read_model: Type[BaseModel],
    get_service: Callable[..., RecordService],
    label: str,
) -> APIRouter:
    router = APIRouter()

    @router.post("/", response_model=read_model, status_code=status.HTTP_201_CREATED)
    async def create(payload: create_model, service: RecordService = Depends(get_service)):  # type: ignore[valid-type]
        return await service.create(payload.model_dump())

    @router.get("/", response_model=PageResponse[read_model])  # type: ignore[valid-type]
    async def list_records(
        search: Optional[str] = Query(None),
        page: int = Query(1, le=MAX_PAGE),
        limit: int = Query(10, ge=0),
        service: RecordService = Depends(get_service),
    ):
        result = await service.list(FilterParams(search=search), page=page, limit=limit)
        return result.to_dict()

    @router.get("/{record_id}", response_model=read_model)
    async def get(record_id: str, service: RecordService = Depends(get_service)):
        return await service.get(record_id)

    @router.delete("/{record_id}", response_model=MessageResponse)
    async def delete(record_id: str, service: RecordService = Depends(get_service)):
        await service.delete(record_id)
        return {"message": f"{label} deleted successfully"}

    return router


accounts_router = _crud_router(AccountCreate, AccountRead, get_account_service, "Account")
drivers_router = _crud_router(DriverCreate, DriverRead, get_driver_service, "Driver")
