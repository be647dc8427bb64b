"""
Request dependencies shared by the v1 endpoints.

Services are built once by ``create_app`` and stored on
``app.state``; these helpers hand them to the route functions so the
routes never construct components themselves.
"""

from typing import AsyncIterator, Iterator

from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import iterate_in_threadpool

from ...services.device_service import DeviceService
from ...services.export_service import ExportEncoder
from ...services.reference_service import AccountService, DriverService
from ...services.registration_service import RegistrationService
from ...services.vehicle_service import VehicleService


def get_device_service(request: Request) -> DeviceService:
    return request.app.state.devices


def get_vehicle_service(request: Request) -> VehicleService:
    return request.app.state.vehicles


def get_account_service(request: Request) -> AccountService:
    return request.app.state.accounts


def get_driver_service(request: Request) -> DriverService:
    return request.app.state.drivers


def get_registration_service(request: Request) -> RegistrationService:
    return request.app.state.registrations


async def _body(stream: Iterator[bytes]) -> AsyncIterator[bytes]:
    # Encoding runs in the thread pool; closing the stream on disconnect
    # releases the workbook or document held by the encoder.
    try:
        async for chunk in iterate_in_threadpool(stream):
            yield chunk
    finally:
        stream.close()


def export_response(encoder: ExportEncoder, stream: Iterator[bytes]) -> StreamingResponse:
    """Wrap a primed export stream into a download response."""
    return StreamingResponse(
        _body(stream),
        media_type=encoder.content_type,
        headers={"Content-Disposition": f'attachment; filename="{encoder.filename()}"'},
    )
