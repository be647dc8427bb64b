"""
Main entrypoint for the Fleet Registry API.

This module assembles the FastAPI application: it sets up logging,
builds the record store, the log-service client and the entity
services from one ``Settings`` instance, registers the error handler
and includes the versioned routers.  ``app`` is created at import time
so it can be served directly, e.g.::

    uvicorn fleet_registry_api.app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api.v1.router import router as v1_router
from .core.config import Settings
from .core.db import RecordStore, init_db, resolve_database_path
from .core.errors import FleetRegistryError
from .core.logging_config import setup_logging
from .services.device_service import DeviceService
from .services.event_log_service import EventLogClient
from .services.reference_service import AccountService, DriverService
from .services.registration_service import RegistrationService
from .services.vehicle_service import VehicleService

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure a FastAPI application.

    Parameters
    ----------
    settings : Settings, optional
        Configuration to use.  When omitted it is read from the
        environment.

    Returns
    -------
    FastAPI
        A configured application whose ``state`` holds the store, the
        log client and one service per entity type.
    """
    settings = settings or Settings()
    setup_logging(settings)

    db_path = resolve_database_path(settings.database_url)
    store = RecordStore(db_path)
    events = EventLogClient(settings.logs_service_url, timeout=settings.logs_service_timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Apply pending migrations on startup; drain queued log events on shutdown."""
        init_db(db_path)
        logger.info("Database ready at %s", db_path)
        yield
        await events.aclose()
        logger.info("Fleet Registry API shutting down")

    app = FastAPI(
        title=settings.project_name,
        version=settings.api_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.events = events
    app.state.devices = DeviceService(store, events, settings)
    app.state.vehicles = VehicleService(store, events, settings)
    app.state.accounts = AccountService(store, events, settings)
    app.state.drivers = DriverService(store, events, settings)
    app.state.registrations = RegistrationService(store, events, settings)

    @app.exception_handler(FleetRegistryError)
    async def registry_error_handler(request: Request, exc: FleetRegistryError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    app.include_router(v1_router, prefix="/api/v1")

    return app


app = create_app()
