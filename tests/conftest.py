"""Shared fixtures: a fresh SQLite file per test, services and an HTTP client.

``ASGITransport`` does not run the app lifespan, so the ``store`` fixture
applies the migrations itself before the app is built.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from fleet_registry_api.app.core.config import Settings
from fleet_registry_api.app.core.db import RecordStore, init_db
from fleet_registry_api.app.main import create_app
from fleet_registry_api.app.services.device_service import DeviceService
from fleet_registry_api.app.services.event_log_service import EventLogClient
from fleet_registry_api.app.services.reference_service import AccountService, DriverService
from fleet_registry_api.app.services.registration_service import RegistrationService
from fleet_registry_api.app.services.vehicle_service import VehicleService


@pytest.fixture
def settings(tmp_path):
    return Settings(database_url=str(tmp_path / "fleet.db"), logs_service_url="")


@pytest.fixture
def store(settings):
    init_db(settings.database_url)
    return RecordStore(settings.database_url)


@pytest.fixture
def events():
    return EventLogClient("")


@pytest.fixture
def device_service(store, events, settings):
    return DeviceService(store, events, settings)


@pytest.fixture
def vehicle_service(store, events, settings):
    return VehicleService(store, events, settings)


@pytest.fixture
def account_service(store, events, settings):
    return AccountService(store, events, settings)


@pytest.fixture
def driver_service(store, events, settings):
    return DriverService(store, events, settings)


@pytest.fixture
def registration_service(store, events, settings):
    return RegistrationService(store, events, settings)


@pytest.fixture
def app(settings, store):
    return create_app(settings)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def device_payload():
    """Build a minimal valid device body; ``n`` keeps IMEI and serial unique."""

    def _build(n, account_id, **overrides):
        payload = {
            "imei": f"IMEI-{n:03d}",
            "serial_no": f"SN-{n:03d}",
            "sim_no1": f"89911012000{n:05d}",
            "sim_no1_operator": "Airtel",
            "vehicle_description": f"Truck {n}",
            "account_id": account_id,
        }
        payload.update(overrides)
        return payload

    return _build
