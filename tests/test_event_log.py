"""Log-service client: event shape, background delivery and failure isolation."""

import time

import pytest
import requests

from fleet_registry_api.app.core.config import Settings
from fleet_registry_api.app.core.errors import NotFound
from fleet_registry_api.app.services.event_log_service import EventLogClient
from fleet_registry_api.app.services.vehicle_service import VehicleService


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, response=None, error=None, delay=0.0):
        self.response = response or FakeResponse()
        self.error = error
        self.delay = delay
        self.posted = []
        self.closed = False

    def post(self, url, json=None, timeout=None):
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.posted.append((url, json, timeout))
        return self.response

    def close(self):
        self.closed = True


def _event(client, **overrides):
    fields = dict(
        method="POST",
        url="/api/v1/devices",
        operation="CREATE",
        resource="DEVICE",
        status_code=201,
        message="Device created successfully",
    )
    fields.update(overrides)
    return client.build_event(**fields)


def test_build_event_shape():
    client = EventLogClient("http://logs.local/api/logs", session=FakeSession())
    event = _event(client, metadata={"id": "x"}, response_time=12)
    assert event["statusCode"] == 201
    assert event["isError"] is False
    assert event["metadata"] == {"id": "x"}
    assert event["responseTime"] == 12
    assert event["userAgent"] == "fleet-registry-api"
    assert "errorMessage" not in event

    failed = _event(client, status_code=409, error=ValueError("dup"))
    assert failed["isError"] is True
    assert failed["errorMessage"] == "dup"


async def test_send_delivers():
    session = FakeSession()
    client = EventLogClient("http://logs.local/api/logs", timeout=2, session=session)
    assert await client.send(_event(client)) is True
    url, payload, timeout = session.posted[0]
    assert url == "http://logs.local/api/logs"
    assert payload["operation"] == "CREATE"
    assert timeout == 2


async def test_send_swallows_connection_errors(caplog):
    client = EventLogClient(
        "http://logs.local/api/logs", session=FakeSession(error=requests.ConnectionError("refused"))
    )
    assert await client.send(_event(client)) is False
    assert "Failed to send log" in caplog.text


async def test_send_swallows_bad_status():
    client = EventLogClient("http://logs.local/api/logs", session=FakeSession(response=FakeResponse(503)))
    assert await client.send(_event(client)) is False


async def test_send_gives_up_after_timeout(caplog):
    client = EventLogClient("http://logs.local/api/logs", timeout=0.05, session=FakeSession(delay=0.5))
    started = time.monotonic()
    assert await client.send(_event(client)) is False
    assert time.monotonic() - started < 0.4
    assert "did not answer" in caplog.text


async def test_disabled_client_does_nothing():
    session = FakeSession()
    client = EventLogClient("", session=session)
    client.emit(method="GET", url="/", operation="LIST", resource="DEVICE", status_code=200, message="ok")
    assert await client.send(_event(client)) is False
    await client.aclose()
    assert session.posted == []


async def test_emit_runs_in_background_and_aclose_waits():
    session = FakeSession()
    client = EventLogClient("http://logs.local/api/logs", session=session)
    client.emit(method="GET", url="/", operation="LIST", resource="DEVICE", status_code=200, message="ok")
    await client.aclose()
    assert len(session.posted) == 1
    assert session.closed


async def test_unreachable_log_service_never_changes_the_outcome(store, tmp_path):
    session = FakeSession(error=requests.ConnectionError("refused"))
    events = EventLogClient("http://logs.local/api/logs", timeout=0.2, session=session)
    service = VehicleService(store, events, Settings(database_url=str(tmp_path / "fleet.db")))

    created = await service.create({"brand_name": "Tata", "model_name": "Ace", "vehicle_type": "truck"})
    assert created["status"] == "active"
    with pytest.raises(NotFound):
        await service.delete("ffffffffffffffffffffffff")
    await events.aclose()
