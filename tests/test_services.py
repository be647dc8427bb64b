"""Entity services used directly, without HTTP."""

import pytest

from fleet_registry_api.app.core.errors import InvalidReference
from fleet_registry_api.app.core.filters import FilterParams
from fleet_registry_api.app.services.export_service import ExportFormat


async def test_limit_is_capped_by_settings(vehicle_service, settings):
    settings.max_page_size = 3
    for n in range(5):
        await vehicle_service.create({"brand_name": f"B{n}", "model_name": "M", "vehicle_type": "car"})
    page = await vehicle_service.list(FilterParams(), limit=50)
    assert page.limit == 3
    assert len(page.items) == 3
    assert page.total == 5


async def test_default_limit(vehicle_service, settings):
    page = await vehicle_service.list(FilterParams())
    assert page.limit == settings.default_page_size


async def test_export_rows_are_resolved_newest_first(device_service, account_service, device_payload):
    account = await account_service.create({"account_name": "Acme", "level": 1})
    for n in range(3):
        await device_service.create(device_payload(n, account["id"]))
    rows = await device_service.export_rows()
    assert [r["imei"] for r in rows] == ["IMEI-002", "IMEI-001", "IMEI-000"]
    assert all(r["account"]["account_name"] == "Acme" for r in rows)


async def test_invalid_filter_reference_fails_before_export(device_service):
    with pytest.raises(InvalidReference):
        await device_service.open_export(ExportFormat.CSV, FilterParams(references={"account_id": "bad"}))


async def test_open_export_streams_csv(device_service, account_service, device_payload):
    account = await account_service.create({"account_name": "Acme", "level": 1})
    await device_service.create(device_payload(1, account["id"], driver_id="ffffffffffffffffffffffff"))
    encoder, stream = await device_service.open_export(ExportFormat.CSV)
    body = b"".join(stream).decode("utf-8").splitlines()
    assert encoder.extension == "csv"
    assert len(body) == 2
    assert body[1].startswith("IMEI-001,SN-001,")


async def test_create_requires_account_reference_format(device_service, device_payload):
    with pytest.raises(InvalidReference):
        await device_service.create(device_payload(1, "ABC"))


async def test_stats_on_empty_collection(device_service):
    assert await device_service.stats() == {"total_devices": 0, "active_devices": 0, "inactive_devices": 0}
