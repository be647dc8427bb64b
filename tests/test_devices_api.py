"""Device routes end to end, including the dangling-driver export scenario."""

import csv
import io

import pytest
from openpyxl import load_workbook

MISSING = "ffffffffffffffffffffffff"


async def _create(client, path, body):
    res = await client.post(path, json=body)
    assert res.status_code == 201, res.text
    return res.json()


@pytest.fixture
async def linked(client):
    """An account, a catalog vehicle, a registration and a driver."""
    account = await _create(client, "/api/v1/accounts/", {"account_name": "Acme Logistics"})
    vehicle = await _create(
        client, "/api/v1/vehicles/", {"brand_name": "Tata", "model_name": "Ace", "vehicle_type": "truck"}
    )
    driver = await _create(
        client,
        "/api/v1/drivers/",
        {"name": "Ravi Kumar", "contact_no": "98765", "email": "ravi@example.com", "license_no": "DL-77"},
    )
    registration = await _create(
        client,
        "/api/v1/registrations/",
        {
            "vehicle_number": "MH12AB1234",
            "chassis_number": "CH-1",
            "engine_number": "EN-1",
            "vehicle_id": vehicle["id"],
            "driver_id": driver["id"],
        },
    )
    return {"account": account, "vehicle": vehicle, "registration": registration, "driver": driver}


async def test_dangling_driver_resolves_to_null_and_exports_placeholder(client, linked, device_payload):
    body = device_payload(
        1,
        linked["account"]["id"],
        vehicle_id=linked["vehicle"]["id"],
        driver_id=linked["driver"]["id"],
    )
    device = await _create(client, "/api/v1/devices/", body)
    assert device["driver"]["name"] == "Ravi Kumar"

    res = await client.delete(f"/api/v1/drivers/{linked['driver']['id']}")
    assert res.status_code == 200

    res = await client.get("/api/v1/devices/")
    assert res.status_code == 200
    page = res.json()
    assert page["total"] == 1
    listed = page["data"][0]
    assert listed["account"]["account_name"] == "Acme Logistics"
    assert listed["vehicle"]["brand_name"] == "Tata"
    assert listed["driver_id"] == linked["driver"]["id"]
    assert listed["driver"] is None

    res = await client.get("/api/v1/devices/export", params={"format": "xlsx"})
    assert res.status_code == 200
    assert res.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert 'filename="device-onboarding_' in res.headers["content-disposition"]
    sheet = load_workbook(io.BytesIO(res.content)).active
    assert sheet.max_row == 2
    cells = {header.value: cell.value for header, cell in zip(sheet[1], sheet[2])}
    assert cells["Device IMEI"] == "IMEI-001"
    assert cells["Account Name"] == "Acme Logistics"
    assert cells["Driver Name"] == cells["Driver License"] == cells["Driver Contact"] == "N/A"


async def test_duplicate_imei_then_serial(client, linked, device_payload):
    account_id = linked["account"]["id"]
    await _create(client, "/api/v1/devices/", device_payload(1, account_id))

    res = await client.post("/api/v1/devices/", json=device_payload(2, account_id, imei="IMEI-001"))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "duplicate_key"

    b = await _create(client, "/api/v1/devices/", device_payload(2, account_id))
    res = await client.patch(f"/api/v1/devices/{b['id']}", json={"serial_no": "SN-001"})
    assert res.status_code == 409
    res = await client.get(f"/api/v1/devices/{b['id']}")
    assert res.json()["serial_no"] == "SN-002"


async def test_invalid_and_missing_ids(client, linked, device_payload):
    res = await client.post("/api/v1/devices/", json=device_payload(1, "not-an-id"))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "invalid_reference"

    res = await client.get("/api/v1/devices/", params={"driver_id": "nope"})
    assert res.status_code == 400

    res = await client.get("/api/v1/devices/xyz")
    assert res.status_code == 400

    res = await client.get(f"/api/v1/devices/{MISSING}")
    assert res.status_code == 404
    assert res.json() == {"error": {"code": "not_found", "message": "Device not found"}}


async def test_list_filters_and_pagination(client, linked, device_payload):
    account_id = linked["account"]["id"]
    for n in range(1, 6):
        await _create(
            client,
            "/api/v1/devices/",
            device_payload(n, account_id, sim_no2_operator="Vodafone" if n == 5 else None, is_active=n != 3),
        )

    res = await client.get("/api/v1/devices/", params={"limit": 2, "page": 1})
    page = res.json()
    assert page["total"] == 5
    assert page["total_pages"] == 3
    assert [d["imei"] for d in page["data"]] == ["IMEI-005", "IMEI-004"]

    res = await client.get("/api/v1/devices/", params={"is_active": "false"})
    assert [d["imei"] for d in res.json()["data"]] == ["IMEI-003"]

    res = await client.get("/api/v1/devices/", params={"sim_operator": "vodaf"})
    assert [d["imei"] for d in res.json()["data"]] == ["IMEI-005"]

    res = await client.get("/api/v1/devices/", params={"search": "sn-00", "account_id": account_id, "limit": 0})
    assert res.json()["data"] == []
    assert res.json()["total"] == 5


async def test_search_matches_referenced_fields(client, linked, device_payload):
    account_id = linked["account"]["id"]
    await _create(
        client,
        "/api/v1/devices/",
        device_payload(
            1, account_id, registration_id=linked["registration"]["id"], driver_id=linked["driver"]["id"]
        ),
    )
    await _create(client, "/api/v1/devices/", device_payload(2, account_id))

    res = await client.get("/api/v1/devices/search", params={"search": "ravi"})
    assert [d["imei"] for d in res.json()["data"]] == ["IMEI-001"]

    res = await client.get("/api/v1/devices/search", params={"search": "mh12"})
    assert [d["imei"] for d in res.json()["data"]] == ["IMEI-001"]

    # The plain list only looks at device fields.
    res = await client.get("/api/v1/devices/", params={"search": "ravi"})
    assert res.json()["total"] == 0


async def test_activate_deactivate_stats_and_lookups(client, linked, device_payload):
    account_id = linked["account"]["id"]
    registration_id = linked["registration"]["id"]
    a = await _create(client, "/api/v1/devices/", device_payload(1, account_id, registration_id=registration_id))
    await _create(client, "/api/v1/devices/", device_payload(2, account_id))

    res = await client.patch(f"/api/v1/devices/{a['id']}/deactivate")
    assert res.json()["is_active"] is False
    res = await client.get("/api/v1/devices/stats")
    assert res.json() == {"total_devices": 2, "active_devices": 1, "inactive_devices": 1}

    res = await client.get(f"/api/v1/devices/registration/{registration_id}")
    assert res.json() == []
    res = await client.patch(f"/api/v1/devices/{a['id']}/activate")
    assert res.json()["is_active"] is True
    res = await client.get(f"/api/v1/devices/registration/{registration_id}")
    assert [d["imei"] for d in res.json()] == ["IMEI-001"]
    assert res.json()[0]["registration"]["vehicle_number"] == "MH12AB1234"

    res = await client.get(f"/api/v1/devices/account/{account_id}")
    assert [d["imei"] for d in res.json()] == ["IMEI-002", "IMEI-001"]


async def test_partial_update_removes_optional_field(client, linked, device_payload):
    account_id = linked["account"]["id"]
    device = await _create(
        client,
        "/api/v1/devices/",
        device_payload(1, account_id, sim_no2="123", driver_id=linked["driver"]["id"]),
    )
    res = await client.patch(
        f"/api/v1/devices/{device['id']}",
        json={"sim_no2": None, "driver_id": None, "account_id": None, "vehicle_description": "Moved"},
    )
    assert res.status_code == 200
    updated = res.json()
    assert updated["sim_no2"] is None
    assert updated["driver_id"] is None
    assert updated["driver"] is None
    assert updated["account_id"] == account_id
    assert updated["vehicle_description"] == "Moved"
    assert updated["updated_at"] >= device["updated_at"]


async def test_export_csv_and_pdf(client, linked, device_payload):
    await _create(client, "/api/v1/devices/", device_payload(1, linked["account"]["id"]))

    res = await client.get("/api/v1/devices/export", params={"format": "csv"})
    assert res.status_code == 200
    rows = list(csv.reader(io.StringIO(res.text)))
    assert len(rows) == 2
    assert rows[0][0] == "Device IMEI"
    assert rows[1][0] == "IMEI-001"

    res = await client.get("/api/v1/devices/export", params={"format": "pdf"})
    assert res.status_code == 200
    assert res.content.startswith(b"%PDF")


async def test_unknown_export_format_is_rejected(client):
    res = await client.get("/api/v1/devices/export", params={"format": "docx"})
    assert res.status_code == 422


async def test_delete_device(client, linked, device_payload):
    device = await _create(client, "/api/v1/devices/", device_payload(1, linked["account"]["id"]))
    res = await client.delete(f"/api/v1/devices/{device['id']}")
    assert res.json() == {"message": "Device deleted successfully"}
    res = await client.delete(f"/api/v1/devices/{device['id']}")
    assert res.status_code == 404
