"""Spreadsheet encoder: styling, highlights and sheet settings, read back with openpyxl."""

import io
from datetime import datetime

import pytest
from openpyxl import load_workbook

from fleet_registry_api.app.core.errors import ExportFailed
from fleet_registry_api.app.services.device_service import DEVICE_EXPORT
from fleet_registry_api.app.services.export_service import BufferSink
from fleet_registry_api.app.services.vehicle_service import VEHICLE_EXPORT
from fleet_registry_api.app.services.xlsx_export import XlsxEncoder


def _device(n, active=True, **extra):
    view = {
        "imei": f"IMEI-{n:03d}",
        "serial_no": f"SN-{n:03d}",
        "sim_no1": "8991",
        "sim_no1_operator": "Airtel",
        "vehicle_description": "Truck",
        "is_active": active,
        "created_at": "2024-03-01T10:00:00.000000+00:00",
        "account": {"id": "a", "account_name": "Acme"},
        "registration": None,
        "driver": None,
    }
    view.update(extra)
    return view


def _load(rows, layout=DEVICE_EXPORT):
    sink = BufferSink()
    result = XlsxEncoder(layout).encode(rows, sink)
    workbook = load_workbook(io.BytesIO(sink.getvalue()))
    return result, workbook.active


def test_header_and_sheet_settings():
    result, sheet = _load([])
    assert result.completed and result.rows == 0
    assert sheet.title == "Device Onboarding"
    headers = [cell.value for cell in sheet[1]]
    assert headers == [column.header for column in DEVICE_EXPORT.columns]

    header = sheet["A1"]
    assert header.font.bold
    assert header.fill.fgColor.rgb == "FF4472C4"
    assert header.alignment.horizontal == "center"
    assert header.alignment.wrap_text
    assert header.border.top.style == "thin"

    assert sheet.freeze_panes == "A2"
    assert sheet.auto_filter.ref == "A1:N1"
    assert sheet.page_setup.orientation == "landscape"
    assert sheet.page_setup.fitToWidth == 1
    assert sheet.sheet_properties.pageSetUpPr.fitToPage
    assert sheet.column_dimensions["A"].width == 20


def test_rows_placeholders_and_highlights():
    result, sheet = _load([_device(1, True), _device(2, False, sim_no2="1234")])
    assert result.rows == 2
    assert sheet.max_row == 3
    headers = [cell.value for cell in sheet[1]]
    row2 = dict(zip(headers, sheet[2]))
    row3 = dict(zip(headers, sheet[3]))

    assert row2["Device IMEI"].value == "IMEI-001"
    assert row2["SIM 2"].value == "N/A"
    assert row3["SIM 2"].value == "1234"
    assert row2["Driver Name"].value == "N/A"
    assert row2["Vehicle Number"].value == "N/A"
    assert row2["Account Name"].value == "Acme"

    assert row2["Status"].value == "ACTIVE"
    assert row2["Status"].fill.fgColor.rgb == "FFC6EFCE"
    assert row3["Status"].value == "INACTIVE"
    assert row3["Status"].fill.fgColor.rgb == "FFFFC7CE"
    assert row2["Device IMEI"].border.left.style == "thin"

    created = row2["Created At"]
    assert abs(created.value - datetime(2024, 3, 1, 10, 0, 0)).total_seconds() < 1
    assert created.number_format == "yyyy-mm-dd hh:mm:ss"


def test_vehicle_layout_highlights():
    views = [
        {"brand_name": "Tata", "model_name": "Ace", "vehicle_type": "truck", "status": "active"},
        {"brand_name": "Bajaj", "model_name": "RE", "vehicle_type": "car", "status": "inactive"},
    ]
    _, sheet = _load(views, VEHICLE_EXPORT)
    assert sheet.title == "Vehicles"
    assert sheet["E2"].value == "Active"
    assert sheet["E2"].fill.fgColor.rgb == "FFC6EFCE"
    assert sheet["E3"].fill.fgColor.rgb == "FFFFC7CE"
    assert sheet["D2"].value == "N/A"


def test_only_the_status_column_is_highlighted():
    views = [{"brand_name": "Active", "model_name": "INACTIVE", "vehicle_type": "car", "status": "inactive"}]
    _, sheet = _load(views, VEHICLE_EXPORT)
    assert sheet["A2"].value == "Active"
    assert sheet["A2"].fill.fill_type is None
    assert sheet["E2"].value == "Inactive"
    assert sheet["E2"].fill.fgColor.rgb == "FFFFC7CE"

    _, sheet = _load([_device(1, False, vehicle_description="ACTIVE")])
    headers = [cell.value for cell in sheet[1]]
    row = dict(zip(headers, sheet[2]))
    assert row["Vehicle Description"].value == "ACTIVE"
    assert row["Vehicle Description"].fill.fill_type is None
    assert row["Status"].fill.fgColor.rgb == "FFFFC7CE"


def test_failure_while_building_raises_export_failed():
    def rows():
        yield _device(1)
        raise RuntimeError("lost connection")

    sink = BufferSink()
    with pytest.raises(ExportFailed) as excinfo:
        XlsxEncoder(DEVICE_EXPORT).encode(rows(), sink)
    assert excinfo.value.details == {"format": "XLSX", "rows_processed": 1}
    assert sink.aborted
    assert sink.bytes_written == 0
