"""
Service layer for onboarded telematics devices.

Devices carry two unique identifiers (IMEI and serial number) and up
to four references: the owning account (required), a vehicle catalog
item, a vehicle registration and a driver.  Listing, searching, single
reads and exports all go through the same ``CrossReferenceResolver``
declaration below.
"""

import logging
import time
from typing import Any, Dict, List

from ..core.errors import FleetRegistryError
from ..core.filters import And, Eq, FilterBuilder
from ..core.ids import require_id
from .cross_reference import ReferenceSpec
from .export_service import (
    ExportColumn,
    ExportLayout,
    field_value,
    reference_value,
    timestamp_value,
)
from .pagination import NEWEST_FIRST
from .record_service import RecordService, View

logger = logging.getLogger(__name__)


DEVICE_REFERENCES = (
    ReferenceSpec(
        field="account_id",
        collection="accounts",
        alias="account",
        projection=("account_name",),
        search_fields=("account_name",),
    ),
    ReferenceSpec(
        field="vehicle_id",
        collection="vehicles",
        alias="vehicle",
        projection=("brand_name", "model_name", "vehicle_type"),
        search_fields=("brand_name", "model_name"),
    ),
    ReferenceSpec(
        field="registration_id",
        collection="vehicle_registrations",
        alias="registration",
        projection=("vehicle_number",),
        search_fields=("vehicle_number",),
    ),
    ReferenceSpec(
        field="driver_id",
        collection="drivers",
        alias="driver",
        projection=("name", "license_no", "contact_no"),
        search_fields=("name", "license_no", "contact_no"),
    ),
)

DEVICE_SEARCH_FIELDS = (
    "imei",
    "serial_no",
    "sim_no1",
    "sim_no2",
    "vehicle_description",
    "sim_no1_operator",
    "sim_no2_operator",
)


def _status_label(view: View) -> str:
    return "ACTIVE" if view.get("is_active") else "INACTIVE"


DEVICE_EXPORT = ExportLayout(
    title="Device Onboarding List",
    sheet_name="Device Onboarding",
    basename="device-onboarding",
    columns=(
        ExportColumn("Device IMEI", field_value("imei"), width=20, pdf_width=110),
        ExportColumn("Serial Number", field_value("serial_no"), width=18, pdf_width=90),
        ExportColumn("SIM 1", field_value("sim_no1"), width=22, pdf_width=80),
        ExportColumn("SIM 2", field_value("sim_no2"), width=22, pdf_width=80),
        ExportColumn("SIM 1 Operator", field_value("sim_no1_operator"), width=15),
        ExportColumn("SIM 2 Operator", field_value("sim_no2_operator"), width=15),
        ExportColumn("Vehicle Description", field_value("vehicle_description"), width=30),
        ExportColumn("Account Name", reference_value("account", "account_name"), width=25, pdf_width=100),
        ExportColumn("Vehicle Number", reference_value("registration", "vehicle_number"), width=18, pdf_width=90),
        ExportColumn("Driver Name", reference_value("driver", "name"), width=20),
        ExportColumn("Driver License", reference_value("driver", "license_no"), width=20),
        ExportColumn("Driver Contact", reference_value("driver", "contact_no"), width=18),
        ExportColumn("Status", _status_label, width=12, pdf_width=60, highlight=True),
        ExportColumn(
            "Created At",
            timestamp_value("created_at"),
            width=20,
            number_format="yyyy-mm-dd hh:mm:ss",
        ),
    ),
    highlights={"ACTIVE": "FFC6EFCE", "INACTIVE": "FFFFC7CE"},
)


class DeviceService(RecordService):
    """Business logic for device onboarding."""

    collection = "devices"
    label = "Device"
    resource = "DEVICE"
    url = "/api/v1/devices"
    unique_fields = ("imei", "serial_no")
    required_fields = (
        "imei",
        "serial_no",
        "sim_no1",
        "sim_no1_operator",
        "vehicle_description",
        "account_id",
        "is_active",
    )
    references = DEVICE_REFERENCES
    search_fields = DEVICE_SEARCH_FIELDS
    export_layout = DEVICE_EXPORT

    def build_filters(self) -> FilterBuilder:
        return FilterBuilder(
            self.search_fields,
            reference_fields=("account_id", "vehicle_id", "registration_id", "driver_id"),
            flag_field="is_active",
            substring_filters={"sim_operator": ("sim_no1_operator", "sim_no2_operator")},
        )

    async def set_active(self, device_id: str, active: bool) -> View:
        """Activate or deactivate a device.  The record is kept either way."""
        return await self.update(device_id, {"is_active": active})

    async def stats(self) -> Dict[str, int]:
        started = time.monotonic()
        counts = await self.store.aggregate_counts(self.collection, "is_active")
        # json_extract yields 1 and 0 for JSON booleans
        active = counts.get(1, 0)
        total = sum(counts.values())
        result = {
            "total_devices": total,
            "active_devices": active,
            "inactive_devices": total - active,
        }
        self._emit("GET", "STATS", 200, "Device statistics retrieved", started, path="/stats", metadata=result)
        return result

    async def devices_for(self, field: str, record_id: str) -> List[View]:
        """Return the active devices linked to one referenced record, newest first."""
        started = time.monotonic()
        try:
            key = require_id(record_id, field)
        except FleetRegistryError as exc:
            self._emit("GET", "LIST", exc.status_code, "Device lookup failed", started, error=exc)
            raise
        predicate = And((Eq(field, key), Eq("is_active", True)))
        records = await self.store.find_matching(self.collection, predicate, NEWEST_FIRST)
        views = await self.resolver.resolve(records)
        logger.info("Found %d active devices for %s=%s", len(views), field, key)
        self._emit(
            "GET",
            "LIST",
            200,
            f"Found {len(views)} devices",
            started,
            metadata={field: key, "count": len(views)},
        )
        return views

    def prepare(self, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        document = super().prepare(data, partial)
        if not partial:
            document.setdefault("is_active", True)
        return document
