"""
Service layer for the vehicle catalog.

Catalog items have no reference fields, so result views are the stored
records themselves.  Status is a free string; ``activate`` and
``deactivate`` set it to ``active`` and ``inactive``.
"""

from typing import Any, Dict

from ..core.filters import FilterBuilder
from .export_service import ExportColumn, ExportLayout, field_value, timestamp_value
from .record_service import RecordService, View


def _status_label(view: View) -> str:
    return "Active" if view.get("status") == "active" else "Inactive"


VEHICLE_EXPORT = ExportLayout(
    title="Vehicle List",
    sheet_name="Vehicles",
    basename="vehicles",
    columns=(
        ExportColumn("Brand Name", field_value("brand_name"), width=20, pdf_width=120),
        ExportColumn("Model Name", field_value("model_name"), width=20, pdf_width=120),
        ExportColumn("Vehicle Type", field_value("vehicle_type"), width=15, pdf_width=100),
        ExportColumn("Icon", field_value("icon"), width=25, pdf_width=120),
        ExportColumn("Status", _status_label, width=12, pdf_width=80, highlight=True),
        ExportColumn("Created At", timestamp_value("created_at"), width=20, number_format="yyyy-mm-dd hh:mm:ss"),
        ExportColumn("Updated At", timestamp_value("updated_at"), width=20, number_format="yyyy-mm-dd hh:mm:ss"),
    ),
    highlights={"Active": "FFC6EFCE", "Inactive": "FFFFC7CE"},
)


class VehicleService(RecordService):
    collection = "vehicles"
    label = "Vehicle"
    resource = "VEHICLE"
    url = "/api/v1/vehicles"
    required_fields = ("brand_name", "model_name", "vehicle_type", "status")
    search_fields = ("brand_name", "model_name", "vehicle_type", "icon")
    export_layout = VEHICLE_EXPORT

    def build_filters(self) -> FilterBuilder:
        return FilterBuilder(self.search_fields, exact_fields=("vehicle_type", "status"))

    def prepare(self, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        document = super().prepare(data, partial)
        if not partial:
            document.setdefault("status", "active")
        return document

    async def activate(self, vehicle_id: str) -> View:
        return await self.update(vehicle_id, {"status": "active"})

    async def deactivate(self, vehicle_id: str) -> View:
        return await self.update(vehicle_id, {"status": "inactive"})
