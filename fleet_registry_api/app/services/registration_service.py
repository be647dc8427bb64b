"""
Service layer for vehicle registrations.

A registration carries three unique numbers (plate, chassis, engine)
and two references that must exist when written: the catalog item it
is an instance of and its driver.  List, search, single reads and
exports resolve both references through the shared resolver, and free
text search also matches the catalog brand/model and the driver's
name and licence.
"""

from ..core.filters import FilterBuilder
from .cross_reference import ReferenceSpec
from .export_service import (
    ExportColumn,
    ExportLayout,
    field_value,
    reference_value,
    timestamp_value,
)
from .record_service import RecordService, View

REGISTRATION_REFERENCES = (
    ReferenceSpec(
        field="vehicle_id",
        collection="vehicles",
        alias="vehicle",
        projection=("brand_name", "model_name", "vehicle_type"),
        search_fields=("brand_name", "model_name"),
    ),
    ReferenceSpec(
        field="driver_id",
        collection="drivers",
        alias="driver",
        projection=("name", "license_no", "contact_no"),
        search_fields=("name", "license_no"),
    ),
)


def _status_label(view: View) -> str:
    # Registrations without a status count as active.
    status = view.get("status") or "active"
    return str(status).capitalize()


REGISTRATION_EXPORT = ExportLayout(
    title="Vehicle Registrations",
    sheet_name="Vehicle Registrations",
    basename="vehicle-registrations",
    columns=(
        ExportColumn("Vehicle Number", field_value("vehicle_number"), width=15, pdf_width=80),
        ExportColumn("Chassis Number", field_value("chassis_number"), width=20, pdf_width=100),
        ExportColumn("Engine Number", field_value("engine_number"), width=20, pdf_width=100),
        ExportColumn("Vehicle Brand", reference_value("vehicle", "brand_name"), width=15, pdf_width=70),
        ExportColumn("Vehicle Model", reference_value("vehicle", "model_name"), width=15, pdf_width=70),
        ExportColumn("Driver Name", reference_value("driver", "name"), width=20, pdf_width=100),
        ExportColumn("Driver License", reference_value("driver", "license_no"), width=15),
        ExportColumn("Status", _status_label, width=10, pdf_width=70, highlight=True),
        ExportColumn("Created At", timestamp_value("created_at"), width=20, number_format="yyyy-mm-dd hh:mm:ss"),
        ExportColumn("Updated At", timestamp_value("updated_at"), width=20, number_format="yyyy-mm-dd hh:mm:ss"),
    ),
    highlights={"Active": "FFC6EFCE", "Inactive": "FFFFC7CE"},
)


class RegistrationService(RecordService):
    collection = "vehicle_registrations"
    label = "Vehicle registration"
    resource = "VEHICLE_REGISTRATION"
    url = "/api/v1/registrations"
    unique_fields = ("vehicle_number", "chassis_number", "engine_number")
    required_fields = ("vehicle_number", "chassis_number", "engine_number", "vehicle_id", "driver_id")
    references = REGISTRATION_REFERENCES
    verified_references = ("vehicle_id", "driver_id")
    search_fields = ("vehicle_number", "chassis_number", "engine_number")
    export_layout = REGISTRATION_EXPORT

    def build_filters(self) -> FilterBuilder:
        return FilterBuilder(
            self.search_fields,
            reference_fields=("vehicle_id", "driver_id"),
            exact_fields=("status",),
        )
