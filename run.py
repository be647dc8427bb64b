"""Unified entry point for the Fleet Registry API.

Two commands are available:

``serve`` (default)
    Run the API with Uvicorn.  Host and port are read from ``API_HOST``
    and ``API_PORT`` (defaults ``0.0.0.0`` and ``8000``).

``export``
    Write every device or vehicle record to a file without going
    through HTTP, e.g. for scheduled reports.

Usage:
    python run.py
    python run.py export devices --format xlsx --output devices.xlsx
"""
import argparse
import asyncio
import logging
import os

from uvicorn import Config, Server

from fleet_registry_api.app.core.config import Settings
from fleet_registry_api.app.core.db import RecordStore, init_db, resolve_database_path
from fleet_registry_api.app.core.logging_config import setup_logging
from fleet_registry_api.app.services.device_service import DeviceService
from fleet_registry_api.app.services.event_log_service import EventLogClient
from fleet_registry_api.app.services.export_service import ExportFormat, FileSink
from fleet_registry_api.app.services.registration_service import RegistrationService
from fleet_registry_api.app.services.vehicle_service import VehicleService

EXPORTABLE = {"devices": DeviceService, "registrations": RegistrationService, "vehicles": VehicleService}


async def serve() -> None:
    """Start the API using Uvicorn."""
    from fleet_registry_api.app.main import app

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    config = Config(app=app, host=host, port=port, reload=False, log_level="info")
    server = Server(config)
    await server.serve()


async def export(entity: str, export_format: ExportFormat, output: str) -> None:
    """Export all records of ``entity`` into ``output``."""
    settings = Settings()
    setup_logging(settings)
    db_path = resolve_database_path(settings.database_url)
    init_db(db_path)
    events = EventLogClient(settings.logs_service_url, timeout=settings.logs_service_timeout)
    service = EXPORTABLE[entity](RecordStore(db_path), events, settings)
    try:
        rows = await service.export_rows()
        encoder = service.encoder(export_format)
        result = await asyncio.to_thread(encoder.encode, rows, FileSink(output))
        if result.completed:
            logging.info("Wrote %d %s to %s", result.rows, entity, output)
        else:
            logging.error("Export of %s stopped after %d rows", entity, result.rows)
    finally:
        await events.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Fleet Registry API")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("serve", help="run the HTTP API")
    export_parser = commands.add_parser("export", help="export records to a file")
    export_parser.add_argument("entity", choices=sorted(EXPORTABLE))
    export_parser.add_argument("--format", dest="export_format", type=ExportFormat, choices=list(ExportFormat), required=True)
    export_parser.add_argument("--output", required=True)
    args = parser.parse_args()

    if args.command == "export":
        asyncio.run(export(args.entity, args.export_format, args.output))
    else:
        asyncio.run(serve())


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
