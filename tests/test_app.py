"""Application factory and lifecycle."""

import sqlite3

import pytest

from fleet_registry_api.app.core.config import Settings
from fleet_registry_api.app.main import create_app


async def test_lifespan_migrates_a_fresh_database(tmp_path):
    settings = Settings(database_url=str(tmp_path / "fresh.db"), logs_service_url="")
    app = create_app(settings)
    with pytest.raises(sqlite3.OperationalError):
        await app.state.store.count_matching("devices")

    async with app.router.lifespan_context(app):
        assert await app.state.store.count_matching("devices") == 0
        assert await app.state.store.count_matching("vehicle_registrations") == 0
