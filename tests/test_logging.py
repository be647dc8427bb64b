"""Local logging setup from Settings."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from fleet_registry_api.app.core.config import Settings
from fleet_registry_api.app.core.logging_config import setup_logging


@pytest.fixture
def root_logger():
    """The root logger, stripped of handlers inside the test.

    pytest attaches its capture handlers to the root logger for every
    test phase, so tests clear them with ``strip`` right before calling
    ``setup_logging``.  Handlers installed by the test are removed again
    afterwards.
    """
    root = logging.getLogger()
    level = root.level
    installed = []

    def strip():
        root.handlers = []
        return installed

    yield root, strip
    for handler in installed:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)


def test_console_and_rotating_file(root_logger, tmp_path):
    root, strip = root_logger
    log_file = tmp_path / "logs" / "api.log"
    settings = Settings(log_level="debug", log_file=str(log_file), log_max_bytes=2048, log_backup_count=2)

    installed = strip()
    setup_logging(settings)
    installed.extend(root.handlers)

    assert root.level == logging.DEBUG
    assert [type(h) for h in root.handlers] == [logging.StreamHandler, RotatingFileHandler]
    rotating = root.handlers[1]
    assert rotating.maxBytes == 2048
    assert rotating.backupCount == 2
    assert logging.getLogger("urllib3").level == logging.WARNING

    logging.getLogger("fleet_registry_api.test").info("device exported")
    rotating.flush()
    assert "[INFO] fleet_registry_api.test: device exported" in log_file.read_text(encoding="utf-8")


def test_existing_handlers_are_kept(root_logger):
    root, strip = root_logger
    existing = logging.NullHandler()
    installed = strip()
    root.addHandler(existing)
    setup_logging(Settings(log_level="warning", log_file=""))
    installed.extend(root.handlers)

    assert root.handlers == [existing]
    assert root.level == logging.WARNING


def test_repeated_setup_adds_nothing(root_logger):
    root, strip = root_logger
    installed = strip()
    setup_logging(Settings(log_file=""))
    setup_logging(Settings(log_file=""))
    installed.extend(root.handlers)
    assert len(root.handlers) == 1
