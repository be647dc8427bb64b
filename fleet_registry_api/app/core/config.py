"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields.  A single
instance is built by the process entry point (``create_app`` or
``run.py``) and passed to the components that need it; nothing else in
the package reads the environment.
"""

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = field(default_factory=lambda: os.getenv("PROJECT_NAME", "Fleet Registry API"))
    api_version: str = field(default_factory=lambda: os.getenv("API_VERSION", "1.0.0"))
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("LOG_FILE", ""))
    # Rotation of LOG_FILE: size of one file and number of old files kept.
    log_max_bytes: int = field(default_factory=lambda: int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024))))
    log_backup_count: int = field(default_factory=lambda: int(os.getenv("LOG_BACKUP_COUNT", "5")))

    # Path of the SQLite file holding the document collections.  A
    # relative path is resolved against the project root by ``core.db``.
    database_url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "fleet_registry.db"))

    # Remote log collaborator.  Leave ``LOGS_SERVICE_URL`` empty to
    # disable shipping; the timeout bounds every single post.
    logs_service_url: str = field(default_factory=lambda: os.getenv("LOGS_SERVICE_URL", ""))
    logs_service_timeout: float = field(
        default_factory=lambda: float(os.getenv("LOGS_SERVICE_TIMEOUT", "5"))
    )

    default_page_size: int = field(default_factory=lambda: int(os.getenv("DEFAULT_PAGE_SIZE", "10")))
    max_page_size: int = field(default_factory=lambda: int(os.getenv("MAX_PAGE_SIZE", "100")))

    # Text written in export cells whose value is absent.
    export_placeholder: str = field(default_factory=lambda: os.getenv("EXPORT_PLACEHOLDER", "N/A"))
