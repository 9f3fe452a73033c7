"""
booking_config -- single public entrypoint for booking kernel configuration.

Responsibility:
    ``get_active_config()`` is the one way to obtain configuration at
    runtime.  It reads the YAML file named by ``BOOKING_CONFIG`` (or the
    packaged ``defaults.yaml``) and applies the ``BOOKING_DATABASE_URL``
    override.  Services receive the resulting ``BookingConfig`` (or one of
    its sections) through their constructors.

Failure modes:
    - ``FileNotFoundError`` -- BOOKING_CONFIG points at a missing file.
    - ``KeyError`` / ``ValueError`` -- schema violations (see loader).
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from booking_config.loader import load_config, parse_config
from booking_config.schema import (
    BookingConfig,
    ContractConfig,
    DatabaseConfig,
    EmailConfig,
    InvoiceConfig,
    SagaConfig,
)
from booking_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | None = None) -> BookingConfig:
    """Resolve, load and trace the active configuration."""
    if path is None:
        env_path = os.environ.get("BOOKING_CONFIG")
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    config = load_config(path)

    database_url = os.environ.get("BOOKING_DATABASE_URL")
    if database_url:
        config = replace(config, database=replace(config.database, url=database_url))

    logger.info(
        "config_loaded",
        extra={
            "config_path": str(path),
            "checksum": config.checksum,
            "email_enabled": config.email.is_configured,
            "saga_max_attempts": config.saga.max_attempts,
        },
    )
    return config


__all__ = [
    "BookingConfig",
    "ContractConfig",
    "DatabaseConfig",
    "EmailConfig",
    "InvoiceConfig",
    "SagaConfig",
    "get_active_config",
    "load_config",
    "parse_config",
]
