"""
Configuration Loader (``booking_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into the typed ``booking_config.schema``
dataclasses.  Runtime callers go through ``booking_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``KeyError``.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from booking_config.schema import (
    BookingConfig,
    ContractConfig,
    DatabaseConfig,
    EmailConfig,
    InvoiceConfig,
    SagaConfig,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseConfig,
    "contracts": ContractConfig,
    "invoices": InvoiceConfig,
    "saga": SagaConfig,
    "email": EmailConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed YAML, for change detection in logs."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _parse_section(section: str, cls: type, data: dict[str, Any] | None) -> Any:
    data = data or {}
    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise KeyError(f"Unknown keys in '{section}': {sorted(unknown)}")
    values: dict[str, Any] = {}
    for key, raw in data.items():
        default = known[key].default
        if isinstance(default, Decimal) and raw is not None:
            values[key] = Decimal(str(raw))
        else:
            values[key] = raw
    return cls(**values)


def parse_config(data: dict[str, Any]) -> BookingConfig:
    """
    Parse a ``BookingConfig`` from a dict.

    Raises:
        KeyError: unknown top-level section or key.
        ValueError: saga.max_attempts < 1, contracts.token_bytes < 16,
            or a negative hourly threshold.
    """
    unknown = set(data) - set(_SECTIONS) - {"log_level"}
    if unknown:
        raise KeyError(f"Unknown configuration sections: {sorted(unknown)}")

    sections = {
        name: _parse_section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()
    }
    config = BookingConfig(
        **sections,
        log_level=str(data.get("log_level", "INFO")).upper(),
        checksum=compute_checksum(data),
    )

    if config.saga.max_attempts < 1:
        raise ValueError("saga.max_attempts must be at least 1")
    if config.contracts.token_bytes < 16:
        raise ValueError("contracts.token_bytes must be at least 16")
    if config.invoices.hourly_threshold_hours < 0:
        raise ValueError("invoices.hourly_threshold_hours must not be negative")
    return config


def load_config(path: Path) -> BookingConfig:
    """Load and parse one YAML configuration file."""
    return parse_config(load_yaml_file(path))
