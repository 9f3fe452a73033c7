"""
Configuration schema (``booking_config.schema``).

Frozen dataclasses parsed from YAML by ``booking_config.loader``.  Every
field has a default so a partial YAML file overrides only what it names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite://"
    echo: bool = False


@dataclass(frozen=True)
class ContractConfig:
    """Token and contract-link settings."""

    token_bytes: int = 32
    link_expiry_days: int = 7
    company_signature: str = "Management"
    default_terms: str = (
        "The musician agrees to perform on the dates listed at the agreed fee. "
        "Cancellation by either party requires written notice."
    )


@dataclass(frozen=True)
class InvoiceConfig:
    hourly_threshold_hours: Decimal = Decimal("4")


@dataclass(frozen=True)
class SagaConfig:
    max_attempts: int = 3


@dataclass(frozen=True)
class EmailConfig:
    """When ``enabled`` is false every send is a logged mock send."""

    enabled: bool = False
    sender_email: str | None = None
    sender_name: str = "Musician Management"
    admin_email: str | None = None
    response_base_url: str = "http://localhost:5000/contracts/respond"
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    timeout_seconds: int = 10

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.sender_email) and bool(self.smtp_host)


@dataclass(frozen=True)
class BookingConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    contracts: ContractConfig = field(default_factory=ContractConfig)
    invoices: InvoiceConfig = field(default_factory=InvoiceConfig)
    saga: SagaConfig = field(default_factory=SagaConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    log_level: str = "INFO"
    checksum: str | None = None
