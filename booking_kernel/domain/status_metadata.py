"""
Typed metadata carried on centralized entity status records.

Each entity kind has its own frozen variant.  Raw dicts coming from storage
or from callers are parsed at the boundary with ``parse_status_metadata``;
nothing downstream reads ad hoc keys.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Union
from uuid import UUID

from booking_kernel.domain.types import EntityType
from booking_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class ContractStatusMetadata:
    """Signature evidence for a contract status change."""

    signed_at: datetime | None = None
    signed_by: str | None = None
    signature_value: str | None = None
    signature_type: str = "digital"
    ip_address: str | None = None
    booking_id: UUID | None = None
    comments: str | None = None

    kind = EntityType.CONTRACT


@dataclass(frozen=True)
class MusicianStatusMetadata:
    contract_id: UUID | None = None
    event_name: str | None = None
    contract_amount: Decimal | None = None

    kind = EntityType.MUSICIAN


@dataclass(frozen=True)
class BookingStatusMetadata:
    contract_id: UUID | None = None
    payment_status: str | None = None

    kind = EntityType.BOOKING


StatusMetadata = Union[ContractStatusMetadata, MusicianStatusMetadata, BookingStatusMetadata]

_VARIANTS: dict[EntityType, type] = {
    EntityType.CONTRACT: ContractStatusMetadata,
    EntityType.MUSICIAN: MusicianStatusMetadata,
    EntityType.BOOKING: BookingStatusMetadata,
}

_UUID_FIELDS = {"booking_id", "contract_id"}
_DATETIME_FIELDS = {"signed_at"}
_DECIMAL_FIELDS = {"contract_amount"}


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    try:
        if name in _UUID_FIELDS and not isinstance(value, UUID):
            return UUID(str(value))
        if name in _DATETIME_FIELDS and not isinstance(value, datetime):
            return datetime.fromisoformat(str(value))
        if name in _DECIMAL_FIELDS and not isinstance(value, Decimal):
            return Decimal(str(value))
    except (ValueError, InvalidOperation) as exc:
        raise ValidationError(f"Invalid value for {name}: {value!r}", field=name) from exc
    return value


def parse_status_metadata(entity_type: EntityType | str, raw: dict[str, Any] | None) -> StatusMetadata:
    """Validate a raw dict into the variant for ``entity_type``.

    Raises:
        ValidationError: unknown entity type, unknown keys, or bad values.
    """
    try:
        kind = EntityType(entity_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown entity type: {entity_type!r}", field="entity_type") from exc

    variant = _VARIANTS[kind]
    allowed = {f.name for f in fields(variant)}
    data = dict(raw or {})
    unknown = set(data) - allowed
    if unknown:
        raise ValidationError(
            f"Unknown metadata keys for {kind.value}: {sorted(unknown)}",
            field="metadata",
        )
    return variant(**{k: _coerce(k, v) for k, v in data.items()})


def metadata_to_dict(metadata: StatusMetadata) -> dict[str, Any]:
    """JSON-safe dict for persistence."""
    out: dict[str, Any] = {}
    for key, value in asdict(metadata).items():
        if value is None:
            continue
        if isinstance(value, (UUID, Decimal)):
            out[key] = str(value)
        elif isinstance(value, datetime):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out
