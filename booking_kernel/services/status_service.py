"""
EntityStatusService -- centralized status records for contracts, musicians
and bookings.

One record per (entity_type, entity_id, event_date).  Metadata is always a
typed StatusMetadata variant on the way in and is parsed back into one on
the way out; raw dicts only exist in storage.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any
from uuid import UUID

from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.status_metadata import (
    StatusMetadata,
    metadata_to_dict,
    parse_status_metadata,
)
from booking_kernel.domain.types import EntityStatusRecord, EntityType
from booking_kernel.exceptions import ValidationError
from booking_kernel.logging_config import get_logger
from booking_kernel.storage.base import BookingStorage

logger = get_logger("services.status")


class EntityStatusService:
    def __init__(self, storage: BookingStorage, clock: Clock | None = None):
        self._storage = storage
        self._clock = clock or SystemClock()

    def get(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        event_date: date | None = None,
    ) -> EntityStatusRecord | None:
        return self._storage.find_one(
            EntityStatusRecord,
            entity_type=EntityType(entity_type),
            entity_id=entity_id,
            event_date=event_date,
        )

    def update_entity_status(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        primary_status: str,
        metadata: StatusMetadata | dict[str, Any] | None = None,
        custom_status: str | None = None,
        event_id: UUID | None = None,
        musician_id: UUID | None = None,
        event_date: date | None = None,
    ) -> EntityStatusRecord:
        """Upsert the status record for an entity (optionally per date).

        Raises:
            ValidationError: metadata is the wrong variant for the entity type
                or a raw dict fails to parse.
        """
        kind = EntityType(entity_type)
        if metadata is None or isinstance(metadata, dict):
            metadata = parse_status_metadata(kind, metadata)
        elif metadata.kind != kind:
            raise ValidationError(
                f"{type(metadata).__name__} cannot describe a {kind.value} entity",
                field="metadata",
            )

        details = metadata_to_dict(metadata)
        now = self._clock.now()
        existing = self.get(kind, entity_id, event_date)
        if existing is None:
            record = self._storage.add(
                EntityStatusRecord(
                    entity_type=kind,
                    entity_id=entity_id,
                    primary_status=primary_status,
                    updated_at=now,
                    custom_status=custom_status,
                    event_id=event_id,
                    musician_id=musician_id,
                    event_date=event_date,
                    details=details,
                )
            )
        else:
            record = self._storage.save(
                replace(
                    existing,
                    primary_status=primary_status,
                    updated_at=now,
                    custom_status=custom_status,
                    event_id=event_id if event_id is not None else existing.event_id,
                    musician_id=musician_id if musician_id is not None else existing.musician_id,
                    details=details,
                )
            )

        logger.debug(
            "entity_status_updated",
            extra={
                "entity_type": kind.value,
                "entity_id": str(entity_id),
                "primary_status": primary_status,
            },
        )
        return record

    def metadata_for(self, record: EntityStatusRecord) -> StatusMetadata:
        return parse_status_metadata(record.entity_type, record.details)

    def for_musician(self, musician_id: UUID) -> list[EntityStatusRecord]:
        records = self._storage.find(EntityStatusRecord, musician_id=musician_id)
        return sorted(records, key=lambda r: (r.event_date or date.min, r.updated_at))
