"""Database layer - engine, base classes and column types."""

from booking_kernel.db.base import (
    UUID,
    Base,
    DtoMappedMixin,
    TrackedBase,
    UTCDateTime,
    UUIDString,
    enum_type,
)
from booking_kernel.db.engine import (
    create_engine_for_url,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "UUID",
    "Base",
    "DtoMappedMixin",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "enum_type",
    "create_engine_for_url",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
