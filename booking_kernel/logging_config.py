"""
Structured JSON logging for the booking kernel.

One JSON object per line.  Services log snake_case event names and put the
facts in ``extra``.  Identifiers that belong to the whole call (the acting
staff member, the musician and contract being worked on, the saga step in
flight) ride along through LogContext, so nested services never pass them
down by hand.

Usage::

    logger = get_logger("services.monthly_contract")
    with LogContext.bind(musician_id=cm.musician_id, contract_id=cm.contract_id):
        logger.info("contract_sent", extra={"contract_musician_id": str(cm.id)})
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "musician_id",
    "contract_id",
    "saga",
    "saga_step",
)


class LogContext:
    """Call-scoped log fields, safe across threads and tasks."""

    _vars: dict[str, ContextVar[str | None]] = {
        name: ContextVar(f"booking_log_{name}", default=None) for name in CONTEXT_FIELDS
    }

    @classmethod
    def _var(cls, name: str) -> ContextVar[str | None]:
        try:
            return cls._vars[name]
        except KeyError:
            raise TypeError(f"Unknown log context field: {name!r}") from None

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields for the rest of the current context.  None is skipped."""
        for name, value in fields.items():
            if value is not None:
                cls._var(name).set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        values = {name: var.get() for name, var in cls._vars.items()}
        return {name: value for name, value in values.items() if value is not None}

    @classmethod
    def clear(cls) -> None:
        for var in cls._vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Set fields for the ``with`` block, restoring the outer values on exit."""
        tokens = [
            (cls._var(name), cls._var(name).set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, (set, frozenset)):
        return list(value)
    return repr(value)


class StructuredFormatter(logging.Formatter):
    """
    Render a record as a single JSON line.

    Key order: ts, level, logger, message, then LogContext fields, then
    ``extra`` keys.  A context field wins over an ``extra`` key of the same
    name.  Kernel exceptions contribute ``exc_code``, ``exc_http_status`` and
    their structured attributes as ``exc_<name>``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
            fields["exc_http_status"] = getattr(exc, "http_status", None)
            for name, value in vars(exc).items():
                if not name.startswith("_") and name not in ("args", "code"):
                    fields[f"exc_{name}"] = value
        return fields


_ROOT = "booking_kernel"


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``booking_kernel`` namespace, e.g. ``services.saga``."""
    return logging.getLogger(f"{_ROOT}.{name}")


_lock = threading.Lock()
_installed: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """
    Install the JSON handler on the ``booking_kernel`` logger.

    Only the first call installs anything; later calls return the handler
    already in place.  ``level`` accepts a name such as ``"DEBUG"``, which is
    how ``BookingConfig.log_level`` carries it.
    """
    global _installed
    with _lock:
        if _installed is not None:
            return _installed
        installed = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        installed.setFormatter(StructuredFormatter())
        root = logging.getLogger(_ROOT)
        root.setLevel(level.upper() if isinstance(level, str) else level)
        root.propagate = False
        root.addHandler(installed)
        _installed = installed
        return installed


def reset_logging() -> None:
    """Remove the handler installed by configure_logging().  For tests."""
    global _installed
    with _lock:
        root = logging.getLogger(_ROOT)
        if _installed is not None:
            root.removeHandler(_installed)
            _installed = None
        root.setLevel(logging.NOTSET)
        root.propagate = True
