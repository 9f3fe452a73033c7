"""Storage interface and its in-memory and SQLAlchemy implementations."""

from booking_kernel.storage.base import UNIQUE_KEYS, BookingStorage
from booking_kernel.storage.memory import InMemoryStorage
from booking_kernel.storage.sqlalchemy_store import SqlAlchemyStorage

__all__ = [
    "UNIQUE_KEYS",
    "BookingStorage",
    "InMemoryStorage",
    "SqlAlchemyStorage",
]
