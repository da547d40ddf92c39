"""Event store backends."""
from .base import EventStore
from .memory import InMemoryEventStore
from .sqlite import SqliteEventStore
from .redis_store import RedisEventStore

__all__ = [
    "EventStore",
    "InMemoryEventStore",
    "SqliteEventStore",
    "RedisEventStore",
]
