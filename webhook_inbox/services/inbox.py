"""Inbox service: turns raw webhook requests into stored events and back."""
import re
import time
from typing import Any, Dict, Iterable
import orjson
import structlog
from ..config import Settings
from ..event_models import (
    DEFAULT_CONTENT_TYPE,
    DETAIL_PREVIEW_CHARS,
    Event,
    EventFilter,
    EventPage,
    SourceStats,
    cutoff_for_days,
    normalize_headers,
)
from ..metrics import Metrics
from ..stores.base import EventStore
from ..stores.memory import InMemoryEventStore
from ..stores.redis_store import RedisEventStore
from ..stores.sqlite import SqliteEventStore

log = structlog.get_logger()

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
DEFAULT_PURGE_DAYS = 7

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_int(value: Any) -> int | None:
    """
    Read the leading integer of a loosely-typed parameter.

    "12abc" gives 12; "abc", "" and None give None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def clamp_limit(value: Any) -> int:
    limit = parse_int(value)
    if not limit:
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_LIMIT))


def clamp_offset(value: Any) -> int:
    offset = parse_int(value)
    if offset is None:
        return 0
    return max(0, offset)


def clamp_days(value: Any) -> int:
    days = parse_int(value)
    if days is None:
        days = DEFAULT_PURGE_DAYS
    return max(1, days)


def render_preview(event: Event) -> Dict[str, Any]:
    """Detail view of an event: parsed JSON when possible, else truncated text."""
    if "application/json" in (event.content_type or ""):
        try:
            parsed = orjson.loads(event.body)
        except orjson.JSONDecodeError:
            pass
        else:
            return {"id": event.id, "content_type": event.content_type, "parsed": parsed}
    return {
        "id": event.id,
        "content_type": event.content_type,
        "text": event.body[:DETAIL_PREVIEW_CHARS],
    }


class Inbox:
    """
    Webhook inbox service that delegates persistence to an event store.

    Owns request normalization, parameter clamping and preview rendering;
    the store only ever sees fully-formed events and clamped filters.
    """

    def __init__(self, store: EventStore, metrics: Metrics | None = None):
        self.store = store
        self.metrics = metrics

    async def ingest(self, body: bytes, source: str | None, raw_headers: Iterable[tuple]) -> Event:
        """Capture one inbound request as an event."""
        start_time = time.time()
        headers = normalize_headers(list(raw_headers))
        content_type = headers.get("content-type") or DEFAULT_CONTENT_TYPE
        if isinstance(content_type, list):
            content_type = content_type[0]

        event = Event(
            source=source or "",
            content_type=content_type,
            headers=headers,
            body=body.decode("utf-8", errors="replace"),
        )
        await self.store.insert(event)

        if self.metrics:
            self.metrics.record_event_ingested(event.source, len(body))
        log.info(
            "event.ingested",
            id=event.id,
            source=event.source,
            content_type=event.content_type,
            size_bytes=len(body),
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return event

    async def list_events(self, source=None, q=None, limit=None, offset=None) -> EventPage:
        flt = EventFilter(
            source=source or "",
            query=q or "",
            limit=clamp_limit(limit),
            offset=clamp_offset(offset),
        )
        return await self.store.list_events(flt)

    async def get(self, event_id: str) -> Event:
        return await self.store.get(event_id)

    async def preview(self, event_id: str) -> Dict[str, Any]:
        event = await self.store.get(event_id)
        return render_preview(event)

    async def stats(self) -> SourceStats:
        total, by_source = await self.store.count_by_source()
        return SourceStats(total_events=total, by_source=by_source)

    async def purge(self, days: Any = None) -> Dict[str, Any]:
        """Delete events older than the given number of days (minimum 1)."""
        cutoff = cutoff_for_days(clamp_days(days))
        deleted = await self.store.delete_before(cutoff)
        if self.metrics:
            self.metrics.record_events_purged(deleted)
        log.info("events.purged", deleted_events=deleted, cutoff=cutoff)
        return {"deleted_events": deleted, "cutoff": cutoff}

    async def close(self):
        await self.store.close()


def create_store(settings: Settings) -> EventStore:
    """
    Create the store named by STORE_BACKEND.

    Returns:
        EventStore instance for the configured backend
    """
    if settings.STORE_BACKEND == "redis":
        if not settings.REDIS_URL:
            log.warning(
                "store.fallback",
                requested="redis",
                actual="memory",
                reason="REDIS_URL not configured",
            )
            return InMemoryEventStore(path=settings.JSON_STORE_PATH)

        log.info("store.selected", type="redis", url=str(settings.REDIS_URL))
        return RedisEventStore(str(settings.REDIS_URL), key_prefix=settings.REDIS_KEY_PREFIX)
    if settings.STORE_BACKEND == "sqlite":
        log.info("store.selected", type="sqlite", path=settings.DB_PATH)
        return SqliteEventStore(settings.DB_PATH)

    log.info("store.selected", type="memory", path=settings.JSON_STORE_PATH)
    return InMemoryEventStore(path=settings.JSON_STORE_PATH)
