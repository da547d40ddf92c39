"""In-memory event store, optionally mirrored to a flat JSON file."""
import asyncio
import os
from collections import Counter
from typing import List, Tuple
import orjson
import structlog
from .base import EventStore
from ..errors import DuplicateEventId, EventNotFound, StorageFailure
from ..event_models import Event, EventFilter, EventPage, SourceCount, matches

log = structlog.get_logger()


class InMemoryEventStore(EventStore):
    """
    In-memory implementation of the event store.

    Events are kept in insertion order. When a path is given the whole
    collection is rewritten to it after every insert or purge, and loaded
    from it on construction. Writers are serialized by a single lock;
    readers work on a snapshot of the list.
    """

    name = "memory"

    def __init__(self, path: str | None = None):
        self.path = path
        self._events: list[Event] = []
        self._by_id: dict[str, Event] = {}
        self._lock = asyncio.Lock()
        if path:
            self._load()

    def _load(self):
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "rb") as fh:
                raw = fh.read()
        except OSError as e:
            raise StorageFailure(str(e)) from e
        records = orjson.loads(raw) if raw.strip() else []
        for record in records:
            event = Event(**record)
            self._events.append(event)
            self._by_id[event.id] = event
        log.info("store.loaded", backend=self.name, path=self.path, events=len(self._events))

    def _flush(self, events: list[Event]):
        tmp_path = f"{self.path}.tmp"
        data = orjson.dumps([e.model_dump() for e in events])
        with open(tmp_path, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, self.path)

    async def _persist(self):
        if not self.path:
            return
        try:
            await asyncio.to_thread(self._flush, list(self._events))
        except OSError as e:
            log.error("store.flush_failed", backend=self.name, path=self.path, error=str(e))
            raise StorageFailure(str(e)) from e

    async def insert(self, event: Event) -> Event:
        async with self._lock:
            if event.id in self._by_id:
                raise DuplicateEventId(event.id)
            # Stored records are private copies; callers never hold a live reference
            stored = event.model_copy(deep=True)
            self._events.append(stored)
            self._by_id[event.id] = stored
            try:
                await self._persist()
            except StorageFailure:
                # Keep memory in step with the file
                self._events.pop()
                del self._by_id[event.id]
                raise
        log.debug("event.stored", id=event.id, backend=self.name)
        return event

    async def list_events(self, flt: EventFilter) -> EventPage:
        snapshot = list(self._events)
        # Stable sort, so equal timestamps keep newest-insert-first order
        ordered = sorted(reversed(snapshot), key=lambda e: e.received_at, reverse=True)
        matched = [e for e in ordered if matches(e, flt.source, flt.query)]
        page = matched[flt.offset:flt.offset + flt.limit]
        return EventPage(
            items=[e.to_preview() for e in page],
            limit=flt.limit,
            offset=flt.offset,
            total=len(matched),
        )

    async def get(self, event_id: str) -> Event:
        event = self._by_id.get(event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event.model_copy(deep=True)

    async def count_by_source(self) -> Tuple[int, List[SourceCount]]:
        snapshot = list(self._events)
        counts = Counter(e.source for e in snapshot)
        by_source = [
            SourceCount(source=source, c=c)
            for source, c in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ]
        return len(snapshot), by_source

    async def delete_before(self, cutoff: str) -> int:
        async with self._lock:
            previous = self._events
            kept = [e for e in previous if e.received_at >= cutoff]
            deleted = len(previous) - len(kept)
            if not deleted:
                return 0
            self._events = kept
            self._by_id = {e.id: e for e in kept}
            try:
                await self._persist()
            except StorageFailure:
                self._events = previous
                self._by_id = {e.id: e for e in previous}
                raise
        return deleted

    async def health_check(self) -> bool:
        if not self.path:
            return True
        directory = os.path.dirname(os.path.abspath(self.path))
        return os.access(directory, os.W_OK)
