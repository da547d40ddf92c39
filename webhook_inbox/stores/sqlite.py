"""SQLite event store."""
import sqlite3
import threading
from typing import List, Tuple
import orjson
import structlog
from .base import EventStore
from ..errors import DuplicateEventId, EventNotFound, StorageFailure
from ..event_models import Event, EventFilter, EventPage, EventPreview, SourceCount, serialize_headers

log = structlog.get_logger()

SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
  id TEXT PRIMARY KEY,
  source TEXT,
  content_type TEXT,
  headers TEXT,
  body TEXT,
  received_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_events_received_at ON events (received_at);
CREATE INDEX IF NOT EXISTS idx_events_source ON events (source);
"""

# rowid breaks received_at ties so the latest insert comes first
LIST_SQL = """
SELECT id, source, content_type, received_at, substr(body, 1, 200) AS preview
FROM events
WHERE (:source = '' OR source = :source)
  AND (:q = '' OR icontains(body, :q) OR icontains(headers, :q))
ORDER BY received_at DESC, rowid DESC
LIMIT :lim OFFSET :off
"""

COUNT_SQL = """
SELECT COUNT(*) AS c
FROM events
WHERE (:source = '' OR source = :source)
  AND (:q = '' OR icontains(body, :q) OR icontains(headers, :q))
"""


def _icontains(haystack, needle) -> int:
    if haystack is None or needle is None:
        return 0
    return int(needle.casefold() in haystack.casefold())


class SqliteEventStore(EventStore):
    """
    Single-table SQLite implementation of the event store.

    Uses WAL journaling so readers keep seeing a consistent snapshot while
    a purge is running. Writes are serialized by a lock and committed one
    transaction per call.
    """

    name = "sqlite"

    def __init__(self, path: str = "data.db"):
        self.path = path
        self._write_lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            # Python-side matching keeps case folding identical to the other backends
            self._conn.create_function("icontains", 2, _icontains, deterministic=True)
            if path != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            log.error("store.open_failed", backend=self.name, path=path, error=str(e))
            raise StorageFailure(str(e)) from e
        log.info("store.opened", backend=self.name, path=path)

    async def insert(self, event: Event) -> Event:
        params = event.model_dump()
        params["headers"] = serialize_headers(event.headers)
        try:
            with self._write_lock, self._conn:
                self._conn.execute(
                    """
                    INSERT INTO events (id, source, content_type, headers, body, received_at)
                    VALUES (:id, :source, :content_type, :headers, :body, :received_at)
                    """,
                    params,
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateEventId(event.id) from e
        except sqlite3.Error as e:
            log.error("store.insert_failed", backend=self.name, event_id=event.id, error=str(e))
            raise StorageFailure(str(e)) from e
        return event

    async def list_events(self, flt: EventFilter) -> EventPage:
        params = {"source": flt.source, "q": flt.query, "lim": flt.limit, "off": flt.offset}
        try:
            rows = self._conn.execute(LIST_SQL, params).fetchall()
            total = self._conn.execute(COUNT_SQL, params).fetchone()["c"]
        except sqlite3.Error as e:
            raise StorageFailure(str(e)) from e
        return EventPage(
            items=[EventPreview(**dict(row)) for row in rows],
            limit=flt.limit,
            offset=flt.offset,
            total=total,
        )

    async def get(self, event_id: str) -> Event:
        try:
            row = self._conn.execute(
                """
                SELECT id, source, content_type, headers, body, received_at
                FROM events WHERE id = ?
                """,
                (event_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageFailure(str(e)) from e
        if row is None:
            raise EventNotFound(event_id)
        record = dict(row)
        record["headers"] = orjson.loads(record["headers"]) if record["headers"] else {}
        return Event(**record)

    async def count_by_source(self) -> Tuple[int, List[SourceCount]]:
        try:
            total = self._conn.execute("SELECT COUNT(*) AS c FROM events").fetchone()["c"]
            rows = self._conn.execute(
                """
                SELECT source, COUNT(*) AS c
                FROM events
                GROUP BY source
                ORDER BY c DESC, source ASC
                """
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageFailure(str(e)) from e
        return total, [SourceCount(source=row["source"] or "", c=row["c"]) for row in rows]

    async def delete_before(self, cutoff: str) -> int:
        try:
            with self._write_lock, self._conn:
                cursor = self._conn.execute("DELETE FROM events WHERE received_at < ?", (cutoff,))
        except sqlite3.Error as e:
            log.error("store.purge_failed", backend=self.name, cutoff=cutoff, error=str(e))
            raise StorageFailure(str(e)) from e
        return cursor.rowcount

    async def health_check(self) -> bool:
        try:
            self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as e:
            log.warning("store.health_check_failed", backend=self.name, error=str(e))
            return False

    async def close(self):
        self._conn.close()
