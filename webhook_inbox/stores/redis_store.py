"""Redis event store."""
from collections import Counter
from typing import List, Tuple
import structlog
import orjson
from redis import Redis
from redis.exceptions import RedisError, WatchError
from .base import EventStore
from ..errors import DuplicateEventId, EventNotFound, StorageFailure
from ..event_models import Event, EventFilter, EventPage, SourceCount, matches, timestamp_millis

log = structlog.get_logger()


class RedisEventStore(EventStore):
    """Redis implementation of the event store.

    Each event is stored as a JSON string under its own key; a sorted set
    scored by received_at (epoch milliseconds) indexes them in time order.
    Filtering and aggregation scan the index client-side.
    """

    name = "redis"

    def __init__(self, redis_url: str, key_prefix: str = "webhook_inbox"):
        """
        Initialize Redis event store.

        Args:
            redis_url: Redis connection URL
            key_prefix: Namespace for all keys written by this store
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self._client: Redis | None = None
        self._index_key = f"{key_prefix}:events"

    def _get_client(self) -> Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = Redis.from_url(
                self.redis_url,
                decode_responses=False,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        return self._client

    def _event_key(self, event_id: str) -> str:
        return f"{self.key_prefix}:event:{event_id}"

    def _load_all(self) -> list[Event]:
        """Fetch every event, newest first."""
        client = self._get_client()
        ids = client.zrevrange(self._index_key, 0, -1)
        if not ids:
            return []
        keys = [self._event_key(i.decode("utf-8")) for i in ids]
        return [Event(**orjson.loads(raw)) for raw in client.mget(keys) if raw is not None]

    async def insert(self, event: Event) -> Event:
        """
        Store the event and add it to the time index.

        Raises:
            DuplicateEventId: If the event key already exists
            StorageFailure: If Redis is unreachable or rejects the write
        """
        key = self._event_key(event.id)
        try:
            # Key and index entry are written in one MULTI so neither exists alone
            with self._get_client().pipeline(transaction=True) as pipe:
                pipe.watch(key)
                if pipe.exists(key):
                    raise DuplicateEventId(event.id)
                pipe.multi()
                pipe.set(key, orjson.dumps(event.model_dump()))
                pipe.zadd(self._index_key, {event.id: timestamp_millis(event.received_at)})
                pipe.execute()
        except WatchError as e:
            # Another writer created the key between WATCH and EXEC
            raise DuplicateEventId(event.id) from e
        except RedisError as e:
            log.error("redis.insert_failed", error=str(e), event_id=event.id)
            raise StorageFailure(str(e)) from e
        return event

    async def list_events(self, flt: EventFilter) -> EventPage:
        try:
            events = self._load_all()
        except RedisError as e:
            log.error("redis.list_failed", error=str(e))
            raise StorageFailure(str(e)) from e
        matched = [e for e in events if matches(e, flt.source, flt.query)]
        page = matched[flt.offset:flt.offset + flt.limit]
        return EventPage(
            items=[e.to_preview() for e in page],
            limit=flt.limit,
            offset=flt.offset,
            total=len(matched),
        )

    async def get(self, event_id: str) -> Event:
        try:
            raw = self._get_client().get(self._event_key(event_id))
        except RedisError as e:
            raise StorageFailure(str(e)) from e
        if raw is None:
            raise EventNotFound(event_id)
        return Event(**orjson.loads(raw))

    async def count_by_source(self) -> Tuple[int, List[SourceCount]]:
        try:
            events = self._load_all()
        except RedisError as e:
            raise StorageFailure(str(e)) from e
        counts = Counter(e.source for e in events)
        by_source = [
            SourceCount(source=source, c=c)
            for source, c in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ]
        return len(events), by_source

    async def delete_before(self, cutoff: str) -> int:
        """Remove index entries and event keys scored strictly below cutoff."""
        max_score = f"({timestamp_millis(cutoff)}"
        try:
            client = self._get_client()
            ids = client.zrangebyscore(self._index_key, "-inf", max_score)
            if not ids:
                return 0
            pipe = client.pipeline(transaction=True)
            pipe.zrem(self._index_key, *ids)
            pipe.delete(*[self._event_key(i.decode("utf-8")) for i in ids])
            removed, _ = pipe.execute()
        except RedisError as e:
            log.error("redis.purge_failed", error=str(e), cutoff=cutoff)
            raise StorageFailure(str(e)) from e
        return removed

    async def health_check(self) -> bool:
        try:
            return bool(self._get_client().ping())
        except RedisError as e:
            log.warning("redis.health_check_failed", error=str(e))
            return False

    async def close(self):
        """Close Redis connection."""
        if self._client:
            self._client.close()
            self._client = None
