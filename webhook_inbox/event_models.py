from pydantic import BaseModel, Field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Union
import uuid
import orjson

LIST_PREVIEW_CHARS = 200
DETAIL_PREVIEW_CHARS = 2000
DEFAULT_CONTENT_TYPE = "application/octet-stream"

HeaderValue = Union[str, List[str]]


def format_timestamp(dt: datetime) -> str:
    """Render a datetime as fixed-width UTC ISO-8601 with milliseconds.

    Every timestamp the inbox stores goes through here, so plain string
    comparison orders them chronologically.
    """
    dt = dt.astimezone(timezone.utc)
    # strftime does not zero-pad years below 1000
    return f"{dt.year:04d}" + dt.strftime("-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Inverse of format_timestamp."""
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)


def utc_now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def cutoff_for_days(days: int, now: datetime | None = None) -> str:
    """Timestamp `days` before now, floored at the earliest representable instant."""
    now = now or datetime.now(timezone.utc)
    try:
        cutoff = now - timedelta(days=days)
    except OverflowError:
        cutoff = datetime.min.replace(tzinfo=timezone.utc)
    return format_timestamp(cutoff)


def timestamp_millis(value: str) -> int:
    """Epoch milliseconds of a stored timestamp (used as a sort score)."""
    dt = parse_timestamp(value)
    return int(dt.timestamp() * 1000)


class Event(BaseModel):
    """One captured inbound webhook request."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source: str = ""
    content_type: str = DEFAULT_CONTENT_TYPE
    headers: Dict[str, HeaderValue] = Field(default_factory=dict)
    body: str = ""
    received_at: str = Field(default_factory=utc_now)

    def to_preview(self) -> "EventPreview":
        return EventPreview(
            id=self.id,
            source=self.source,
            content_type=self.content_type,
            received_at=self.received_at,
            preview=self.body[:LIST_PREVIEW_CHARS],
        )


class EventPreview(BaseModel):
    id: str
    source: str
    content_type: str
    received_at: str
    preview: str


class EventFilter(BaseModel):
    source: str = ""
    query: str = ""
    limit: int = 50
    offset: int = 0


class EventPage(BaseModel):
    items: List[EventPreview]
    limit: int
    offset: int
    total: int


class SourceCount(BaseModel):
    source: str
    c: int


class SourceStats(BaseModel):
    total_events: int
    by_source: List[SourceCount]


def normalize_headers(raw: List[tuple]) -> Dict[str, HeaderValue]:
    """
    Build the stored header mapping from raw (name, value) pairs.

    Names are lowercased. A header seen once keeps a plain string value;
    repeated headers become a list of their values in arrival order.
    """
    headers: Dict[str, HeaderValue] = {}
    for name, value in raw:
        if isinstance(name, bytes):
            name = name.decode("latin-1")
        if isinstance(value, bytes):
            value = value.decode("latin-1")
        key = name.lower()
        if key not in headers:
            headers[key] = value
        elif isinstance(headers[key], list):
            headers[key].append(value)
        else:
            headers[key] = [headers[key], value]
    return headers


def serialize_headers(headers: Dict[str, HeaderValue]) -> str:
    """Serialized header form used for storage and free-text search."""
    return orjson.dumps(headers).decode("utf-8")


def matches(event: Event, source: str, query: str) -> bool:
    """Filter rule shared by backends that scan records in Python."""
    if source and event.source != source:
        return False
    if query:
        needle = query.casefold()
        return needle in event.body.casefold() or needle in serialize_headers(event.headers).casefold()
    return True
