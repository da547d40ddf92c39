"""Contract tests shared by the memory and SQLite event stores."""
import pytest
from datetime import datetime, timedelta, timezone
from webhook_inbox.errors import DuplicateEventId, EventNotFound
from webhook_inbox.event_models import Event, EventFilter, format_timestamp
from webhook_inbox.stores.memory import InMemoryEventStore
from webhook_inbox.stores.sqlite import SqliteEventStore

BASE_TIME = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def ts(minutes: int) -> str:
    return format_timestamp(BASE_TIME + timedelta(minutes=minutes))


@pytest.fixture(params=["memory", "memory_file", "sqlite"])
def event_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryEventStore()
    if request.param == "memory_file":
        return InMemoryEventStore(path=str(tmp_path / "events.json"))
    return SqliteEventStore(str(tmp_path / "events.db"))


def make_event(minutes: int = 0, **kwargs) -> Event:
    kwargs.setdefault("source", "github")
    kwargs.setdefault("content_type", "application/json")
    kwargs.setdefault("body", '{"action": "opened"}')
    kwargs.setdefault("headers", {"content-type": "application/json", "x-github-event": "issues"})
    return Event(received_at=ts(minutes), **kwargs)


@pytest.mark.asyncio
async def test_get_returns_inserted_event(event_store):
    """A freshly inserted event reads back identical in every field."""
    event = make_event(headers={"x-dup": ["a", "b"], "content-type": "application/json"})
    await event_store.insert(event)

    fetched = await event_store.get(event.id)

    assert fetched == event


@pytest.mark.asyncio
async def test_stored_event_cannot_be_mutated_through_references(event_store):
    event = make_event(headers={"x-tag": ["a"]})
    await event_store.insert(event)
    event.body = "changed after insert"

    fetched = await event_store.get(event.id)
    fetched.source = "tampered"
    fetched.headers["x-tag"].append("b")

    again = await event_store.get(event.id)
    assert again.body == '{"action": "opened"}'
    assert again.source == "github"
    assert again.headers == {"x-tag": ["a"]}


@pytest.mark.asyncio
async def test_get_unknown_id_raises(event_store):
    with pytest.raises(EventNotFound):
        await event_store.get("does-not-exist")


@pytest.mark.asyncio
async def test_insert_rejects_duplicate_id(event_store):
    event = make_event()
    await event_store.insert(event)

    with pytest.raises(DuplicateEventId):
        await event_store.insert(make_event(minutes=1, id=event.id, body="other"))

    fetched = await event_store.get(event.id)
    assert fetched.body == event.body


@pytest.mark.asyncio
async def test_list_orders_newest_first(event_store):
    for minutes in (5, 1, 30, 12, 7):
        await event_store.insert(make_event(minutes=minutes))

    page = await event_store.list_events(EventFilter(limit=50, offset=0))
    stamps = [item.received_at for item in page.items]

    assert stamps == sorted(stamps, reverse=True)
    assert page.total == 5


@pytest.mark.asyncio
async def test_list_ties_prefer_latest_insert(event_store):
    first = make_event(minutes=0, body="first")
    second = make_event(minutes=0, body="second")
    await event_store.insert(first)
    await event_store.insert(second)

    page = await event_store.list_events(EventFilter())

    assert [item.id for item in page.items] == [second.id, first.id]


@pytest.mark.asyncio
async def test_list_filters_by_source(event_store):
    await event_store.insert(make_event(minutes=1, source="stripe"))
    await event_store.insert(make_event(minutes=2, source="github"))
    await event_store.insert(make_event(minutes=3, source="stripe"))

    page = await event_store.list_events(EventFilter(source="stripe"))

    assert page.total == 2
    assert {item.source for item in page.items} == {"stripe"}


@pytest.mark.asyncio
async def test_list_query_matches_body_case_insensitively(event_store):
    await event_store.insert(make_event(minutes=1, body='{"type": "Invoice.Paid"}'))
    await event_store.insert(make_event(minutes=2, body='{"type": "charge.failed"}'))

    page = await event_store.list_events(EventFilter(query="invoice.paid"))

    assert page.total == 1
    assert "Invoice.Paid" in page.items[0].preview


@pytest.mark.asyncio
async def test_list_query_matches_headers(event_store):
    await event_store.insert(make_event(minutes=1, headers={"user-agent": "Stripe/1.0"}))
    await event_store.insert(make_event(minutes=2, headers={"user-agent": "GitHub-Hookshot"}))

    page = await event_store.list_events(EventFilter(query="hookshot"))

    assert page.total == 1
    assert page.items[0].received_at == ts(2)


@pytest.mark.asyncio
async def test_list_query_is_literal(event_store):
    """SQL wildcard characters in the query are matched literally."""
    await event_store.insert(make_event(minutes=1, body="100% done"))
    await event_store.insert(make_event(minutes=2, body="100 done"))

    page = await event_store.list_events(EventFilter(query="100%"))

    assert page.total == 1


@pytest.mark.asyncio
async def test_list_paginates(event_store):
    for minutes in range(10):
        await event_store.insert(make_event(minutes=minutes, body=f"event-{minutes}"))

    page = await event_store.list_events(EventFilter(limit=3, offset=2))

    assert page.limit == 3
    assert page.offset == 2
    assert page.total == 10
    assert [item.preview for item in page.items] == ["event-7", "event-6", "event-5"]


@pytest.mark.asyncio
async def test_list_preview_truncates_body(event_store):
    await event_store.insert(make_event(body="x" * 500))

    page = await event_store.list_events(EventFilter())

    assert page.items[0].preview == "x" * 200


@pytest.mark.asyncio
async def test_count_by_source(event_store):
    for source in ("stripe", "github", "stripe", "", "stripe", "github"):
        await event_store.insert(make_event(source=source))

    total, by_source = await event_store.count_by_source()

    assert total == 6
    assert [(s.source, s.c) for s in by_source] == [("stripe", 3), ("github", 2), ("", 1)]


@pytest.mark.asyncio
async def test_count_by_source_empty(event_store):
    total, by_source = await event_store.count_by_source()

    assert total == 0
    assert by_source == []


@pytest.mark.asyncio
async def test_delete_before_is_strict(event_store):
    old = make_event(minutes=-10)
    boundary = make_event(minutes=0)
    recent = make_event(minutes=10)
    for event in (old, boundary, recent):
        await event_store.insert(event)

    deleted = await event_store.delete_before(ts(0))

    assert deleted == 1
    with pytest.raises(EventNotFound):
        await event_store.get(old.id)
    assert (await event_store.get(boundary.id)).id == boundary.id
    assert (await event_store.get(recent.id)).id == recent.id


@pytest.mark.asyncio
async def test_delete_before_twice_is_idempotent(event_store):
    for minutes in (-30, -20, 5):
        await event_store.insert(make_event(minutes=minutes))

    assert await event_store.delete_before(ts(0)) == 2
    assert await event_store.delete_before(ts(0)) == 0


@pytest.mark.asyncio
async def test_health_check(event_store):
    assert await event_store.health_check() is True


@pytest.mark.asyncio
async def test_memory_store_reloads_from_file(tmp_path):
    path = str(tmp_path / "events.json")
    store = InMemoryEventStore(path=path)
    event = make_event(headers={"x-dup": ["a", "b"]})
    await store.insert(event)
    await store.insert(make_event(minutes=-100, source="old"))
    await store.delete_before(ts(-50))

    reloaded = InMemoryEventStore(path=path)

    assert await reloaded.get(event.id) == event
    total, _ = await reloaded.count_by_source()
    assert total == 1


@pytest.mark.asyncio
async def test_sqlite_store_persists_across_connections(tmp_path):
    path = str(tmp_path / "events.db")
    store = SqliteEventStore(path)
    event = make_event()
    await store.insert(event)
    await store.close()

    reopened = SqliteEventStore(path)

    assert await reopened.get(event.id) == event
    await reopened.close()
