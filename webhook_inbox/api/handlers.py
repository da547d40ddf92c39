"""Request handlers for the inbox API."""
from typing import Any, Dict
from urllib.parse import parse_qs
from fastapi import Request
from fastapi.responses import JSONResponse
import orjson
import structlog
from .schemas import IngestResponse, PurgeResponse
from ..errors import PayloadTooLarge, ValidationFailure
from ..event_models import Event, EventPage, SourceStats
from ..services.inbox import Inbox

log = structlog.get_logger()


def get_inbox(request: Request) -> Inbox:
    return request.app.state.inbox


async def read_body_limited(request: Request, max_bytes: int) -> bytes:
    """
    Read the raw request body, refusing anything over max_bytes.

    The declared content-length is checked first; the stream is still
    counted since the header may be missing or wrong.
    """
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_bytes:
        raise PayloadTooLarge(max_bytes, int(content_length))

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > max_bytes:
            raise PayloadTooLarge(max_bytes, size)
        chunks.append(chunk)
    return b"".join(chunks)


async def health(request: Request) -> Dict[str, Any]:
    return request.app.state.health_checker.liveness()


async def health_ready(request: Request) -> JSONResponse:
    result = await request.app.state.health_checker.readiness()
    status_code = 200 if result["status"] == "ready" else 503
    return JSONResponse(status_code=status_code, content=result)


async def ping() -> Dict[str, bool]:
    return {"ping": True}


async def ingest_event(request: Request, source: str | None = None) -> IngestResponse:
    settings = request.app.state.settings
    try:
        body = await read_body_limited(request, settings.MAX_PAYLOAD_BYTES)
    except PayloadTooLarge:
        metrics = request.app.state.metrics
        metrics.record_payload_rejected("too_large")
        raise
    event = await get_inbox(request).ingest(body, source, request.headers.raw)
    return IngestResponse(id=event.id, received_at=event.received_at)


async def list_events(
    request: Request,
    source: str | None = None,
    q: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
) -> EventPage:
    return await get_inbox(request).list_events(source=source, q=q, limit=limit, offset=offset)


async def get_event(request: Request, event_id: str) -> Event:
    return await get_inbox(request).get(event_id)


async def preview_event(request: Request, event_id: str) -> Dict[str, Any]:
    return await get_inbox(request).preview(event_id)


async def stats(request: Request) -> SourceStats:
    return await get_inbox(request).stats()


async def _read_purge_days(request: Request) -> Any:
    body = await request.body()
    if not body.strip():
        return None
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type:
        # request.form() would pull in python-multipart just for this one field
        values = parse_qs(body.decode("utf-8", errors="replace")).get("days")
        return values[0] if values else None
    try:
        payload = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise ValidationFailure(f"Request body is not valid JSON: {e}") from e
    if isinstance(payload, dict):
        return payload.get("days")
    return None


async def purge(request: Request) -> PurgeResponse:
    days = await _read_purge_days(request)
    result = await get_inbox(request).purge(days)
    return PurgeResponse(**result)
