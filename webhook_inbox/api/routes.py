"""Route table for the inbox API.

Routes are plain (method, path, handler) entries; the router is built
from the table so the endpoint list lives in one place.
"""
from dataclasses import dataclass
from typing import Callable, List
from fastapi import APIRouter
from . import handlers

API_PREFIX = "/api"


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    handler: Callable
    status_code: int = 200


ROUTES: List[Route] = [
    Route("GET", "/health", handlers.health),
    Route("GET", "/health/ready", handlers.health_ready),
    Route("GET", "/ping", handlers.ping),
    Route("POST", "/events", handlers.ingest_event, status_code=201),
    Route("GET", "/events", handlers.list_events),
    Route("GET", "/events/{event_id}", handlers.get_event),
    Route("GET", "/events/{event_id}/preview", handlers.preview_event),
    Route("GET", "/stats", handlers.stats),
    Route("POST", "/admin/purge", handlers.purge),
]


def build_router(routes: List[Route] = ROUTES, prefix: str = API_PREFIX) -> APIRouter:
    router = APIRouter(prefix=prefix)
    for route in routes:
        router.add_api_route(
            route.path,
            route.handler,
            methods=[route.method],
            status_code=route.status_code,
            name=route.handler.__name__,
        )
    return router


def describe_routes(routes: List[Route] = ROUTES, prefix: str = API_PREFIX) -> List[str]:
    """Human-readable "METHOD /path" lines, logged at startup."""
    return [f"{route.method} {prefix}{route.path}" for route in routes]
