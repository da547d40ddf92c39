"""
Webhook Inbox - capture arbitrary inbound webhooks and inspect them later.

Features:
- Raw payload capture with headers, source tag and timestamp
- Filtered, paginated listing and content-aware previews
- Per-source stats and age-based purge
- Structured logging with correlation IDs
- Prometheus metrics
"""
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app
from . import SERVICE_NAME, __version__
from .config import Settings, get_settings
from .logging import setup_logging, get_logger
from .api.routes import build_router, describe_routes
from .errors import register_error_handlers
from .middleware import CorrelationIdMiddleware, MetricsMiddleware
from .metrics import Metrics
from .health import HealthChecker
from .services.inbox import Inbox, create_store
from .stores.base import EventStore

logger = get_logger()


def _data_dir(settings: Settings) -> str:
    if settings.STORE_BACKEND == "sqlite":
        return os.path.dirname(os.path.abspath(settings.DB_PATH))
    if settings.STORE_BACKEND == "memory" and settings.JSON_STORE_PATH:
        return os.path.dirname(os.path.abspath(settings.JSON_STORE_PATH))
    return "."


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    logger.info(
        "service_starting",
        version=__version__,
        env=settings.ENV,
        port=settings.PORT,
        store=app.state.inbox.store.name,
    )
    logger.info("routes.registered", routes=describe_routes())
    yield
    logger.info("service_stopping")
    app.state.metrics.app_up.labels(service=SERVICE_NAME, version=__version__).set(0)
    await app.state.inbox.close()


def create_app(settings: Settings | None = None, store: EventStore | None = None) -> FastAPI:
    """
    Build the inbox application.

    Args:
        settings: Configuration (defaults to environment settings)
        store: Event store to use (defaults to the one STORE_BACKEND names)
    """
    settings = settings or get_settings()
    setup_logging(json_output=settings.LOG_JSON, service_name=SERVICE_NAME, level=settings.LOG_LEVEL)

    metrics = Metrics(service_name=SERVICE_NAME, version=__version__)
    if store is None:
        store = create_store(settings)

    app = FastAPI(
        title="Webhook Inbox",
        version=__version__,
        description="Capture, inspect and purge inbound webhook payloads",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.metrics = metrics
    app.state.inbox = Inbox(store, metrics=metrics)
    app.state.health_checker = HealthChecker(
        store,
        service_name=SERVICE_NAME,
        version=__version__,
        disk_path=_data_dir(settings),
    )

    # Added last runs first: correlation ID is bound before metrics logs
    app.add_middleware(MetricsMiddleware, metrics=metrics)
    app.add_middleware(CorrelationIdMiddleware)

    register_error_handlers(app)
    app.include_router(build_router())
    app.mount("/metrics", make_asgi_app(registry=metrics.registry))

    return app


def run():
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "webhook_inbox.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
    )


if __name__ == "__main__":
    run()
