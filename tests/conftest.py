import pytest
from fastapi.testclient import TestClient
from webhook_inbox.config import Settings
from webhook_inbox.main import create_app
from webhook_inbox.stores.memory import InMemoryEventStore


@pytest.fixture
def settings():
    return Settings(_env_file=None, STORE_BACKEND="memory", LOG_JSON=False, LOG_LEVEL="WARNING")


@pytest.fixture
def store():
    return InMemoryEventStore()


@pytest.fixture
def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
