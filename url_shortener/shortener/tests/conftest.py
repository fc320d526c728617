import os

os.environ["TESTING"] = "True"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-jwt-signing")

import time
import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from shortener.database import Base, SessionLocal, engine
from shortener.main import app as fastapi_app
from shortener.clicks import ClickLogger, ClickDispatcher
from shortener.dependencies import get_client_info, get_click_dispatcher
from shortener.store import UrlMappingStore
from shortener.utils import create_access_token


class StubGeoResolver:
    """Geolocation stub: fixed answer, optional delay, records calls"""

    def __init__(self, location=("US", "New York"), delay: float = 0.0, error: Exception = None):
        self.location = location
        self.delay = delay
        self.error = error
        self.calls = []

    def resolve(self, ip_address):
        self.calls.append(ip_address)
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.location

    def close(self):
        pass


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def store(db):
    return UrlMappingStore(SessionLocal)

@pytest.fixture
def geo_resolver():
    return StubGeoResolver()

@pytest.fixture
def sink_errors():
    return []

@pytest.fixture
def dispatcher(store, geo_resolver, sink_errors):
    dispatcher = ClickDispatcher(
        ClickLogger(store, geo_resolver),
        max_workers=4,
        max_pending=100,
        error_sink=lambda exc, event: sink_errors.append((exc, event))
    )
    dispatcher.start()
    yield dispatcher
    dispatcher.shutdown(wait=True)

async def mock_client_info(request: Request = None):
    return {
        "ip_address": "8.8.8.8",
        "user_agent": "Test Client"
    }

@pytest.fixture
def client(db, dispatcher):
    fastapi_app.dependency_overrides[get_client_info] = mock_client_info
    fastapi_app.dependency_overrides[get_click_dispatcher] = lambda: dispatcher

    with TestClient(fastapi_app) as client:
        yield client

    fastapi_app.dependency_overrides = {}

@pytest.fixture
def auth_headers():
    def make_headers(user_id: int = 1, username: str = "testuser") -> dict:
        token = create_access_token({"sub": username, "user_id": user_id})
        return {"Authorization": f"Bearer {token}"}
    return make_headers
