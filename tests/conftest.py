import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

import main
from homecare.clients.api import ApiClient
from homecare.core.cache import cache, MemoryCacheBackend
from homecare.services.exam import ExamService
from homecare.services.health_record import HealthRecordService
from homecare.utils import deps as deps_utils
from tests.helpers.backend import FakeBackend

BACKEND_URL = "http://backend.test/api"


@pytest.fixture(autouse=True)
def fresh_cache(monkeypatch):
    monkeypatch.setattr(cache, "backend", MemoryCacheBackend())
    yield cache


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def api(backend):
    return ApiClient(
        base_url=BACKEND_URL,
        access_token="nurse-token",
        refresh_token="refresh-1",
        transport=backend.transport,
    )


@pytest.fixture
def exam_service(api):
    return ExamService(api)


@pytest.fixture
def health_record_service(api):
    return HealthRecordService(api)


@pytest.fixture(scope="function")
def client(backend):
    main.app.dependency_overrides[deps_utils.get_api_transport] = lambda: backend.transport
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(backend):
    """Client on the test's own event loop, for firing overlapping requests."""
    main.app.dependency_overrides[deps_utils.get_api_transport] = lambda: backend.transport
    transport = httpx.ASGITransport(app=main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://portal.test") as async_test_client:
        yield async_test_client
    main.app.dependency_overrides.clear()
