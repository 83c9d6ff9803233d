"""Async test fixtures for Karbon mirror tests using SQLite and a fake Karbon API."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from karbon_mirror.api.client import KarbonClient, get_client_factory
from karbon_mirror.config import settings
from karbon_mirror.database import get_db
from karbon_mirror.models.base import Base

API_BASE = "https://api.karbonhq.com/v3"


class FakeKarbonAPI:
    """Canned responses keyed by (method, url) exactly as the client requests them.

    Unregistered routes answer 404. A registered body that is an exception
    instance is raised instead of returned.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.calls: list[dict] = []

    def add(self, method: str, url: str, body: Any = None, status: int = 200) -> None:
        self.routes[(method.upper(), url)] = (status, body)

    def add_pages(self, url: str, pages: list[list[dict]]) -> None:
        """Register a collection served over several nextLink-chained pages."""
        for idx, items in enumerate(pages):
            page_url = url if idx == 0 else f"{url}?page={idx + 1}"
            body: dict = {"value": items}
            if idx + 1 < len(pages):
                body["@odata.nextLink"] = f"{url}?page={idx + 2}"
            self.add("GET", page_url, body)

    def calls_to(self, url: str, method: str = "GET") -> list[dict]:
        return [c for c in self.calls if c["url"] == url and c["method"] == method]

    async def request(self, method: str, url: str, params: dict | None = None, json: Any = None):
        self.calls.append({"method": method.upper(), "url": url, "params": params, "json": json})
        status, body = self.routes.get((method.upper(), url), (404, {"Message": f"No route {url}"}))
        if isinstance(body, Exception):
            raise body
        request = httpx.Request(method, f"{API_BASE}{url}")
        if body is None:
            return httpx.Response(status, request=request)
        return httpx.Response(status, json=body, request=request)

    def client(self) -> KarbonClient:
        karbon = KarbonClient("test-access-key", "test-bearer-token", base_url=API_BASE)
        karbon._client.request = AsyncMock(side_effect=self.request)
        return karbon


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch):
    # Tests opt in to credentials and secrets explicitly.
    monkeypatch.setattr(settings, "access_key", None)
    monkeypatch.setattr(settings, "bearer_token", None)
    monkeypatch.setattr(settings, "webhook_secret", None)
    monkeypatch.setattr(settings, "sync_batch_size", 50)
    monkeypatch.setattr(settings, "sync_max_pages", 50)
    monkeypatch.setattr(settings, "sync_stale_guard", True)
    monkeypatch.setattr(settings, "webhook_followups_enabled", True)
    monkeypatch.setattr(settings, "followup_max_attempts", 3)


@pytest.fixture
def credentials(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "access_key", "test-access-key")
    monkeypatch.setattr(settings, "bearer_token", "test-bearer-token")


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def karbon_api() -> FakeKarbonAPI:
    return FakeKarbonAPI()


@pytest_asyncio.fixture
async def karbon(karbon_api: FakeKarbonAPI):
    client = karbon_api.client()
    yield client
    await client.close()


@pytest_asyncio.fixture
async def client(engine, karbon_api: FakeKarbonAPI):
    """HTTPX async test client against the Karbon mirror app."""
    from karbon_mirror.app import app

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_client_factory] = lambda: karbon_api.client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
