"""Shared test fixtures for pytest."""

import json
import re

import httpx
import pytest
import pytest_asyncio

from agentstudio.catalog import AgentCatalog
from agentstudio.config import Settings
from agentstudio.db.engine import build_engine, build_session_factory
from agentstudio.db.migrations import run_migrations
from agentstudio.repository import AgentRepository

VENDOR_BASE = "https://vendor.test"
OWNER = "owner-a"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"

_FILENAME_RE = re.compile(rb'filename="([^"]+)"')


class FakeVendor:
    """In-memory stand-in for the ingestion and activation services.

    Set ``upload_failures[filename] = (status, body)`` to make one upload
    fail, or ``activation_status`` to a non-200 code to break activation.
    """

    def __init__(self):
        self.uploads: list[str] = []
        self.upload_failures: dict[str, tuple[int, dict]] = {}
        self.activation_calls: list[dict] = []
        self.activation_status = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path == "/api/v1/uploads":
            match = _FILENAME_RE.search(request.content)
            filename = match.group(1).decode() if match else "unknown"
            if filename in self.upload_failures:
                status_code, body = self.upload_failures[filename]
                return httpx.Response(status_code, json=body)
            self.uploads.append(filename)
            return httpx.Response(
                200,
                json={
                    "data": {
                        "id": f"doc-{len(self.uploads)}",
                        "url": f"https://files.example/{filename}",
                    }
                },
            )
        if request.method == "GET" and path.startswith("/api/v1/uploads/"):
            agent_id = path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"agent_id": agent_id, "documents": self.uploads})
        if request.method == "POST" and path == "/api/v1/qr":
            self.activation_calls.append(json.loads(request.content))
            if self.activation_status != 200:
                return httpx.Response(self.activation_status, text="activation backend down")
            return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def vendor():
    return FakeVendor()


@pytest.fixture
def settings(tmp_path):
    """Settings with an isolated SQLite file and the fake vendor."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'agentstudio.db'}",
        vendor_api_base=VENDOR_BASE,
        vendor_api_key="test-key",
        log_level="WARNING",
    )


@pytest.fixture
def client(settings, vendor):
    """Test client for the server with its own database and fake vendor."""
    from fastapi.testclient import TestClient

    from agentstudio.server import create_app

    app = create_app(settings=settings, vendor_transport=httpx.MockTransport(vendor.handler))
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory on a freshly migrated database."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'repo.db'}")
    await run_migrations(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def repository(session_factory):
    return AgentRepository(session_factory)


@pytest.fixture
def catalog(session_factory):
    return AgentCatalog(session_factory)
