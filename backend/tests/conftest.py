"""
Pytest configuration for the backend tests.
"""
import asyncio
import json
import random
import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import Settings
from main import create_app
from repositories import MemoryStore
from services.broadcaster import Broadcaster
from services.contribution_engine import ContributionEngine

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)

TEST_CID = "QmTestCid1234567890abcdefghijklmnopqrstuvwxyzAB"


def pytest_configure(config):
    """Configure pytest with asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test."
    )


class FakeWebSocket:
    """Minimal stand-in for a Starlette WebSocket"""

    def __init__(self, fail_sends: bool = False):
        self.accepted = False
        self.fail_sends = fail_sends
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text: str):
        if self.fail_sends:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))

    def types(self):
        return [m["type"] for m in self.sent]


class StalledWebSocket(FakeWebSocket):
    """A client that accepts but never finishes reading"""

    def __init__(self):
        super().__init__()
        self.never = asyncio.Event()

    async def send_text(self, text: str):
        await self.never.wait()


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def store() -> MemoryStore:
    """Fresh store seeded with the demo model"""
    return MemoryStore()


@pytest.fixture
def engine(store) -> ContributionEngine:
    """Engine with deterministic randomness and no training delay"""
    return ContributionEngine(store, step_delay=0, rng=random.Random(42))


@pytest_asyncio.fixture
async def broadcaster(store):
    hub = Broadcaster(store)
    yield hub
    await hub.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        compute_step_delay_seconds=0,
        ipfs_project_id="test-project",
        ipfs_project_secret="test-secret",
    )


@pytest.fixture
def ipfs_requests():
    """Requests seen by the fake IPFS gateway"""
    return []


@pytest.fixture
def ipfs_transport(ipfs_requests) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        ipfs_requests.append(request)
        path = request.url.path
        if path == "/api/v0/add":
            return httpx.Response(200, json={"Name": "blob", "Hash": TEST_CID, "Size": "12"})
        if path == "/api/v0/cat":
            if request.url.params.get("arg") == TEST_CID:
                return httpx.Response(200, content=b"hello ipfs")
            return httpx.Response(500, text="merkledag: not found")
        if path == "/api/v0/pin/add":
            return httpx.Response(200, json={"Pins": [request.url.params.get("arg")]})
        return httpx.Response(404, text="unknown endpoint")

    return httpx.MockTransport(handler)


@pytest.fixture
def app(settings, store, ipfs_transport):
    return create_app(settings=settings, store=store, ipfs_transport=ipfs_transport)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def register_user(client: TestClient, username: str, password: str = "secret-pass") -> dict:
    """
    Register through the API and return bearer headers for that user.

    The session cookie is cleared so several users can share one client.
    """
    response = client.post("/api/register", json={"username": username, "password": password})
    assert response.status_code == 201, response.text
    token = response.cookies["access_token"]
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}
