"""
Shared fixtures for the gateway tests.

The upstream is an httpx.MockTransport whose handler records every request
it receives; each test installs the response it needs with
`upstream.respond(...)`.
"""

from typing import Callable, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from gateway.app.config import Settings
from gateway.app.main import create_app


TEST_SECRET = "password123"
SESSION_COOKIE = {"Cookie": f"GW_Auth={TEST_SECRET}"}


class ChunkStream(httpx.AsyncByteStream):
    """Upstream body delivered in the given chunks, never pre-read."""

    def __init__(self, *chunks: bytes):
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk


def upstream_response(status_code: int = 200, headers=None, *chunks: bytes) -> httpx.Response:
    return httpx.Response(status_code, headers=headers or [], stream=ChunkStream(*chunks))


class MockUpstream:
    """Records upstream requests and answers them with a configurable handler."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._handler: Callable[[httpx.Request], httpx.Response] = (
            lambda request: upstream_response(200, {"content-type": "text/plain"}, b"ok")
        )

    def respond(self, status_code: int = 200, headers=None, *chunks: bytes) -> None:
        self._handler = lambda request: upstream_response(status_code, headers, *chunks)

    def fail(self, message: str = "boom") -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError(message, request=request)
        self._handler = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def last_request(self) -> Optional[httpx.Request]:
        return self.requests[-1] if self.requests else None


@pytest.fixture
def settings():
    """Gateway settings isolated from any local .env file"""
    return Settings(_env_file=None, GATEWAY_SECRET=TEST_SECRET)


@pytest.fixture
def upstream():
    return MockUpstream()


@pytest.fixture
def app(settings, upstream):
    return create_app(settings=settings, transport=httpx.MockTransport(upstream.handle))


@pytest.fixture
def client(app):
    """Test client with the lifespan running and redirects left to the test"""
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    """Headers carrying a valid session cookie"""
    return dict(SESSION_COOKIE)
