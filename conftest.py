"""Pytest configuration and fixtures for the Cortex client tests.

This module provides:
- Pytest hooks and markers
- SSE payload builders and a fake streaming body
- A CortexClient wired to an in-process mock transport

Fixtures:
    routes: dict mapping (method, path) to a handler returning httpx.Response
    sent_requests: list of every request the mock transport received
    cortex_client: CortexClient backed by the mock transport
    live_client: CortexClient against the real API (requires_api tests only)
"""

import json
from typing import Callable, Iterable, Optional

import httpx
import pytest

from cortex import CortexClient
from cortex.config import get_config, is_api_tests_enabled


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "requires_api: mark test as requiring API credentials"
    )


def pytest_collection_modifyitems(config, items):
    """Skip API tests unless explicitly enabled."""
    if not is_api_tests_enabled():
        skip_api = pytest.mark.skip(reason="Set RUN_API_TESTS=1 to run API tests")
        for item in items:
            if "requires_api" in item.keywords:
                item.add_marker(skip_api)


# =============================================================================
# SSE Helpers
# =============================================================================


def sse(payload, event: Optional[str] = None) -> bytes:
    """Encode one payload as an SSE frame."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {data}\n\n".encode("utf-8")


def tokens(text: str, block_name: str = "MODEL") -> dict:
    return {
        "type": "tokens",
        "content": {
            "block_type": "chat",
            "block_name": block_name,
            "input_index": 0,
            "map": None,
            "tokens": {"text": text},
        },
    }


def run_status(status: str, run_id: str = "r1") -> dict:
    return {"type": "run_status", "content": {"status": status, "run_id": run_id}}


def block_status(name: str, status: str = "succeeded") -> dict:
    return {
        "type": "block_status",
        "content": {
            "block_type": "chat",
            "name": name,
            "status": status,
            "success_count": 1 if status == "succeeded" else 0,
            "error_count": 1 if status == "errored" else 0,
        },
    }


def block_execution(block_name: str, value=None, error: Optional[str] = None) -> dict:
    return {
        "type": "block_execution",
        "content": {
            "block_type": "chat",
            "block_name": block_name,
            "execution": [[{"value": value, "error": error}]],
        },
    }


def error(code: str = "run_error", message: str = "boom") -> dict:
    return {"type": "error", "content": {"code": code, "message": message}}


FINAL = {"type": "final"}


def split(data: bytes, size: int) -> list[bytes]:
    """Cut bytes into chunks of ``size`` bytes."""
    return [data[i : i + size] for i in range(0, len(data), size)]


class CountingStream(httpx.AsyncByteStream):
    """Streaming body that records reads and close calls.

    Raises ``error`` after the last chunk when given.
    """

    def __init__(self, chunks: Iterable[bytes], error: Optional[Exception] = None):
        self.chunks = list(chunks)
        self.error = error
        self.reads = 0
        self.aclose_calls = 0

    async def __aiter__(self):
        for chunk in self.chunks:
            self.reads += 1
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self):
        self.aclose_calls += 1


def streaming_response(
    chunks: Iterable[bytes],
    status_code: int = 200,
    error: Optional[Exception] = None,
) -> tuple[httpx.Response, CountingStream]:
    """Build an unread streaming response over a CountingStream."""
    stream = CountingStream(chunks, error=error)
    response = httpx.Response(
        status_code,
        headers={"Content-Type": "text/event-stream"},
        stream=stream,
    )
    return response, stream


# =============================================================================
# Mock API Fixtures
# =============================================================================

BASE_URL = "https://cortex.test/api/sdk"
USER_ID = "user-1"
API_KEY = "sk-test"


@pytest.fixture
def routes() -> dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]]:
    """Handlers keyed by (method, path); tests fill this in."""
    return {}


@pytest.fixture
def sent_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
async def cortex_client(routes, sent_requests):
    """CortexClient whose requests are served by ``routes``.

    Unknown routes answer 404.

    Yields:
        CortexClient instance ready for use.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        sent_requests.append(request)
        route = routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": {"message": "not found"}})
        return route(request)

    client = CortexClient(
        api_key=API_KEY,
        user_id=USER_ID,
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
    )
    async with client:
        yield client


# =============================================================================
# Live API Fixtures
# =============================================================================


@pytest.fixture
async def live_client():
    """CortexClient configured from the environment / settings file.

    Yields:
        CortexClient connected to the real API.
    """
    config = get_config()
    if not config.api_key or not config.user_id:
        pytest.skip("Cortex API key and user id are not configured")
    async with CortexClient.from_config(config) as client:
        yield client
