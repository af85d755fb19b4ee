"""
Pytest configuration for astra-data-sdk tests.

Unit tests talk to an in-process fake of the Data API through
``httpx.MockTransport``; nothing leaves the process.

Integration tests (marker ``integration``) run against a real database and
are skipped unless ``ASTRA_DB_API_ENDPOINT`` is set. Shared connection
constants are defined here so every test file can import them.
"""

import json
import os
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest

from astra_sdk import DataAPIClient, Db

# ---------------------------------------------------------------------------
# Shared constants (import these in test files)
# ---------------------------------------------------------------------------
ASTRA_DB_API_ENDPOINT = os.getenv("ASTRA_DB_API_ENDPOINT")
ASTRA_DB_APPLICATION_TOKEN = os.getenv("ASTRA_DB_APPLICATION_TOKEN")
ASTRA_DB_KEYSPACE = os.getenv("ASTRA_DB_KEYSPACE", "default_keyspace")

FAKE_TOKEN = "AstraCS:test-token"
FAKE_ENDPOINT = "https://01234567-89ab-cdef-0123-456789abcdef-us-east1.apps.astra.datastax.com"


# ---------------------------------------------------------------------------
# Fake Data API
# ---------------------------------------------------------------------------


@dataclass
class RecordedRequest:
    method: str
    url: httpx.URL
    headers: httpx.Headers
    body: Any

    @property
    def path(self) -> str:
        return self.url.path

    @property
    def command_name(self) -> str:
        return next(iter(self.body))

    @property
    def payload(self) -> dict[str, Any]:
        return self.body[self.command_name]


Handler = Callable[[RecordedRequest], httpx.Response | dict[str, Any]]


@dataclass
class FakeDataAPI:
    """
    Records every request and answers it.

    Responses are either queued (``reply``) and served in order, or
    computed by a ``handler`` receiving the recorded request. A handler
    may return a plain dict, which is sent as a 200 JSON body.
    """

    requests: list[RecordedRequest] = field(default_factory=list)
    handler: Handler | None = None
    _queue: list[httpx.Response] = field(default_factory=list)

    def reply(self, body: Any = None, status_code: int = 200, headers: dict[str, str] | None = None) -> None:
        content = b"" if body is None else json.dumps(body).encode()
        self._queue.append(httpx.Response(status_code, content=content, headers=headers))

    def reply_text(self, text: str, status_code: int = 200) -> None:
        self._queue.append(httpx.Response(status_code, text=text))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        recorded = RecordedRequest(request.method, request.url, request.headers, body)
        self.requests.append(recorded)

        if self._queue:
            return self._queue.pop(0)
        if self.handler is not None:
            result = self.handler(recorded)
            return result if isinstance(result, httpx.Response) else httpx.Response(200, json=result)
        raise AssertionError(f"Unexpected request: {request.method} {request.url.path} {body}")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def commands(self) -> list[dict[str, Any]]:
        return [r.body for r in self.requests]

    @property
    def last(self) -> RecordedRequest:
        return self.requests[-1]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def api() -> FakeDataAPI:
    return FakeDataAPI()


@pytest.fixture
async def client(api: FakeDataAPI) -> AsyncGenerator[DataAPIClient, None]:
    client = DataAPIClient(FAKE_TOKEN, transport=api.transport)
    yield client
    await client.close()


@pytest.fixture
def db(client: DataAPIClient) -> Db:
    return client.db(FAKE_ENDPOINT)


# ---------------------------------------------------------------------------
# Integration tests
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless a live endpoint is configured."""
    if ASTRA_DB_API_ENDPOINT:
        return

    skip_integration = pytest.mark.skip(reason="ASTRA_DB_API_ENDPOINT not set")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
