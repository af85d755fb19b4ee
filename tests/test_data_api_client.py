"""
Tests for the Data API HTTP client.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from decimal import Decimal
from typing import Any

import httpx
import pytest
from conftest import FAKE_ENDPOINT, FAKE_TOKEN, FakeDataAPI, RecordedRequest

from astra_sdk.connection import DataAPIHttpClient
from astra_sdk.debug import CommandLogger
from astra_sdk.events import BaseEvent, CommandFailedEvent, CommandSucceededEvent, EventHub
from astra_sdk.exceptions import (
    DataAPIConnectionError,
    DataAPIHttpError,
    DataAPIResponseError,
    DataAPITimeoutError,
    SerDesError,
)
from astra_sdk.protocol import CommandTarget

TARGET = CommandTarget(keyspace="ks", collection="docs")


@pytest.fixture
async def http(api: FakeDataAPI) -> AsyncGenerator[DataAPIHttpClient, None]:
    client = DataAPIHttpClient(FAKE_ENDPOINT, FAKE_TOKEN, caller=[("my-app", "1.2")], transport=api.transport)
    yield client
    await client.close()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequests:
    """What goes over the wire."""

    async def test_post_to_target_path(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply({"status": {"ok": 1}})
        response = await http.execute_command({"findOne": {"filter": {"a": 1}}}, target=TARGET)

        assert response.status == {"ok": 1}
        assert api.last.method == "POST"
        assert api.last.path == "/api/json/v1/ks/docs"
        assert api.last.body == {"findOne": {"filter": {"a": 1}}}

    async def test_headers(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply({"status": {}})
        await http.execute_command({"findCollections": {}}, target=CommandTarget(keyspace="ks"))

        headers = api.last.headers
        assert headers["token"] == FAKE_TOKEN
        assert headers["content-type"] == "application/json"
        assert headers["user-agent"].startswith("my-app/1.2 astra-data-sdk/")

    async def test_additional_headers(self, api: FakeDataAPI) -> None:
        api.reply({"status": {}})
        async with DataAPIHttpClient(
            FAKE_ENDPOINT, None, additional_headers={"X-Trace": "abc"}, transport=api.transport
        ) as client:
            await client.execute_command({"findCollections": {}})

        assert api.last.headers["x-trace"] == "abc"
        assert "token" not in api.last.headers
        assert api.last.path == "/api/json/v1"

    async def test_custom_api_path(self, api: FakeDataAPI) -> None:
        api.reply({"status": {}})
        async with DataAPIHttpClient(FAKE_ENDPOINT, FAKE_TOKEN, api_path="/v1/", transport=api.transport) as client:
            await client.execute_command({"findCollections": {}}, target=CommandTarget(keyspace="ks"))
        assert api.last.path == "/v1/ks"

    async def test_big_numbers_sent_as_numbers(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply({"status": {}})
        await http.execute_command(
            {"insertOne": {"document": {"n": Decimal("0.5")}}}, target=TARGET, big_numbers_present=True
        )
        assert api.last.payload == {"document": {"n": 0.5}}

    async def test_big_numbers_parsed_as_decimal(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply_text('{"data": {"document": {"n": 0.1000000000000000000001}}}')
        response = await http.execute_command({"findOne": {}}, target=TARGET, parse_big_numbers=True)
        assert response.document == {"n": Decimal("0.1000000000000000000001")}

    async def test_lazy_connect(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        assert not http.is_connected
        api.reply({"status": {}})
        await http.execute_command({"findCollections": {}})
        assert http.is_connected

        await http.close()
        assert not http.is_connected


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    async def test_response_errors(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply(
            {
                "errors": [
                    {"message": "Document already exists", "errorCode": "DOCUMENT_ALREADY_EXISTS", "family": "REQUEST"},
                    {"message": "Another one", "errorCode": "OTHER"},
                ],
                "status": {"insertedIds": [1]},
            }
        )

        with pytest.raises(DataAPIResponseError) as exc_info:
            await http.execute_command({"insertMany": {"documents": []}}, target=TARGET)

        error = exc_info.value
        assert error.code == "DOCUMENT_ALREADY_EXISTS"
        assert error.command_name == "insertMany"
        assert str(error) == "Document already exists (+ 1 more errors)"
        assert [d.error_code for d in error.error_descriptors] == ["DOCUMENT_ALREADY_EXISTS", "OTHER"]
        assert error.error_descriptors[0].family == "REQUEST"
        assert error.raw_response["status"] == {"insertedIds": [1]}

    async def test_unauthorized_body_is_surfaced(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply({"errors": [{"message": "Role unauthorized", "errorCode": "UNAUTHENTICATED"}]}, status_code=401)
        with pytest.raises(DataAPIResponseError, match="Role unauthorized"):
            await http.execute_command({"findCollections": {}})

    async def test_http_error(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply_text("upstream unavailable", status_code=503)
        with pytest.raises(DataAPIHttpError) as exc_info:
            await http.execute_command({"findCollections": {}})
        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "upstream unavailable"

    async def test_invalid_json(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply_text("<html>not json</html>")
        with pytest.raises(SerDesError, match="Could not decode"):
            await http.execute_command({"findCollections": {}})

    async def test_timeout(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        def slow(request: RecordedRequest) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out")

        api.handler = slow
        with pytest.raises(DataAPITimeoutError) as exc_info:
            await http.execute_command({"findCollections": {}}, timeout_ms=250)
        assert exc_info.value.timeout_ms == 250

    async def test_connection_error(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        def refuse(request: RecordedRequest) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        api.handler = refuse
        with pytest.raises(DataAPIConnectionError, match="connection refused"):
            await http.execute_command({"findCollections": {}})


# ---------------------------------------------------------------------------
# Events, warnings and command capture
# ---------------------------------------------------------------------------


class TestObservability:
    async def test_events_for_success(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        hub = EventHub(DataAPIHttpClient)
        seen: list[BaseEvent] = []
        hub.command_started.connect(seen.append)
        hub.command_succeeded.connect(seen.append)

        api.reply({"status": {"count": 3}})
        await http.execute_command({"countDocuments": {}}, target=TARGET, timeout_ms=500, events=hub)

        started, succeeded = seen
        assert started.name == "command_started"
        assert started.command_name == "countDocuments"
        assert started.target == "ks.docs"
        assert started.timeout_ms == 500
        assert isinstance(succeeded, CommandSucceededEvent)
        assert succeeded.request_id == started.request_id
        assert succeeded.response == {"status": {"count": 3}}
        assert succeeded.duration_ms >= 0

    async def test_events_for_failure(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        hub = EventHub(DataAPIHttpClient)
        failures: list[CommandFailedEvent] = []
        hub.command_failed.connect(failures.append)

        api.reply({"errors": [{"message": "bad filter"}]})
        with pytest.raises(DataAPIResponseError):
            await http.execute_command({"find": {}}, target=TARGET, events=hub)

        assert len(failures) == 1
        assert isinstance(failures[0].error, DataAPIResponseError)

    async def test_warnings(
        self, api: FakeDataAPI, http: DataAPIHttpClient, caplog: pytest.LogCaptureFixture
    ) -> None:
        hub = EventHub(DataAPIHttpClient)
        warnings: list[Any] = []
        hub.command_warnings.connect(lambda event: warnings.extend(event.warnings))

        api.reply({"status": {"warnings": [{"message": "Zero filters were provided"}]}})
        with caplog.at_level(logging.WARNING, logger="astra_sdk.connection.data_api"):
            await http.execute_command({"deleteMany": {}}, target=TARGET, events=hub)

        assert warnings == [{"message": "Zero filters were provided"}]
        assert "Zero filters were provided" in caplog.text

    async def test_listener_failure_does_not_break_command(
        self, api: FakeDataAPI, http: DataAPIHttpClient, caplog: pytest.LogCaptureFixture
    ) -> None:
        hub = EventHub(DataAPIHttpClient)

        def broken(event: BaseEvent) -> None:
            raise RuntimeError("listener bug")

        hub.command_succeeded.connect(broken)
        api.reply({"status": {"ok": 1}})

        with caplog.at_level(logging.ERROR, logger="astra_sdk.events"):
            response = await http.execute_command({"findCollections": {}}, events=hub)

        assert response.status == {"ok": 1}
        assert "listener bug" in caplog.text

    async def test_command_logger(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply({"status": {}})
        api.reply({"errors": [{"message": "nope"}]})

        async with CommandLogger() as log:
            await http.execute_command({"findOne": {}}, target=TARGET)
            with pytest.raises(DataAPIResponseError):
                await http.execute_command({"deleteOne": {}}, target=TARGET)

        assert [c.command_name for c in log.commands] == ["findOne", "deleteOne"]
        assert log.commands[0].target == "ks.docs"
        assert log.commands[0].succeeded
        assert log.failed == [log.commands[1]]
        assert log.total_commands == 2

    async def test_command_logger_scope(self, api: FakeDataAPI, http: DataAPIHttpClient) -> None:
        api.reply({"status": {}})
        api.reply({"status": {}})

        async with CommandLogger() as log:
            await http.execute_command({"findOne": {}})
        await http.execute_command({"findOne": {}})

        assert log.total_commands == 1
