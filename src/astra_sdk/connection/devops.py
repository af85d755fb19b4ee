"""
HTTP client for the DevOps API.

Long-running operations (create/drop database) are started with one request
and then polled with ``GET /databases/<id>`` until the database reaches the
target status, in the manner of a change-feed poll loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

import httpx

from ..events import (
    AdminCommandFailedEvent,
    AdminCommandPollingEvent,
    AdminCommandStartedEvent,
    AdminCommandSucceededEvent,
    EventHub,
    new_request_id,
)
from ..debug import stopwatch
from ..exceptions import DevOpsAPIError, DevOpsAPITimeoutError
from .base import BaseHttpClient

logger = logging.getLogger(__name__)

DEFAULT_DEVOPS_URL = "https://api.astra.datastax.com/v2"
DEFAULT_POLL_INTERVAL_S = 2.0


@dataclass
class DevOpsAPIResponse:
    status_code: int
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)


class DevOpsAPIHttpClient(BaseHttpClient):
    """
    DevOps API client; authenticates with ``Authorization: Bearer <token>``.

    Args:
        base_url: DevOps API base URL.
        token: Application token.
        events: Hub to emit admin command events on.
    """

    timeout_error = DevOpsAPITimeoutError

    def __init__(
        self,
        base_url: str = DEFAULT_DEVOPS_URL,
        token: str | None = None,
        *,
        timeout_ms: int = 15_000,
        additional_headers: Mapping[str, str] | None = None,
        caller: Sequence[tuple[str, str | None]] = (),
        events: EventHub | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url,
            token,
            timeout_ms=timeout_ms,
            additional_headers=additional_headers,
            caller=caller,
            transport=transport,
        )
        self.events = events

    @property
    def headers(self) -> dict[str, str]:
        h = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
            **self.additional_headers,
        }
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        return h

    async def request(self, method: str, path: str, json_body: Any = None) -> DevOpsAPIResponse:
        """
        Send one DevOps API request.

        Raises:
            DevOpsAPIError: On HTTP status >= 400.
        """
        request_id = new_request_id()
        await self._emit(AdminCommandStartedEvent(request_id=request_id, method=method, path=path))
        elapsed_ms = stopwatch()

        try:
            response = await self._send(method, path, json_body)
        except Exception as e:
            await self._emit(
                AdminCommandFailedEvent(
                    request_id=request_id, method=method, path=path, duration_ms=elapsed_ms(), error=e
                )
            )
            raise

        await self._emit(
            AdminCommandSucceededEvent(
                request_id=request_id, method=method, path=path, duration_ms=elapsed_ms(), body=response.data
            )
        )
        return response

    async def request_long_running(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        *,
        id: str | Callable[[DevOpsAPIResponse], str],
        target_status: str,
        legal_states: Sequence[str],
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        timeout_ms: int = 600_000,
    ) -> DevOpsAPIResponse:
        """
        Start an operation and poll until the database reaches ``target_status``.

        Args:
            id: Database id, or a function extracting it from the first response.
            target_status: Status that ends the wait (e.g. ``ACTIVE``).
            legal_states: Statuses that may be observed on the way there.
            poll_interval_s: Delay between status polls.
            timeout_ms: Budget for the whole operation; ``0`` waits forever.

        Raises:
            DevOpsAPIError: If the database enters a status outside
                ``legal_states``.
            DevOpsAPITimeoutError: If the target isn't reached in time.
        """
        request_id = new_request_id()
        await self._emit(
            AdminCommandStartedEvent(
                request_id=request_id, method=method, path=path, long_running=True, timeout_ms=timeout_ms
            )
        )
        logger.info(f"{method} {path}: waiting for status {target_status}")
        elapsed_ms = stopwatch()

        try:
            async with asyncio.timeout(timeout_ms / 1000 if timeout_ms else None):
                response = await self._send(method, path, json_body)
                db_id = id(response) if callable(id) else id
                await self._await_status(
                    request_id, method, path, db_id, target_status, legal_states, poll_interval_s, elapsed_ms
                )
        except TimeoutError as e:
            error = DevOpsAPITimeoutError(
                f"{method} {path} did not reach status {target_status} within {timeout_ms}ms", timeout_ms
            )
            await self._emit(
                AdminCommandFailedEvent(
                    request_id=request_id,
                    method=method,
                    path=path,
                    long_running=True,
                    duration_ms=elapsed_ms(),
                    error=error,
                )
            )
            raise error from e
        except Exception as e:
            await self._emit(
                AdminCommandFailedEvent(
                    request_id=request_id,
                    method=method,
                    path=path,
                    long_running=True,
                    duration_ms=elapsed_ms(),
                    error=e,
                )
            )
            raise

        logger.info(f"{method} {path}: reached status {target_status}")
        await self._emit(
            AdminCommandSucceededEvent(
                request_id=request_id,
                method=method,
                path=path,
                long_running=True,
                duration_ms=elapsed_ms(),
                body=response.data,
            )
        )
        return response

    async def _await_status(
        self,
        request_id: str,
        method: str,
        path: str,
        db_id: str,
        target_status: str,
        legal_states: Sequence[str],
        poll_interval_s: float,
        elapsed_ms: Callable[[], float],
    ) -> None:
        poll_count = 0
        while True:
            poll_count += 1
            status_response = await self._send("GET", f"/databases/{db_id}")
            status = (status_response.data or {}).get("status")

            logger.debug(f"Polled database {db_id} ({poll_count}): {status}")
            await self._emit(
                AdminCommandPollingEvent(
                    request_id=request_id,
                    method=method,
                    path=path,
                    long_running=True,
                    poll_count=poll_count,
                    elapsed_ms=elapsed_ms(),
                    status=status,
                )
            )

            if status == target_status:
                return

            if status not in legal_states:
                ok_states = [target_status, *legal_states]
                raise DevOpsAPIError(
                    f"Database {db_id} is not in any legal state [{','.join(ok_states)}]; current state: {status}",
                    body=status_response.data,
                )

            await asyncio.sleep(poll_interval_s)

    async def _send(self, method: str, path: str, json_body: Any = None) -> DevOpsAPIResponse:
        content = json.dumps(json_body) if json_body is not None else None
        response = await self._request(method, path, content=content)

        data: Any = None
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = response.text

        if response.status_code >= 400:
            raise DevOpsAPIError(
                f"DevOps API error: {response.status_code} - {_error_message(data)}",
                code=response.status_code,
                body=data,
            )

        return DevOpsAPIResponse(status_code=response.status_code, data=data, headers=dict(response.headers))

    async def _emit(self, event: Any) -> None:
        if self.events is not None:
            await self.events.emit(event)


def _error_message(data: Any) -> str:
    if isinstance(data, dict) and data.get("errors"):
        return "; ".join(str(e.get("message", e)) for e in data["errors"])
    return str(data)


__all__ = ["DEFAULT_DEVOPS_URL", "DevOpsAPIHttpClient", "DevOpsAPIResponse"]
