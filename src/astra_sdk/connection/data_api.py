"""
HTTP client for the Data API.

Every command is a single POST of a one-key JSON object to
``<endpoint>/<api path>[/<keyspace>[/<collection or table>]]``.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from ..debug import CommandLog, record_command, stopwatch
from ..events import (
    CommandFailedEvent,
    CommandStartedEvent,
    CommandSucceededEvent,
    CommandWarningsEvent,
    EventHub,
    new_request_id,
)
from ..exceptions import DataAPIHttpError, DataAPIResponseError, SerDesError
from ..protocol import CommandTarget, DataAPIResponse, dumps, loads
from .base import BaseHttpClient

logger = logging.getLogger(__name__)


class DataAPIHttpClient(BaseHttpClient):
    """
    Stateless Data API client.

    One instance is shared by a ``Db`` and every collection and table it
    spawns; each of those passes its own ``EventHub`` and target per call.

    Args:
        endpoint: Database API endpoint, e.g. ``https://<id>-<region>.apps.astra.datastax.com``.
        token: Application token, sent in the ``Token`` header.
        api_path: Path prefix for commands.
        timeout_ms: Default per-request timeout.
        additional_headers: Extra headers for every request.
        caller: ``(name, version)`` pairs for the User-Agent.
        events: Default hub for command events.
        transport: Optional ``httpx`` transport.
    """

    def __init__(
        self,
        endpoint: str,
        token: str | None,
        *,
        api_path: str = "api/json/v1",
        timeout_ms: int = 15_000,
        additional_headers: Mapping[str, str] | None = None,
        caller: Sequence[tuple[str, str | None]] = (),
        events: EventHub | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            endpoint,
            token,
            timeout_ms=timeout_ms,
            additional_headers=additional_headers,
            caller=caller,
            transport=transport,
        )
        self.api_path = api_path.strip("/")
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
            h["Token"] = self.token
        return h

    async def execute_command(
        self,
        command: dict[str, Any],
        *,
        target: CommandTarget | None = None,
        big_numbers_present: bool = False,
        parse_big_numbers: bool = False,
        timeout_ms: int | None = None,
        events: EventHub | None = None,
    ) -> DataAPIResponse:
        """
        Execute one Data API command.

        Args:
            command: ``{name: body}``, already serialized to wire types.
            target: Keyspace and collection/table the command is for.
            big_numbers_present: Serialization side-channel flag; encodes
                ``Decimal`` values as bare JSON numbers.
            parse_big_numbers: Decode non-integer numbers as ``Decimal``.
            timeout_ms: Overrides the default request timeout.
            events: Hub to emit command events on (defaults to the client's).

        Returns:
            The parsed response.

        Raises:
            DataAPIHttpError: On HTTP status >= 400 other than 401.
            DataAPIResponseError: If the response carries errors.
            DataAPITimeoutError: If the request times out.
            DataAPIConnectionError: On transport failures.
        """
        target = target or CommandTarget()
        events = events or self.events
        command_name = next(iter(command), "<empty>")
        path = target.path(self.api_path)
        request_id = new_request_id()

        if events is not None:
            await events.emit(
                CommandStartedEvent(
                    request_id=request_id,
                    command_name=command_name,
                    target=str(target),
                    command=command,
                    timeout_ms=timeout_ms if timeout_ms is not None else self.timeout_ms,
                )
            )

        logger.debug(f"POST {path} ({command_name})")
        elapsed_ms = stopwatch()

        try:
            response = await self._request(
                "POST",
                path,
                content=dumps(command, big_numbers=big_numbers_present),
                timeout_ms=timeout_ms,
            )

            if response.status_code >= 400 and response.status_code != 401:
                raise DataAPIHttpError(response.status_code, response.text)

            try:
                body = loads(response.content, big_numbers=parse_big_numbers)
            except ValueError as e:
                raise SerDesError(f"Could not decode Data API response as JSON: {e}") from e

            parsed = DataAPIResponse.from_dict(body if isinstance(body, dict) else {})

            if parsed.warnings:
                for warning in parsed.warnings:
                    logger.warning(f"Data API warning for {command_name} on {target}: {warning.get('message', warning)}")
                if events is not None:
                    await events.emit(
                        CommandWarningsEvent(
                            request_id=request_id,
                            command_name=command_name,
                            target=str(target),
                            command=command,
                            warnings=parsed.warnings,
                        )
                    )

            if parsed.is_error:
                raise DataAPIResponseError(command, parsed.raw)

        except Exception as e:
            duration_ms = elapsed_ms()
            record_command(CommandLog(command_name, str(target), duration_ms, e))
            if events is not None:
                await events.emit(
                    CommandFailedEvent(
                        request_id=request_id,
                        command_name=command_name,
                        target=str(target),
                        command=command,
                        duration_ms=duration_ms,
                        error=e,
                    )
                )
            raise

        duration_ms = elapsed_ms()
        record_command(CommandLog(command_name, str(target), duration_ms))
        if events is not None:
            await events.emit(
                CommandSucceededEvent(
                    request_id=request_id,
                    command_name=command_name,
                    target=str(target),
                    command=command,
                    duration_ms=duration_ms,
                    response=parsed.raw,
                )
            )
        return parsed


__all__ = ["DataAPIHttpClient"]
