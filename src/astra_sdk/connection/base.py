"""
Base HTTP client shared by the Data API and DevOps API clients.

Each request is independent; authentication travels in headers. The
underlying ``httpx.AsyncClient`` is created on first use (or by
``connect()``) and released by ``close()``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence, Self

import httpx

from .._version import __version__
from ..exceptions import DataAPIConnectionError, DataAPITimeoutError


def build_user_agent(caller: Sequence[tuple[str, str | None]] = ()) -> str:
    """``"<caller>/<version> ... astra-data-sdk/<version>"``, callers outermost first."""
    parts = [f"{name}/{version}" if version else name for name, version in caller]
    parts.append(f"astra-data-sdk/{__version__}")
    return " ".join(parts)


class BaseHttpClient(ABC):
    """
    Abstract base class for the API clients.

    Args:
        base_url: Scheme and host (plus any fixed prefix) of the API.
        token: Application token.
        timeout_ms: Default per-request timeout; ``0`` disables it.
        additional_headers: Extra headers sent with every request.
        caller: ``(name, version)`` pairs for the User-Agent.
        transport: Optional ``httpx`` transport (e.g. ``httpx.MockTransport``
            in tests).
    """

    timeout_error: type[DataAPITimeoutError] | Any = DataAPITimeoutError

    def __init__(
        self,
        base_url: str,
        token: str | None,
        *,
        timeout_ms: int = 15_000,
        additional_headers: Mapping[str, str] | None = None,
        caller: Sequence[tuple[str, str | None]] = (),
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_ms = timeout_ms
        self.additional_headers = dict(additional_headers or {})
        self.user_agent = build_user_agent(caller)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    @abstractmethod
    def headers(self) -> dict[str, str]:
        """Headers sent with every request."""
        ...

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> Self:
        """Create the HTTP client. Returns self for fluent API."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, transport=self._transport)
        return self

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        return await self.connect()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        content: str | bytes | None = None,
        timeout_ms: int | None = None,
    ) -> httpx.Response:
        """
        Send one request.

        Raises:
            DataAPITimeoutError: (or the subclass's ``timeout_error``) if the
                request exceeds ``timeout_ms``.
            DataAPIConnectionError: On any other transport failure.
        """
        await self.connect()
        assert self._client is not None

        timeout_ms = self.timeout_ms if timeout_ms is None else timeout_ms
        timeout = httpx.Timeout(timeout_ms / 1000) if timeout_ms else httpx.Timeout(None)

        try:
            return await self._client.request(method, path, content=content, headers=self.headers, timeout=timeout)
        except httpx.TimeoutException as e:
            raise self.timeout_error(f"{method} {path} timed out after {timeout_ms}ms", timeout_ms) from e
        except httpx.RequestError as e:
            raise DataAPIConnectionError(f"Request failed: {e}") from e


__all__ = ["BaseHttpClient", "build_user_agent"]
