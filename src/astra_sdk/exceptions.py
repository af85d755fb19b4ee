"""
Astra Data API SDK Exceptions.

Custom exception hierarchy for the SDK.
"""

from dataclasses import dataclass, field
from typing import Any


class DataAPIError(Exception):
    """Base exception for all Data API SDK errors."""

    def __init__(self, message: str, code: int | str | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidOptionsError(DataAPIError, ValueError):
    """Raised when an option or identifier is invalid."""

    pass


class DataAPIConnectionError(DataAPIError):
    """Raised when the HTTP transport fails before a response is received."""

    pass


class DataAPITimeoutError(DataAPIError):
    """Raised when a request or page fetch exceeds its deadline."""

    def __init__(self, message: str, timeout_ms: int | None = None):
        self.timeout_ms = timeout_ms
        super().__init__(message)


class DataAPIHttpError(DataAPIError):
    """Raised when the Data API answers with an HTTP error status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP error: {status_code} - {body}", code=status_code)


@dataclass(frozen=True)
class DataAPIErrorDescriptor:
    """A single entry of the ``errors`` array of a Data API response."""

    message: str
    error_code: str | None = None
    title: str | None = None
    family: str | None = None
    scope: str | None = None
    id: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DataAPIErrorDescriptor":
        known = {"message", "errorCode", "title", "family", "scope", "id"}
        return cls(
            message=str(data.get("message", "")),
            error_code=data.get("errorCode"),
            title=data.get("title"),
            family=data.get("family"),
            scope=data.get("scope"),
            id=data.get("id"),
            attributes={k: v for k, v in data.items() if k not in known},
        )


class DataAPIResponseError(DataAPIError):
    """Raised when a response carries a non-empty ``errors`` array."""

    def __init__(self, command: dict[str, Any], raw_response: dict[str, Any]):
        self.command = command
        self.raw_response = raw_response
        self.error_descriptors = [DataAPIErrorDescriptor.from_dict(e) for e in raw_response.get("errors") or []]

        first = self.error_descriptors[0] if self.error_descriptors else None
        message = first.message if first else "Unknown Data API error"
        if len(self.error_descriptors) > 1:
            message += f" (+ {len(self.error_descriptors) - 1} more errors)"

        super().__init__(message, code=first.error_code if first else None)

    @property
    def command_name(self) -> str | None:
        """Name of the command that failed."""
        return next(iter(self.command), None)


class InsertManyError(DataAPIError):
    """Raised when one or more chunks of an ``insert_many`` fail.

    ``inserted_ids`` holds every id the server acknowledged before (or
    alongside) the failure, in server order.
    """

    def __init__(self, message: str, inserted_ids: list[Any], errors: list[Exception]):
        self.inserted_ids = inserted_ids
        self.errors = errors
        super().__init__(message)


class TooManyDocumentsToCountError(DataAPIError):
    """Raised when a count exceeds the caller's upper bound or the server's counting limit."""

    def __init__(self, limit: int, hit_server_limit: bool):
        self.limit = limit
        self.hit_server_limit = hit_server_limit
        reason = "server count limit" if hit_server_limit else "upper bound"
        super().__init__(f"Too many documents to count (exceeds the {reason} of {limit})")


class CursorError(DataAPIError):
    """Raised when a cursor is misconfigured or misused."""

    def __init__(self, message: str, cursor_state: str | None = None):
        self.cursor_state = cursor_state
        super().__init__(message)


class SerDesError(DataAPIError):
    """Raised when a value can't be serialized or deserialized."""

    pass


class TableSchemaError(SerDesError):
    """Raised when a table response lacks usable schema metadata."""

    pass


class NumCoercionError(SerDesError):
    """Raised when a number can't be coerced to the requested representation without loss."""

    def __init__(self, path: list[str | int], value: Any, from_type: str, to_type: str):
        self.path = path
        self.value = value
        self.from_type = from_type
        self.to_type = to_type
        joined = ".".join(str(p) for p in path)
        super().__init__(f"Failed to coerce value from {from_type} to {to_type} at path: {joined}")


class DevOpsAPIError(DataAPIError):
    """Raised when a DevOps API request fails or a resource enters an illegal state."""

    def __init__(self, message: str, code: int | None = None, body: Any = None):
        self.body = body
        super().__init__(message, code)


class DevOpsAPITimeoutError(DevOpsAPIError):
    """Raised when a long-running DevOps operation doesn't finish in time."""

    def __init__(self, message: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(message)
