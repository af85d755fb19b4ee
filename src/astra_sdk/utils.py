import re
from typing import Any

from .exceptions import InvalidOptionsError

# Shared identifier validation regex for keyspaces, collections and tables.
SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]{0,47}$")


def validate_identifier(name: str, context: str = "identifier") -> None:
    """Validate a keyspace, collection or table name.

    Raises:
        InvalidOptionsError: If the name isn't 1-48 letters, digits or
            underscores starting with a letter.
    """
    if not isinstance(name, str) or not SAFE_IDENTIFIER_RE.match(name):
        raise InvalidOptionsError(
            f"Invalid {context}: {name!r}. "
            "Only letters, digits, and underscores are allowed "
            "(must start with a letter, at most 48 characters)."
        )


def normalize_endpoint(endpoint: str) -> str:
    """Strip trailing slashes so paths can be joined with a single '/'."""
    if not endpoint.startswith(("http://", "https://")):
        raise InvalidOptionsError(f"Invalid endpoint {endpoint!r}; expected an http(s) URL")
    return endpoint.rstrip("/")


def drop_none(data: dict[str, Any]) -> dict[str, Any]:
    """Omit keys whose value is ``None``; the Data API treats absent and null options differently."""
    return {k: v for k, v in data.items() if v is not None}


def chunked(items: list[Any], size: int) -> list[list[Any]]:
    if size < 1:
        raise InvalidOptionsError(f"chunk_size must be positive, got {size}")
    return [items[i : i + size] for i in range(0, len(items), size)]


__all__ = ["SAFE_IDENTIFIER_RE", "chunked", "drop_none", "normalize_endpoint", "validate_identifier"]
