"""
Data API command and response message formats.

A command is a single-key JSON object (``{"find": {...}}``) POSTed to
``<endpoint>/<api path>[/<keyspace>[/<collection or table>]]``. A response
carries any of ``data``, ``status`` and ``errors``.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CommandTarget:
    """Where a command is sent: the database, a keyspace, or one collection/table."""

    keyspace: str | None = None
    collection: str | None = None
    table: str | None = None

    def __post_init__(self) -> None:
        if self.collection and self.table:
            raise ValueError("A command can target a collection or a table, not both")
        if (self.collection or self.table) and not self.keyspace:
            raise ValueError("A keyspace is required to target a collection or table")

    @property
    def source(self) -> str | None:
        return self.collection or self.table

    def path(self, api_path: str) -> str:
        parts = [api_path.strip("/")]
        if self.keyspace:
            parts.append(self.keyspace)
        if self.source:
            parts.append(self.source)
        return "/" + "/".join(p for p in parts if p)

    def __str__(self) -> str:
        if self.source:
            return f"{self.keyspace}.{self.source}"
        return self.keyspace or "<database>"


@dataclass
class DataAPIResponse:
    """
    Parsed Data API response.

    Attributes:
        data: ``data`` object (documents, nextPageState, ...)
        status: ``status`` object (insertedIds, count, schemas, warnings, ...)
        errors: ``errors`` array
        raw: The whole decoded body, kept for schema lookups
    """

    data: dict[str, Any] = field(default_factory=dict)
    status: dict[str, Any] = field(default_factory=dict)
    errors: list[dict[str, Any]] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, body: dict[str, Any]) -> "DataAPIResponse":
        return cls(
            data=body.get("data") or {},
            status=body.get("status") or {},
            errors=body.get("errors") or [],
            raw=body,
        )

    @property
    def is_error(self) -> bool:
        return bool(self.errors)

    @property
    def warnings(self) -> list[dict[str, Any]]:
        return self.status.get("warnings") or []

    @property
    def documents(self) -> list[Any]:
        return self.data.get("documents") or []

    @property
    def document(self) -> Any:
        return self.data.get("document")

    @property
    def next_page_state(self) -> str | None:
        return self.data.get("nextPageState")


__all__ = ["CommandTarget", "DataAPIResponse"]
