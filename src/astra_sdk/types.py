"""
Type definitions for operation results.

Strongly-typed wrappers around Data API and DevOps API responses instead
of raw dicts.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class InsertOneResult:
    """
    Result of an insert_one.

    Attributes:
        inserted_id: The document ``_id``, or for tables the primary key as a
            ``{column: value}`` dict
    """

    inserted_id: Any


@dataclass
class InsertManyResult:
    """Result of an insert_many; ids are in server acknowledgement order."""

    inserted_ids: list[Any] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)


@dataclass
class UpdateResult:
    """
    Result of an update or replace.

    Attributes:
        matched_count: Documents matching the filter
        modified_count: Documents actually changed
        upserted_id: Id of the inserted document when an upsert created one
    """

    matched_count: int = 0
    modified_count: int = 0
    upserted_id: Any = None

    @property
    def upserted_count(self) -> int:
        return 0 if self.upserted_id is None else 1

    @classmethod
    def from_status(cls, status: dict[str, Any], upserted_id: Any = None) -> "UpdateResult":
        return cls(
            matched_count=status.get("matchedCount", 0),
            modified_count=status.get("modifiedCount", 0),
            upserted_id=upserted_id,
        )

    def __add__(self, other: "UpdateResult") -> "UpdateResult":
        return UpdateResult(
            matched_count=self.matched_count + other.matched_count,
            modified_count=self.modified_count + other.modified_count,
            upserted_id=self.upserted_id if self.upserted_id is not None else other.upserted_id,
        )


@dataclass
class DeleteResult:
    """Result of a delete. ``deleted_count`` is -1 when the server doesn't count (table deletes)."""

    deleted_count: int = 0


@dataclass
class CollectionDescriptor:
    """An entry of ``findCollections`` with ``explain`` on."""

    name: str
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CollectionDescriptor":
        return cls(name=data["name"], options=data.get("options") or {})


@dataclass
class IndexDescriptor:
    """An entry of ``listIndexes`` with ``explain`` on."""

    name: str
    definition: dict[str, Any] = field(default_factory=dict)
    index_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexDescriptor":
        return cls(name=data["name"], definition=data.get("definition") or {}, index_type=data.get("indexType"))


@dataclass
class DatabaseInfo:
    """
    A database as described by the DevOps API.

    Attributes:
        id: Database id
        name: Database name
        status: Lifecycle status (ACTIVE, PENDING, MAINTENANCE, ...)
        cloud_provider: AWS, GCP or AZURE
        region: Primary region
        keyspaces: Keyspaces the database holds
        raw: The full DevOps API payload
    """

    id: str
    name: str
    status: str
    cloud_provider: str | None = None
    region: str | None = None
    keyspaces: list[str] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DatabaseInfo":
        info = data.get("info") or {}
        keyspaces = info.get("keyspaces") or ([info["keyspace"]] if info.get("keyspace") else [])
        return cls(
            id=data["id"],
            name=info.get("name", ""),
            status=data.get("status", "UNKNOWN"),
            cloud_provider=info.get("cloudProvider"),
            region=info.get("region"),
            keyspaces=list(keyspaces),
            raw=data,
        )


__all__ = [
    "CollectionDescriptor",
    "DatabaseInfo",
    "DeleteResult",
    "IndexDescriptor",
    "InsertManyResult",
    "InsertOneResult",
    "UpdateResult",
]
