"""
Option dataclasses.

Options are immutable and layered: the client's options are the defaults
for every ``Db`` it spawns, a ``Db``'s for every collection and table.
``merge`` lays a child on top of its parent; fields the child leaves unset
(``None``) inherit the parent's value.

Example::

    client = DataAPIClient(token, options=DataAPIClientOptions(
        timeout_defaults=TimeoutOptions(request_timeout_ms=5000),
        collection_serdes=CollectionSerDesOptions(enable_big_numbers={"*": "decimal"}),
    ))
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Literal, Mapping, Self, Sequence

from .exceptions import InvalidOptionsError
from .serdes import Codec, CollectionSerDes, KeyTransformer, TableSerDes

Environment = Literal["astra", "dse", "hcd", "cassandra", "other"]
ENVIRONMENTS: tuple[str, ...] = ("astra", "dse", "hcd", "cassandra", "other")

TimeoutCategory = Literal[
    "request_timeout_ms",
    "general_method_timeout_ms",
    "collection_admin_timeout_ms",
    "table_admin_timeout_ms",
    "database_admin_timeout_ms",
    "keyspace_admin_timeout_ms",
]


def _merge_fields(parent: Any, child: Any | None) -> Any:
    if child is None:
        return parent
    updates = {f.name: getattr(child, f.name) for f in fields(child) if getattr(child, f.name) is not None}
    return replace(parent, **updates)


@dataclass(frozen=True)
class TimeoutOptions:
    """
    Timeouts in milliseconds. ``0`` disables a timeout.

    ``request_timeout_ms`` bounds each HTTP request; the others bound whole
    operations, which may span several requests (paginated ``to_list``,
    chunked ``insert_many``, polled admin operations).
    """

    request_timeout_ms: int | None = None
    general_method_timeout_ms: int | None = None
    collection_admin_timeout_ms: int | None = None
    table_admin_timeout_ms: int | None = None
    database_admin_timeout_ms: int | None = None
    keyspace_admin_timeout_ms: int | None = None

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 0):
                raise InvalidOptionsError(f"{f.name} must be a non-negative integer, got {value!r}")

    def merge(self, child: TimeoutOptions | None) -> TimeoutOptions:
        return _merge_fields(self, child)

    def get(self, category: TimeoutCategory) -> int:
        value = getattr(self, category)
        if value is None:
            value = getattr(DEFAULT_TIMEOUTS, category)
        return value


DEFAULT_TIMEOUTS = TimeoutOptions(
    request_timeout_ms=15_000,
    general_method_timeout_ms=30_000,
    collection_admin_timeout_ms=60_000,
    table_admin_timeout_ms=30_000,
    database_admin_timeout_ms=600_000,
    keyspace_admin_timeout_ms=30_000,
)


@dataclass(frozen=True)
class CollectionSerDesOptions:
    """Serialization options for collections.

    ``codecs`` accumulate across layers (parent codecs first); every other
    field is overridden by the child when set.
    """

    codecs: Sequence[Codec] = ()
    key_transformer: KeyTransformer | None = None
    mutate_in_place: bool | None = None
    enable_big_numbers: Mapping[str, Any] | Callable[..., Any] | None = None

    def merge(self, child: CollectionSerDesOptions | None) -> CollectionSerDesOptions:
        if child is None:
            return self
        merged = _merge_fields(self, child)
        return replace(merged, codecs=(*self.codecs, *child.codecs))

    def build(self) -> CollectionSerDes:
        return CollectionSerDes(
            tuple(self.codecs),
            key_transformer=self.key_transformer,
            mutate_in_place=bool(self.mutate_in_place),
            enable_big_numbers=self.enable_big_numbers,
        )


@dataclass(frozen=True)
class TableSerDesOptions:
    """Serialization options for tables. ``sparse_data=True`` turns off sparse population."""

    codecs: Sequence[Codec] = ()
    key_transformer: KeyTransformer | None = None
    mutate_in_place: bool | None = None
    sparse_data: bool | None = None

    def merge(self, child: TableSerDesOptions | None) -> TableSerDesOptions:
        if child is None:
            return self
        merged = _merge_fields(self, child)
        return replace(merged, codecs=(*self.codecs, *child.codecs))

    def build(self) -> TableSerDes:
        return TableSerDes(
            tuple(self.codecs),
            key_transformer=self.key_transformer,
            mutate_in_place=bool(self.mutate_in_place),
            sparse_data=bool(self.sparse_data),
        )


@dataclass(frozen=True)
class DataAPIClientOptions:
    """
    Root options for a ``DataAPIClient``.

    Attributes:
        environment: Deployment flavour; only ``astra`` has a DevOps API.
        token: Default token for every database and admin.
        timeout_defaults: Timeouts inherited by every db, collection and table.
        collection_serdes: Collection serialization defaults.
        table_serdes: Table serialization defaults.
        additional_headers: Extra HTTP headers sent with every request
            (e.g. embedding provider keys).
        caller: ``(name, version)`` pairs prepended to the User-Agent.
        api_path: Data API path prefix.
        devops_base_url: DevOps API base URL.
    """

    environment: Environment = "astra"
    token: str | None = None
    timeout_defaults: TimeoutOptions | None = None
    collection_serdes: CollectionSerDesOptions | None = None
    table_serdes: TableSerDesOptions | None = None
    additional_headers: Mapping[str, str] | None = None
    caller: Sequence[tuple[str, str | None]] = ()
    api_path: str | None = None
    devops_base_url: str | None = None

    def __post_init__(self) -> None:
        if self.environment not in ENVIRONMENTS:
            raise InvalidOptionsError(
                f"Invalid environment {self.environment!r}; expected one of {', '.join(ENVIRONMENTS)}"
            )

    @property
    def timeouts(self) -> TimeoutOptions:
        return DEFAULT_TIMEOUTS.merge(self.timeout_defaults)

    @property
    def resolved_api_path(self) -> str:
        if self.api_path is not None:
            return self.api_path
        return "api/json/v1" if self.environment == "astra" else "v1"

    def with_overrides(self, **changes: Any) -> Self:
        return replace(self, **changes)


@dataclass(frozen=True)
class DbOptions:
    """Per-database overrides layered on top of the client options."""

    keyspace: str | None = None
    token: str | None = None
    timeout_defaults: TimeoutOptions | None = None
    collection_serdes: CollectionSerDesOptions | None = None
    table_serdes: TableSerDesOptions | None = None
    additional_headers: Mapping[str, str] | None = None


__all__ = [
    "DEFAULT_TIMEOUTS",
    "CollectionSerDesOptions",
    "DataAPIClientOptions",
    "DbOptions",
    "Environment",
    "TableSerDesOptions",
    "TimeoutCategory",
    "TimeoutOptions",
]
