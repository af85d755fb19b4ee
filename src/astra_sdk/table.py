"""
Tables: typed rows with a primary key.

Rows are deserialized against the schema the server sends back with each
response, so column types such as ``date``, ``set<text>`` or ``decimal``
come back as ``datetime.date``, ``set`` and ``Decimal``.

Example::

    table = db.table("games")
    await table.insert_one({"match_id": "m1", "round": 1, "winner": "Ada"})
    row = await table.find_one({"match_id": "m1", "round": 1})
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .cursors import FindCursor
from .data_source import DataSource
from .exceptions import DataAPIError, TooManyDocumentsToCountError
from .options import TableSerDesOptions, TimeoutOptions
from .protocol import CommandTarget, DataAPIResponse
from .schema import TableDefinition
from .serdes import TableSerDes
from .types import IndexDescriptor, InsertManyResult, InsertOneResult
from .utils import drop_none, validate_identifier

if TYPE_CHECKING:
    from .db import Db

Row = dict[str, Any]


class Table(DataSource):
    """
    A Data API table.

    Obtained from ``Db.table`` (no I/O) or ``Db.create_table``.

    Args:
        db: The owning database.
        name: Table name.
        keyspace: Overrides the database's working keyspace.
        timeout_defaults: Overrides the database's timeouts.
        serdes: Serialization options layered on top of the database's.
    """

    kind = "table"

    def __init__(
        self,
        db: Db,
        name: str,
        *,
        keyspace: str | None = None,
        timeout_defaults: TimeoutOptions | None = None,
        serdes: TableSerDesOptions | None = None,
    ):
        self._serdes_options = db.table_serdes.merge(serdes)
        super().__init__(db, name, keyspace=keyspace, timeout_defaults=timeout_defaults)

    def _build_serdes(self) -> TableSerDes:
        return self._serdes_options.build()

    @property
    def _target(self) -> CommandTarget:
        return CommandTarget(keyspace=self.keyspace, table=self.name)

    @property
    def _parse_big_numbers(self) -> bool:
        # varint and decimal columns can't round-trip through float
        return True

    def _deserialize_inserted_id(self, value: Any, response: DataAPIResponse) -> Any:
        return self._serdes.deserialize(value, response.raw, parsing_primary_key=True)

    # Rows

    async def insert_one(self, row: Row, *, timeout_ms: int | None = None) -> InsertOneResult:
        """Insert (or overwrite) a row. ``inserted_id`` is the primary key as a dict."""
        inserted_id = await self._insert_one(row, timeout_ms)
        return InsertOneResult(inserted_id)

    async def insert_many(
        self,
        rows: list[Row],
        *,
        ordered: bool = False,
        chunk_size: int = 50,
        concurrency: int = 8,
        timeout_ms: int | None = None,
    ) -> InsertManyResult:
        return await self._insert_many(
            rows,
            ordered=ordered,
            chunk_size=chunk_size,
            concurrency=1 if ordered else concurrency,
            timeout_ms=timeout_ms,
        )

    def find(
        self,
        filter: Row | None = None,
        *,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        limit: int | None = None,
        skip: int | None = None,
        include_similarity: bool | None = None,
        include_sort_vector: bool | None = None,
        timeout_ms: int | None = None,
    ) -> FindCursor[Row]:
        return self._find_cursor(
            filter,
            projection=projection,
            sort=sort,
            limit=limit,
            skip=skip,
            include_similarity=include_similarity,
            include_sort_vector=include_sort_vector,
            timeout_ms=timeout_ms,
        )

    async def find_one(
        self,
        filter: Row | None = None,
        *,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        include_similarity: bool | None = None,
        timeout_ms: int | None = None,
    ) -> Row | None:
        return await self._find_one(
            filter,
            projection=projection,
            sort=sort,
            include_similarity=include_similarity,
            timeout_ms=timeout_ms,
        )

    async def update_one(self, filter: Row, update: dict[str, Any], *, timeout_ms: int | None = None) -> None:
        """Apply ``$set``/``$unset`` to the row with the given full primary key (upserts)."""
        (wire_filter, wire_update), big_numbers = self._serialize(filter, update)
        await self._run(
            "updateOne", {"filter": wire_filter, "update": wire_update}, big_numbers=big_numbers, timeout_ms=timeout_ms
        )

    async def delete_one(self, filter: Row, *, timeout_ms: int | None = None) -> None:
        (wire_filter,), big_numbers = self._serialize(filter)
        await self._run("deleteOne", {"filter": wire_filter}, big_numbers=big_numbers, timeout_ms=timeout_ms)

    async def delete_many(self, filter: Row, *, timeout_ms: int | None = None) -> None:
        """Delete matching rows. Tables delete in a single command; no count is reported."""
        (wire_filter,), big_numbers = self._serialize(filter)
        await self._run(
            "deleteMany",
            {"filter": wire_filter},
            big_numbers=big_numbers,
            timeout_ms=timeout_ms if timeout_ms is not None else self._timeout("general_method_timeout_ms"),
        )

    async def count_rows(self, filter: Row | None = None, *, upper_bound: int, timeout_ms: int | None = None) -> int:
        response = await self._count(filter, timeout_ms)
        count = response.status["count"]
        if response.status.get("moreData"):
            raise TooManyDocumentsToCountError(count, hit_server_limit=True)
        if count > upper_bound:
            raise TooManyDocumentsToCountError(upper_bound, hit_server_limit=False)
        return count

    async def estimated_row_count(self, *, timeout_ms: int | None = None) -> int:
        return await self._estimated_count(timeout_ms)

    # Schema

    async def definition(self) -> TableDefinition:
        """The table's columns and primary key, as reported by ``listTables``."""
        for descriptor in await self.db.list_tables(keyspace=self.keyspace):
            if descriptor.name == self.name:
                return descriptor.definition
        raise DataAPIError(f"Table {self.full_name} not found")

    async def alter(self, operation: dict[str, Any]) -> None:
        """
        Alter the table.

        Example::

            await table.alter({"add": {"columns": {"score": "float"}}})
            await table.alter({"drop": {"columns": ["score"]}})
        """
        await self._run("alterTable", {"operation": operation}, timeout_ms=self._timeout("table_admin_timeout_ms"))

    async def create_index(
        self,
        name: str,
        column: str,
        *,
        options: dict[str, Any] | None = None,
        if_not_exists: bool = False,
    ) -> None:
        """Create a regular index; ``options`` holds ``caseSensitive``, ``normalize``, ``ascii``."""
        await self._create_index("createIndex", name, column, options, if_not_exists)

    async def create_vector_index(
        self,
        name: str,
        column: str,
        *,
        metric: str | None = None,
        source_model: str | None = None,
        if_not_exists: bool = False,
    ) -> None:
        options = drop_none({"metric": metric, "sourceModel": source_model})
        await self._create_index("createVectorIndex", name, column, options or None, if_not_exists)

    async def _create_index(
        self, command: str, name: str, column: str, options: dict[str, Any] | None, if_not_exists: bool
    ) -> None:
        validate_identifier(name, "index name")
        payload = {
            "name": name,
            "definition": drop_none({"column": column, "options": options}),
            "options": {"ifNotExists": if_not_exists},
        }
        await self._run(command, payload, timeout_ms=self._timeout("table_admin_timeout_ms"))

    async def list_indexes(self, *, names_only: bool = False) -> list[IndexDescriptor] | list[str]:
        response = await self._run(
            "listIndexes",
            {"options": {"explain": not names_only}},
            timeout_ms=self._timeout("table_admin_timeout_ms"),
        )
        indexes = response.status.get("indexes") or []
        if names_only:
            return list(indexes)
        return [IndexDescriptor.from_dict(i) for i in indexes]

    async def drop_index(self, name: str, *, if_exists: bool = False) -> None:
        """Drop an index. Indexes live at keyspace level, so this targets the keyspace."""
        validate_identifier(name, "index name")
        await self._run(
            "dropIndex",
            {"name": name, "options": {"ifExists": if_exists}},
            timeout_ms=self._timeout("table_admin_timeout_ms"),
            target=CommandTarget(keyspace=self.keyspace),
        )

    async def drop(self) -> None:
        await self.db.drop_table(self.name, keyspace=self.keyspace)


__all__ = ["Row", "Table"]
