"""
Shared plumbing for collections and tables.

A data source runs commands against ``<keyspace>/<name>``, serializes what
it sends with its ``SerDes``, deserializes what comes back, and owns the
paging and chunking logic both universes share.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator

from .cursors import FindCursor, Page, PageRequest
from .cursors.base import CursorOptions
from .datatypes import DataAPIVector
from .events import EventHub
from .exceptions import DataAPIResponseError, DataAPITimeoutError, InsertManyError
from .options import TimeoutCategory, TimeoutOptions
from .protocol import CommandTarget, DataAPIResponse
from .serdes import SerDes
from .types import InsertManyResult
from .utils import chunked, drop_none, validate_identifier

if TYPE_CHECKING:
    from .db import Db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def method_timeout(timeout_ms: int | None, what: str) -> AsyncIterator[None]:
    """Bound a multi-request operation; ``None``/``0`` means no bound."""
    try:
        async with asyncio.timeout(timeout_ms / 1000 if timeout_ms else None):
            yield
    except TimeoutError as e:
        raise DataAPITimeoutError(f"{what} timed out after {timeout_ms}ms", timeout_ms) from e


class DataSource(ABC):
    """
    Base for ``Collection`` and ``Table``.

    Args:
        db: The owning database.
        name: Collection or table name.
        keyspace: Overrides the database's working keyspace.
        timeout_defaults: Overrides the database's timeouts.
    """

    kind: str = "source"

    def __init__(
        self,
        db: Db,
        name: str,
        *,
        keyspace: str | None = None,
        timeout_defaults: TimeoutOptions | None = None,
    ):
        validate_identifier(name, f"{self.kind} name")
        self.db = db
        self.name = name
        self.keyspace = keyspace or db.keyspace
        validate_identifier(self.keyspace, "keyspace name")

        self._http = db._http
        self.timeouts = db.timeouts.merge(timeout_defaults)
        self.events: EventHub = db.events.child(type(self))
        self._serdes = self._build_serdes()

    @abstractmethod
    def _build_serdes(self) -> SerDes: ...

    @property
    @abstractmethod
    def _target(self) -> CommandTarget: ...

    @property
    def _parse_big_numbers(self) -> bool:
        return False

    @property
    def full_name(self) -> str:
        return f"{self.keyspace}.{self.name}"

    @property
    def serdes(self) -> SerDes:
        return self._serdes

    def __repr__(self) -> str:
        return f'{type(self).__name__}(keyspace="{self.keyspace}", name="{self.name}")'

    # Command execution

    def _timeout(self, category: TimeoutCategory) -> int:
        return self.timeouts.get(category)

    async def _run(
        self,
        name: str,
        payload: dict[str, Any],
        *,
        big_numbers: bool = False,
        timeout_ms: int | None = None,
        target: CommandTarget | None = None,
    ) -> DataAPIResponse:
        return await self._http.execute_command(
            {name: payload},
            target=target or self._target,
            big_numbers_present=big_numbers,
            parse_big_numbers=self._parse_big_numbers,
            timeout_ms=timeout_ms if timeout_ms is not None else self._timeout("request_timeout_ms"),
            events=self.events,
        )

    def _serialize(self, *values: Any) -> tuple[list[Any], bool]:
        """Serialize several values; the big-number flag covers all of them."""
        out: list[Any] = []
        big_numbers = False
        for value in values:
            if value is None:
                out.append(None)
                continue
            wire, flag = self._serdes.serialize(value)
            out.append(wire)
            big_numbers = big_numbers or flag
        return out, big_numbers

    def _deserialize(self, value: Any, response: DataAPIResponse) -> Any:
        return self._serdes.deserialize(value, response.raw)

    def _deserialize_records(self, records: list[Any], response: DataAPIResponse) -> list[Any]:
        if not records:
            return []
        return self._serdes.deserialize_many(records, response.raw)

    def _deserialize_inserted_id(self, value: Any, response: DataAPIResponse) -> Any:
        return self._serdes.deserialize(value, response.raw)

    # Reads

    def _find_cursor(
        self,
        filter: dict[str, Any] | None,
        *,
        projection: dict[str, Any] | None,
        sort: dict[str, Any] | None,
        limit: int | None,
        skip: int | None,
        include_similarity: bool | None,
        include_sort_vector: bool | None,
        timeout_ms: int | None,
    ) -> FindCursor[Any]:
        options = CursorOptions(
            filter=filter or {},
            projection=projection,
            sort=sort,
            limit=limit or None,
            skip=skip,
            include_similarity=include_similarity,
            include_sort_vector=include_sort_vector,
            timeout_ms=timeout_ms,
        )
        return FindCursor(self._fetch_find_page, options, source=self.full_name)

    def _page_payload(self, request: PageRequest) -> tuple[dict[str, Any], bool]:
        (filter, sort), big_numbers = self._serialize(request.filter, request.sort)
        options = drop_none({**request.options, "pageState": request.page_state})
        payload = drop_none(
            {
                "filter": filter,
                "sort": sort,
                "projection": request.projection,
                "options": options or None,
            }
        )
        return payload, big_numbers

    async def _fetch_find_page(self, request: PageRequest) -> Page:
        payload, big_numbers = self._page_payload(request)
        response = await self._run("find", payload, big_numbers=big_numbers)
        return Page(
            records=self._deserialize_records(response.documents, response),
            next_page_state=response.next_page_state,
            sort_vector=_sort_vector(response),
        )

    async def _find_one(
        self,
        filter: dict[str, Any] | None,
        *,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        skip: int | None = None,
        include_similarity: bool | None = None,
        timeout_ms: int | None = None,
    ) -> Any:
        (wire_filter, wire_sort), big_numbers = self._serialize(filter or {}, sort)
        options = drop_none({"skip": skip, "includeSimilarity": include_similarity})
        payload = drop_none(
            {"filter": wire_filter, "sort": wire_sort, "projection": projection, "options": options or None}
        )
        response = await self._run("findOne", payload, big_numbers=big_numbers, timeout_ms=timeout_ms)
        document = response.document
        return None if document is None else self._deserialize(document, response)

    # Writes

    async def _insert_one(self, document: dict[str, Any], timeout_ms: int | None = None) -> Any:
        (wire,), big_numbers = self._serialize(document)
        response = await self._run("insertOne", {"document": wire}, big_numbers=big_numbers, timeout_ms=timeout_ms)
        return self._deserialize_inserted_id(response.status["insertedIds"][0], response)

    async def _insert_many(
        self,
        documents: list[dict[str, Any]],
        *,
        ordered: bool,
        chunk_size: int,
        concurrency: int,
        timeout_ms: int | None,
    ) -> InsertManyResult:
        if not documents:
            return InsertManyResult([])

        chunks = chunked(list(documents), chunk_size)
        timeout_ms = timeout_ms if timeout_ms is not None else self._timeout("general_method_timeout_ms")

        async with method_timeout(timeout_ms, f"insert_many into {self.full_name}"):
            if ordered:
                return await self._insert_chunks_ordered(chunks)
            return await self._insert_chunks_unordered(chunks, concurrency)

    async def _insert_chunk(self, chunk: list[dict[str, Any]], ordered: bool) -> list[Any]:
        wire, big_numbers = self._serialize(*chunk)
        response = await self._run(
            "insertMany",
            {"documents": wire, "options": {"ordered": ordered}},
            big_numbers=big_numbers,
        )
        return [self._deserialize_inserted_id(i, response) for i in response.status.get("insertedIds", [])]

    def _partial_ids(self, error: Exception) -> list[Any]:
        if not isinstance(error, DataAPIResponseError):
            return []
        partial = DataAPIResponse.from_dict(error.raw_response)
        return [self._deserialize_inserted_id(i, partial) for i in partial.status.get("insertedIds", [])]

    async def _insert_chunks_ordered(self, chunks: list[list[dict[str, Any]]]) -> InsertManyResult:
        inserted: list[Any] = []
        for chunk in chunks:
            try:
                inserted.extend(await self._insert_chunk(chunk, ordered=True))
            except (DataAPIResponseError, DataAPITimeoutError) as e:
                inserted.extend(self._partial_ids(e))
                raise InsertManyError(f"insert_many into {self.full_name} failed: {e}", inserted, [e]) from e
        return InsertManyResult(inserted)

    async def _insert_chunks_unordered(self, chunks: list[list[dict[str, Any]]], concurrency: int) -> InsertManyResult:
        semaphore = asyncio.Semaphore(max(concurrency, 1))

        async def run(chunk: list[dict[str, Any]]) -> list[Any]:
            async with semaphore:
                return await self._insert_chunk(chunk, ordered=False)

        results = await asyncio.gather(*(run(c) for c in chunks), return_exceptions=True)

        inserted: list[Any] = []
        errors: list[Exception] = []
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                errors.append(result)
                inserted.extend(self._partial_ids(result))
            else:
                inserted.extend(result)

        if errors:
            logger.debug(f"insert_many into {self.full_name}: {len(errors)} of {len(chunks)} chunks failed")
            raise InsertManyError(
                f"insert_many into {self.full_name} failed for {len(errors)} of {len(chunks)} chunks: {errors[0]}",
                inserted,
                errors,
            ) from errors[0]
        return InsertManyResult(inserted)

    async def _count(self, filter: dict[str, Any] | None, timeout_ms: int | None) -> DataAPIResponse:
        (wire_filter,), big_numbers = self._serialize(filter or {})
        return await self._run("countDocuments", {"filter": wire_filter}, big_numbers=big_numbers, timeout_ms=timeout_ms)

    async def _estimated_count(self, timeout_ms: int | None) -> int:
        response = await self._run("estimatedDocumentCount", {}, timeout_ms=timeout_ms)
        return response.status["count"]

    def _with_page_state(self, payload: dict[str, Any], page_state: str | None) -> dict[str, Any]:
        options = {**(payload.get("options") or {}), "pageState": page_state}
        return drop_none({**payload, "options": drop_none(options) or None})


def _sort_vector(response: DataAPIResponse) -> DataAPIVector | None:
    raw = response.status.get("sortVector")
    return None if raw is None else DataAPIVector.from_wire(raw)


__all__ = ["DataSource", "method_timeout"]
