"""
Collections: schemaless JSON documents.

Example::

    collection = db.collection("products")
    await collection.insert_one({"_id": "p1", "name": "Lamp", "price": 35})

    async for doc in collection.find({"price": {"$lt": 50}}):
        print(doc["name"])

    result = await collection.update_many({"tag": "sale"}, {"$set": {"price": 10}})
    print(result.modified_count)
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Literal

from .cursors import FindAndRerankCursor, FindCursor, Page, PageRequest, RerankedResult
from .cursors.base import CursorOptions
from .data_source import DataSource, _sort_vector, method_timeout
from .exceptions import DataAPIError, TooManyDocumentsToCountError
from .options import CollectionSerDesOptions, TimeoutOptions
from .protocol import CommandTarget
from .serdes import CollectionSerDes
from .types import DeleteResult, InsertManyResult, InsertOneResult, UpdateResult
from .utils import drop_none

if TYPE_CHECKING:
    from .db import Db

logger = logging.getLogger(__name__)

Document = dict[str, Any]
ReturnDocument = Literal["before", "after"]

# Projection that returns no fields, for replace_one
_EMPTY_PROJECTION = {"*": 0}


class Collection(DataSource):
    """
    A Data API collection.

    Obtained from ``Db.collection`` (no I/O) or ``Db.create_collection``.

    Args:
        db: The owning database.
        name: Collection name.
        keyspace: Overrides the database's working keyspace.
        timeout_defaults: Overrides the database's timeouts.
        serdes: Serialization options layered on top of the database's.
    """

    kind = "collection"

    def __init__(
        self,
        db: Db,
        name: str,
        *,
        keyspace: str | None = None,
        timeout_defaults: TimeoutOptions | None = None,
        serdes: CollectionSerDesOptions | None = None,
    ):
        self._serdes_options = db.collection_serdes.merge(serdes)
        super().__init__(db, name, keyspace=keyspace, timeout_defaults=timeout_defaults)

    def _build_serdes(self) -> CollectionSerDes:
        return self._serdes_options.build()

    @property
    def _target(self) -> CommandTarget:
        return CommandTarget(keyspace=self.keyspace, collection=self.name)

    @property
    def _parse_big_numbers(self) -> bool:
        return self._serdes.big_numbers_enabled  # type: ignore[attr-defined]

    # Inserts

    async def insert_one(self, document: Document, *, timeout_ms: int | None = None) -> InsertOneResult:
        """Insert a document; the server generates an ``_id`` when it has none."""
        inserted_id = await self._insert_one(document, timeout_ms)
        return InsertOneResult(inserted_id)

    async def insert_many(
        self,
        documents: list[Document],
        *,
        ordered: bool = False,
        chunk_size: int = 20,
        concurrency: int = 8,
        timeout_ms: int | None = None,
    ) -> InsertManyResult:
        """
        Insert documents in chunks.

        Args:
            documents: Documents to insert.
            ordered: Insert chunks one after the other, stopping at the first
                failing chunk. Unordered inserts run chunks concurrently.
            chunk_size: Documents per ``insertMany`` command.
            concurrency: Maximum chunks in flight (unordered only).
            timeout_ms: Deadline for the whole operation.

        Raises:
            InsertManyError: If a chunk fails; carries the ids inserted so far.
        """
        return await self._insert_many(
            documents,
            ordered=ordered,
            chunk_size=chunk_size,
            concurrency=1 if ordered else concurrency,
            timeout_ms=timeout_ms,
        )

    # Reads

    def find(
        self,
        filter: Document | None = None,
        *,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        limit: int | None = None,
        skip: int | None = None,
        include_similarity: bool | None = None,
        include_sort_vector: bool | None = None,
        timeout_ms: int | None = None,
    ) -> FindCursor[Document]:
        """Lazy cursor over the matching documents. No request is made until iteration."""
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
        filter: Document | None = None,
        *,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        include_similarity: bool | None = None,
        timeout_ms: int | None = None,
    ) -> Document | None:
        return await self._find_one(
            filter,
            projection=projection,
            sort=sort,
            include_similarity=include_similarity,
            timeout_ms=timeout_ms,
        )

    def find_and_rerank(
        self,
        filter: Document | None = None,
        *,
        sort: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
        limit: int | None = None,
        hybrid_limits: int | dict[str, int] | None = None,
        rerank_on: str | None = None,
        rerank_query: str | None = None,
        include_scores: bool | None = None,
        include_sort_vector: bool | None = None,
        timeout_ms: int | None = None,
    ) -> FindAndRerankCursor[RerankedResult[Document]]:
        """
        Hybrid search: vector and lexical candidates, merged and reranked server-side.

        ``sort`` is usually ``{"$hybrid": "query text"}`` or
        ``{"$hybrid": {"$vectorize": ..., "$lexical": ...}}``.
        """
        options = CursorOptions(
            filter=filter or {},
            projection=projection,
            sort=sort,
            limit=limit or None,
            include_sort_vector=include_sort_vector,
            timeout_ms=timeout_ms,
            extra=drop_none(
                {
                    "hybridLimits": hybrid_limits,
                    "rerankOn": rerank_on,
                    "rerankQuery": rerank_query,
                    "includeScores": include_scores,
                }
            ),
        )
        return FindAndRerankCursor(self._fetch_rerank_page, options, source=self.full_name)

    async def _fetch_rerank_page(self, request: PageRequest) -> Page:
        payload, big_numbers = self._page_payload(request)
        response = await self._run("findAndRerank", payload, big_numbers=big_numbers)

        documents = self._deserialize_records(response.documents, response)
        document_responses = response.status.get("documentResponses") or []
        records = []
        for i, document in enumerate(documents):
            raw_scores = document_responses[i].get("scores", {}) if i < len(document_responses) else {}
            records.append(RerankedResult(document, {k: float(v) for k, v in raw_scores.items()}))

        return Page(records=records, next_page_state=response.next_page_state, sort_vector=_sort_vector(response))

    async def distinct(
        self,
        key: str,
        filter: Document | None = None,
        *,
        timeout_ms: int | None = None,
    ) -> list[Any]:
        """
        Distinct values of ``key`` across the matching documents.

        Runs client-side over a full ``find``: list values are flattened
        and a dotted ``key`` descends into subdocuments. Can be slow on
        large collections.
        """
        segments = key.split(".")
        projection_path = ".".join(s for s in segments if not s.isdigit())
        timeout_ms = timeout_ms if timeout_ms is not None else self._timeout("general_method_timeout_ms")

        seen: set[str] = set()
        values: list[Any] = []
        async with method_timeout(timeout_ms, f"distinct on {self.full_name}"):
            async for document in self.find(filter, projection={projection_path: True}):
                for value in _extract_values(document, segments):
                    marker = _hash_key(value)
                    if marker not in seen:
                        seen.add(marker)
                        values.append(value)
        return values

    async def count_documents(
        self,
        filter: Document | None = None,
        *,
        upper_bound: int,
        timeout_ms: int | None = None,
    ) -> int:
        """
        Exact count of matching documents.

        Raises:
            TooManyDocumentsToCountError: If the count exceeds ``upper_bound``
                or the server's counting limit.
        """
        response = await self._count(filter, timeout_ms)
        count = response.status["count"]
        if response.status.get("moreData"):
            raise TooManyDocumentsToCountError(count, hit_server_limit=True)
        if count > upper_bound:
            raise TooManyDocumentsToCountError(upper_bound, hit_server_limit=False)
        return count

    async def estimated_document_count(self, *, timeout_ms: int | None = None) -> int:
        """Fast approximate count of all documents."""
        return await self._estimated_count(timeout_ms)

    # Updates

    async def update_one(
        self,
        filter: Document,
        update: dict[str, Any],
        *,
        sort: dict[str, Any] | None = None,
        upsert: bool = False,
        timeout_ms: int | None = None,
    ) -> UpdateResult:
        (wire_filter, wire_update, wire_sort), big_numbers = self._serialize(filter, update, sort)
        payload = drop_none(
            {"filter": wire_filter, "update": wire_update, "sort": wire_sort, "options": {"upsert": upsert}}
        )
        response = await self._run("updateOne", payload, big_numbers=big_numbers, timeout_ms=timeout_ms)
        return UpdateResult.from_status(response.status, self._upserted_id(response))

    async def update_many(
        self,
        filter: Document,
        update: dict[str, Any],
        *,
        upsert: bool = False,
        timeout_ms: int | None = None,
    ) -> UpdateResult:
        """
        Update every matching document.

        The server updates a bounded number of documents per command; this
        keeps issuing ``updateMany`` with the returned page state until
        the server reports no more, and sums the results.
        """
        (wire_filter, wire_update), big_numbers = self._serialize(filter, update)
        base = {"filter": wire_filter, "update": wire_update, "options": {"upsert": upsert}}
        timeout_ms = timeout_ms if timeout_ms is not None else self._timeout("general_method_timeout_ms")

        result = UpdateResult()
        page_state: str | None = None
        commands = 0
        async with method_timeout(timeout_ms, f"update_many on {self.full_name}"):
            while True:
                payload = self._with_page_state(base, page_state)
                response = await self._run("updateMany", payload, big_numbers=big_numbers)
                commands += 1
                result = result + UpdateResult.from_status(response.status, self._upserted_id(response))
                page_state = response.status.get("nextPageState")
                if not page_state:
                    break

        logger.debug(f"update_many on {self.full_name} took {commands} commands")
        return result

    async def replace_one(
        self,
        filter: Document,
        replacement: Document,
        *,
        sort: dict[str, Any] | None = None,
        upsert: bool = False,
        timeout_ms: int | None = None,
    ) -> UpdateResult:
        (wire_filter, wire_replacement, wire_sort), big_numbers = self._serialize(filter, replacement, sort)
        payload = drop_none(
            {
                "filter": wire_filter,
                "replacement": wire_replacement,
                "sort": wire_sort,
                "projection": _EMPTY_PROJECTION,
                "options": {"upsert": upsert, "returnDocument": "before"},
            }
        )
        response = await self._run("findOneAndReplace", payload, big_numbers=big_numbers, timeout_ms=timeout_ms)
        return UpdateResult.from_status(response.status, self._upserted_id(response))

    def _upserted_id(self, response: Any) -> Any:
        raw = response.status.get("upsertedId")
        return None if raw is None else self._deserialize_inserted_id(raw, response)

    # Deletes

    async def delete_one(
        self,
        filter: Document,
        *,
        sort: dict[str, Any] | None = None,
        timeout_ms: int | None = None,
    ) -> DeleteResult:
        (wire_filter, wire_sort), big_numbers = self._serialize(filter, sort)
        payload = drop_none({"filter": wire_filter, "sort": wire_sort})
        response = await self._run("deleteOne", payload, big_numbers=big_numbers, timeout_ms=timeout_ms)
        return DeleteResult(response.status.get("deletedCount", 0))

    async def delete_many(self, filter: Document, *, timeout_ms: int | None = None) -> DeleteResult:
        """
        Delete every matching document, repeating while the server reports more.

        An empty filter deletes the whole collection in one command and
        reports a count of -1.
        """
        (wire_filter,), big_numbers = self._serialize(filter)
        timeout_ms = timeout_ms if timeout_ms is not None else self._timeout("general_method_timeout_ms")

        deleted = 0
        async with method_timeout(timeout_ms, f"delete_many on {self.full_name}"):
            while True:
                response = await self._run("deleteMany", {"filter": wire_filter}, big_numbers=big_numbers)
                count = response.status.get("deletedCount", 0)
                if count == -1:
                    return DeleteResult(-1)
                deleted += count
                if not response.status.get("moreData"):
                    break
        return DeleteResult(deleted)

    # Find-and-modify

    async def find_one_and_update(
        self,
        filter: Document,
        update: dict[str, Any],
        *,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        upsert: bool = False,
        return_document: ReturnDocument = "before",
        timeout_ms: int | None = None,
    ) -> Document | None:
        (wire_filter, wire_update, wire_sort), big_numbers = self._serialize(filter, update, sort)
        payload = drop_none(
            {
                "filter": wire_filter,
                "update": wire_update,
                "sort": wire_sort,
                "projection": projection,
                "options": {"upsert": upsert, "returnDocument": return_document},
            }
        )
        return await self._find_and_modify("findOneAndUpdate", payload, big_numbers, timeout_ms)

    async def find_one_and_replace(
        self,
        filter: Document,
        replacement: Document,
        *,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        upsert: bool = False,
        return_document: ReturnDocument = "before",
        timeout_ms: int | None = None,
    ) -> Document | None:
        (wire_filter, wire_replacement, wire_sort), big_numbers = self._serialize(filter, replacement, sort)
        payload = drop_none(
            {
                "filter": wire_filter,
                "replacement": wire_replacement,
                "sort": wire_sort,
                "projection": projection,
                "options": {"upsert": upsert, "returnDocument": return_document},
            }
        )
        return await self._find_and_modify("findOneAndReplace", payload, big_numbers, timeout_ms)

    async def find_one_and_delete(
        self,
        filter: Document,
        *,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        timeout_ms: int | None = None,
    ) -> Document | None:
        (wire_filter, wire_sort), big_numbers = self._serialize(filter, sort)
        payload = drop_none({"filter": wire_filter, "sort": wire_sort, "projection": projection})
        return await self._find_and_modify("findOneAndDelete", payload, big_numbers, timeout_ms)

    async def _find_and_modify(
        self, name: str, payload: dict[str, Any], big_numbers: bool, timeout_ms: int | None
    ) -> Document | None:
        response = await self._run(name, payload, big_numbers=big_numbers, timeout_ms=timeout_ms)
        document = response.document
        return None if document is None else self._deserialize(document, response)

    # Admin

    async def options(self) -> dict[str, Any]:
        """The collection's creation options (vector settings, indexing, ...)."""
        for descriptor in await self.db.list_collections(keyspace=self.keyspace):
            if descriptor.name == self.name:
                return descriptor.options
        raise DataAPIError(f"Collection {self.full_name} not found")

    async def drop(self) -> None:
        await self.db.drop_collection(self.name, keyspace=self.keyspace)


def _extract_values(value: Any, segments: list[str]) -> list[Any]:
    """Values found at ``segments`` inside ``value``; lists are flattened along the way."""
    if not segments:
        return list(value) if isinstance(value, list) else [value]

    head, rest = segments[0], segments[1:]
    if isinstance(value, dict):
        return _extract_values(value[head], rest) if head in value else []
    if isinstance(value, list):
        if head.isdigit():
            index = int(head)
            return _extract_values(value[index], rest) if index < len(value) else []
        return [found for item in value for found in _extract_values(item, segments)]
    return []


def _hash_key(value: Any) -> str:
    # Values may be unhashable (dicts, lists); compare on a canonical rendering instead
    return json.dumps(value, sort_keys=True, default=repr)


__all__ = ["Collection", "Document", "ReturnDocument"]
