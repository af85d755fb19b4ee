"""
Lazy, page-buffered cursors over paginated Data API queries.

State machine::

    idle --(first fetch)--> started --(no next page / limit reached)--> closed
      \\___________________ close() ____________________________________/

Pages are fetched strictly one at a time, only when the buffer is empty.
Once closed, no further fetch is ever issued, but records already buffered
can still be drained. A fetch that fails (error or timeout) leaves state,
buffer and page token untouched, so the same call can simply be retried.

A cursor is not safe for concurrent ``next()`` calls on the same instance;
independent cursors never share state.

Builder methods (``filter``, ``sort``, ``limit``, ``map``, ...) never mutate
the cursor they are called on: each returns a new idle cursor with one
option changed.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Mapping, Protocol, Self, TypeVar

from ..datatypes import DataAPIVector
from ..exceptions import CursorError, DataAPITimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CursorState(str, Enum):
    IDLE = "idle"
    STARTED = "started"
    CLOSED = "closed"


class _PageToken(Enum):
    UNSET = "unset"
    EXHAUSTED = "exhausted"


_PAGE_UNSET = _PageToken.UNSET
_PAGE_EXHAUSTED = _PageToken.EXHAUSTED
_END = object()


@dataclass(frozen=True)
class PageRequest:
    """Everything a page fetcher needs to issue one query."""

    filter: dict[str, Any]
    sort: dict[str, Any] | None
    projection: dict[str, Any] | None
    limit: int | None
    skip: int | None
    page_state: str | None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class Page:
    """
    One fetched page.

    Attributes:
        records: Deserialized records, in server order
        next_page_state: Continuation token, None when this is the last page
        sort_vector: The vector the query was sorted by, if requested
    """

    records: list[Any]
    next_page_state: str | None = None
    sort_vector: DataAPIVector | None = None


class PageFetcher(Protocol):
    def __call__(self, request: PageRequest) -> Awaitable[Page]: ...


@dataclass(frozen=True)
class CursorOptions:
    """Immutable cursor configuration. ``extra`` holds variant-specific wire options."""

    filter: dict[str, Any] = field(default_factory=dict)
    projection: dict[str, Any] | None = None
    sort: dict[str, Any] | None = None
    limit: int | None = None
    skip: int | None = None
    include_similarity: bool | None = None
    include_sort_vector: bool | None = None
    initial_page_state: str | None = None
    timeout_ms: int | None = None
    mapping: Callable[[Any], Any] | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


class AbstractCursor(ABC, Generic[T]):
    """
    Base cursor.

    Args:
        fetcher: Coroutine function issuing one page request.
        options: Initial configuration.
        source: Human-readable name of the queried collection/table.
    """

    def __init__(self, fetcher: PageFetcher, options: CursorOptions | None = None, *, source: str = ""):
        self._fetcher = fetcher
        self._options = options or CursorOptions()
        self._source = source
        self._validate()
        self._reset()

    def _reset(self) -> None:
        self._state = CursorState.IDLE
        self._buffer: deque[Any] = deque()
        self._consumed = 0
        self._page_token: str | _PageToken = self._options.initial_page_state or _PAGE_UNSET
        self._sort_vector: DataAPIVector | None = None
        self._fetched_pages = 0

    def _validate(self) -> None:
        if self._options.limit is not None and self._options.limit < 0:
            raise CursorError(f"limit must be non-negative, got {self._options.limit}", self.state_name)
        if self._options.skip is not None and self._options.skip < 0:
            raise CursorError(f"skip must be non-negative, got {self._options.skip}", self.state_name)

    @property
    def state_name(self) -> str:
        state = getattr(self, "_state", CursorState.IDLE)
        return state.value

    # Introspection

    @property
    def state(self) -> CursorState:
        return self._state

    @property
    def options(self) -> CursorOptions:
        return self._options

    def buffered(self) -> int:
        """Records fetched but not yet yielded."""
        return len(self._buffer)

    def consumed(self) -> int:
        """Records yielded so far (including ones taken with ``consume_buffer``)."""
        return self._consumed

    def consume_buffer(self, max: int | None = None) -> list[Any]:
        """
        Remove and return up to ``max`` buffered records (all by default).

        Records are returned as fetched; the cursor's mapping is not applied.
        """
        if max is not None and max < 0:
            raise CursorError(f"consume_buffer() needs a non-negative max, got {max}", self.state_name)
        count = len(self._buffer) if max is None else min(max, len(self._buffer))
        taken = [self._buffer.popleft() for _ in range(count)]
        self._consumed += len(taken)
        return taken

    # Lifecycle

    def close(self) -> None:
        """Stop fetching. Already buffered records stay drainable."""
        self._state = CursorState.CLOSED

    def rewind(self) -> None:
        """Back to idle with an empty buffer; configuration is kept."""
        self._reset()

    def clone(self) -> Self:
        """A fresh idle cursor with the same configuration."""
        return self._with(self._options)

    # Consumption

    async def next(self) -> T | None:
        """The next record, or None once the cursor is exhausted."""
        record = await self._pop()
        return None if record is _END else record

    async def _pop(self) -> Any:
        if not await self._fill_buffer():
            return _END
        self._consumed += 1
        return self._apply_mapping(self._buffer.popleft())

    async def has_next(self) -> bool:
        return await self._fill_buffer()

    async def to_list(self) -> list[T]:
        """Drain the cursor into a list."""
        if self._state is CursorState.CLOSED and not self._buffer:
            raise CursorError("Cannot iterate over a closed cursor", self.state_name)
        return [record async for record in self]

    async def for_each(self, fn: Callable[[T], Any]) -> None:
        """Call ``fn`` on each record; stops early when ``fn`` returns ``False``."""
        async for record in self:
            result = fn(record)
            if asyncio.iscoroutine(result):
                result = await result
            if result is False:
                break

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        # _END rather than None, so a mapping may legitimately yield None
        while (record := await self._pop()) is not _END:
            yield record

    async def fetch_next_page(self) -> Page:
        """
        Fetch exactly one page and hand it over whole, bypassing the buffer.

        The returned ``next_page_state`` can be fed to ``initial_page_state``
        on a later cursor to resume from there. Records are mapped.

        Raises:
            CursorError: If records are still buffered or the cursor is closed.
        """
        if self._buffer:
            raise CursorError("Cannot fetch next page when the current page is not empty", self.state_name)
        if self._state is CursorState.CLOSED:
            raise CursorError("Cannot fetch next page from a closed cursor", self.state_name)

        page = await self._fetch_page()
        self._state = CursorState.STARTED
        self._accept_page(page)

        records = [self._apply_mapping(record) for record in self.consume_buffer()]
        return Page(records, page.next_page_state, self._sort_vector)

    async def get_sort_vector(self) -> DataAPIVector | None:
        """The vector the results are sorted by; fetches the first page if needed."""
        if self._fetched_pages == 0 and self._options.include_sort_vector and self._state is not CursorState.CLOSED:
            await self._fill_buffer()
        return self._sort_vector

    # Engine

    @property
    def _limit_reached(self) -> bool:
        limit = self._options.limit
        return bool(limit) and self._consumed + len(self._buffer) >= limit  # type: ignore[operator]

    async def _fill_buffer(self) -> bool:
        """Make sure a record is buffered; False means the cursor is exhausted."""
        while not self._buffer:
            if self._state is CursorState.CLOSED or self._page_token is _PAGE_EXHAUSTED or self._limit_reached:
                self._state = CursorState.CLOSED
                return False

            page = await self._fetch_page()
            self._state = CursorState.STARTED
            self._accept_page(page)

        return True

    async def _fetch_page(self) -> Page:
        page_state = self._page_token if isinstance(self._page_token, str) else None
        request = PageRequest(
            filter=self._options.filter,
            sort=self._options.sort,
            projection=self._options.projection,
            limit=self._options.limit or None,
            skip=self._options.skip,
            page_state=page_state,
            options=self._wire_options(first_page=self._fetched_pages == 0),
        )
        logger.debug(
            f"Fetching page {self._fetched_pages + 1} from {self._source or 'cursor'} "
            f"({'with' if page_state else 'without'} page state)"
        )

        timeout_ms = self._options.timeout_ms
        try:
            async with asyncio.timeout(timeout_ms / 1000 if timeout_ms else None):
                page = await self._fetcher(request)
        except TimeoutError as e:
            raise DataAPITimeoutError(f"Page fetch timed out after {timeout_ms}ms", timeout_ms) from e

        logger.debug(f"Received {len(page.records)} records from {self._source or 'cursor'}")
        return page

    def _accept_page(self, page: Page) -> None:
        self._fetched_pages += 1

        records = page.records
        limit = self._options.limit
        if limit:
            room = limit - self._consumed - len(self._buffer)
            records = records[: max(room, 0)]

        self._buffer.extend(records)

        if page.sort_vector is not None:
            self._sort_vector = page.sort_vector

        if page.next_page_state is None:
            self._page_token = _PAGE_EXHAUSTED
        else:
            self._page_token = page.next_page_state

        if self._page_token is _PAGE_EXHAUSTED or self._limit_reached:
            self._page_token = _PAGE_EXHAUSTED
            self._state = CursorState.CLOSED

    def _apply_mapping(self, record: Any) -> Any:
        mapping = self._options.mapping
        return mapping(record) if mapping else record

    @abstractmethod
    def _wire_options(self, *, first_page: bool) -> dict[str, Any]:
        """Command ``options`` for a page request, without ``pageState``."""
        ...

    # Builders

    def _with(self, options: CursorOptions) -> Self:
        return type(self)(self._fetcher, options, source=self._source)

    def _with_option(self, **changes: Any) -> Self:
        return self._with(replace(self._options, **changes))

    def filter(self, filter: dict[str, Any] | None) -> Self:
        return self._with_option(filter=filter or {})

    def sort(self, sort: dict[str, Any] | None) -> Self:
        return self._with_option(sort=sort)

    def project(self, projection: dict[str, Any] | None) -> Self:
        if self._options.mapping is not None:
            raise CursorError("Cannot set a new projection after already using cursor.map(...)", self.state_name)
        return self._with_option(projection=projection)

    def limit(self, limit: int | None) -> Self:
        return self._with_option(limit=limit or None)

    def skip(self, skip: int | None) -> Self:
        return self._with_option(skip=skip)

    def include_sort_vector(self, include: bool = True) -> Self:
        return self._with_option(include_sort_vector=include)

    def initial_page_state(self, page_state: str | None) -> Self:
        return self._with_option(initial_page_state=page_state)

    def timeout(self, timeout_ms: int | None) -> Self:
        """Deadline for each page fetch."""
        return self._with_option(timeout_ms=timeout_ms)

    def map(self, fn: Callable[[Any], Any]) -> AbstractCursor[Any]:
        """Compose ``fn`` after any existing mapping."""
        previous = self._options.mapping
        mapping = fn if previous is None else (lambda record: fn(previous(record)))
        return self._with_option(mapping=mapping)

    def __repr__(self) -> str:
        return (
            f'{type(self).__name__}(source="{self._source}", state="{self._state.value}", '
            f"consumed={self._consumed}, buffered={len(self._buffer)})"
        )


__all__ = [
    "AbstractCursor",
    "CursorOptions",
    "CursorState",
    "Page",
    "PageFetcher",
    "PageRequest",
]
