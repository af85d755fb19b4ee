from __future__ import annotations

from typing import Any, Self

from ..datatypes import DataAPIVector
from ..exceptions import CursorError
from ..utils import drop_none
from .base import AbstractCursor, T

# Without a vector the server sorts in memory and returns at most this many records
MAX_NON_VECTOR_SORT_LIMIT = 20


def is_vector_sort(sort: dict[str, Any] | None) -> bool:
    """True if ``sort`` is a similarity sort (``$vector``/``$vectorize`` or a vector column)."""
    if not sort:
        return False
    if "$vector" in sort or "$vectorize" in sort:
        return True
    return any(isinstance(v, (list, tuple, DataAPIVector, str, dict)) for v in sort.values())


class FindCursor(AbstractCursor[T]):
    """
    Cursor returned by ``Collection.find`` and ``Table.find``.

    Example::

        cursor = collection.find({"status": "active"}).limit(10).sort({"$vector": embedding})
        async for doc in cursor.include_similarity():
            print(doc["$similarity"])

    A non-vector sort needs a limit of at most 20, and since every builder
    returns a new, validated cursor, set the limit before the sort
    (``find(...).limit(10).sort({"name": 1})``) or pass both to ``find``.
    """

    def _validate(self) -> None:
        super()._validate()
        opts = self._options
        if opts.sort and not is_vector_sort(opts.sort):
            if not opts.limit or opts.limit > MAX_NON_VECTOR_SORT_LIMIT:
                raise CursorError(
                    f"Cannot set non-vector sort option without limit <= {MAX_NON_VECTOR_SORT_LIMIT}; "
                    f"the Data API can only return {MAX_NON_VECTOR_SORT_LIMIT} records with a non-vector sort",
                    self.state_name,
                )

    def include_similarity(self, include: bool = True) -> Self:
        return self._with_option(include_similarity=include)

    def _wire_options(self, *, first_page: bool) -> dict[str, Any]:
        opts = self._options
        return drop_none(
            {
                "limit": opts.limit or None,
                "skip": opts.skip,
                "includeSimilarity": opts.include_similarity,
                "includeSortVector": opts.include_sort_vector if first_page else None,
            }
        )


__all__ = ["FindCursor", "MAX_NON_VECTOR_SORT_LIMIT", "is_vector_sort"]
