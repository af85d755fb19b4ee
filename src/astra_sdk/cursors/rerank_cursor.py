"""
Cursor for ``findAndRerank`` (hybrid search).

The server runs several independently limited candidate queries (a vector
search and a lexical search), merges and reranks them, and pages through
the reranked result. Each record comes back as a ``RerankedResult``
carrying the document and its per-stage scores.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Self, TypeVar

from ..utils import drop_none
from .base import AbstractCursor, T

D = TypeVar("D")


@dataclass
class RerankedResult(Generic[D]):
    """A reranked document with its scores (``$rerank``, ``$vector``, ``$lexical``, ...)."""

    document: D
    scores: dict[str, float] = field(default_factory=dict)


class FindAndRerankCursor(AbstractCursor[T]):
    """
    Cursor returned by ``Collection.find_and_rerank``.

    Example::

        cursor = (
            collection.find_and_rerank({}, sort={"$hybrid": "tree houses"})
            .hybrid_limits({"$vector": 40, "$lexical": 20})
            .include_scores()
            .limit(10)
        )
        async for result in cursor:
            print(result.scores["$rerank"], result.document["name"])
    """

    def hybrid_limits(self, limits: int | dict[str, int]) -> Self:
        return self._with_extra(hybridLimits=limits)

    def rerank_on(self, field_name: str) -> Self:
        return self._with_extra(rerankOn=field_name)

    def rerank_query(self, query: str) -> Self:
        return self._with_extra(rerankQuery=query)

    def include_scores(self, include: bool = True) -> Self:
        return self._with_extra(includeScores=include)

    def _with_extra(self, **extra: Any) -> Self:
        return self._with_option(extra={**self._options.extra, **extra})

    def _wire_options(self, *, first_page: bool) -> dict[str, Any]:
        opts = self._options
        return drop_none(
            {
                "limit": opts.limit or None,
                "hybridLimits": opts.extra.get("hybridLimits"),
                "rerankOn": opts.extra.get("rerankOn"),
                "rerankQuery": opts.extra.get("rerankQuery"),
                "includeScores": opts.extra.get("includeScores"),
                "includeSortVector": opts.include_sort_vector if first_page else None,
            }
        )


__all__ = ["FindAndRerankCursor", "RerankedResult"]
