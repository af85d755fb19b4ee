from .base import AbstractCursor, CursorOptions, CursorState, Page, PageFetcher, PageRequest
from .find_cursor import MAX_NON_VECTOR_SORT_LIMIT, FindCursor, is_vector_sort
from .rerank_cursor import FindAndRerankCursor, RerankedResult

__all__ = [
    "MAX_NON_VECTOR_SORT_LIMIT",
    "AbstractCursor",
    "CursorOptions",
    "CursorState",
    "FindAndRerankCursor",
    "FindCursor",
    "Page",
    "PageFetcher",
    "PageRequest",
    "RerankedResult",
    "is_vector_sort",
]
