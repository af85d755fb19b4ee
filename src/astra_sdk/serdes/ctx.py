"""
Per-call serialization contexts.

A fresh ``SerCtx``/``DesCtx`` is created at the start of every
``serialize``/``deserialize`` call and threaded through the whole traversal.
Codec functions receive it and answer through ``ctx.done()``,
``ctx.recurse()`` or ``ctx.nevermind()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Callable, NamedTuple

if TYPE_CHECKING:
    from ..schema import ColumnDefinition

PathSegment = str | int


class _Unset:
    """Marker for "keep the current value" in a codec result."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class SerDesAction(IntEnum):
    """What the traversal does with a node after a codec ran."""

    DONE = 0
    RECURSE = 1
    NEVERMIND = 2


class SerDesResult(NamedTuple):
    """Outcome of one codec invocation."""

    action: SerDesAction
    value: Any = UNSET

    @property
    def has_value(self) -> bool:
        return self.value is not UNSET


_DONE = SerDesResult(SerDesAction.DONE)
_RECURSE = SerDesResult(SerDesAction.RECURSE)
_NEVERMIND = SerDesResult(SerDesAction.NEVERMIND)


@dataclass
class BaseSerDesCtx:
    root: Any
    path: list[PathSegment] = field(default_factory=list)
    custom_state: dict[str, Any] = field(default_factory=dict)
    _post_maps: list[Callable[[Any], Any]] = field(default_factory=list, repr=False)

    def done(self, value: Any = UNSET) -> SerDesResult:
        """Replace the node with ``value`` (if given) and stop descending into it."""
        return _DONE if value is UNSET else SerDesResult(SerDesAction.DONE, value)

    def recurse(self, value: Any = UNSET) -> SerDesResult:
        """Replace the node with ``value`` (if given) and keep traversing its children."""
        return _RECURSE if value is UNSET else SerDesResult(SerDesAction.RECURSE, value)

    def nevermind(self) -> SerDesResult:
        """Decline the node; resolution moves on to the next candidate codec."""
        return _NEVERMIND

    def map_after(self, fn: Callable[[Any], Any]) -> None:
        """Apply ``fn`` to the current node once its children have been traversed."""
        self._post_maps.append(fn)

    @property
    def key(self) -> PathSegment | None:
        """Last path segment, or None at the root."""
        return self.path[-1] if self.path else None

    @property
    def depth(self) -> int:
        return len(self.path)


@dataclass
class SerCtx(BaseSerDesCtx):
    """Serialization context."""

    mutate_in_place: bool = False
    big_nums_enabled: bool = False
    big_nums_present: bool = False


@dataclass
class DesCtx(BaseSerDesCtx):
    """Deserialization context.

    ``table_schema`` is only set for tables; ``parsing_primary_key`` tells a
    positional primary-key tuple apart from a regular row.
    """

    raw_response: dict[str, Any] = field(default_factory=dict)
    table_schema: dict[str, ColumnDefinition] | None = None
    parsing_primary_key: bool = False
    populate_sparse_data: bool = False
    sparse_keys: frozenset[str] = frozenset()
    num_rep_for_path: Callable[[list[PathSegment]], Any] | None = None
    _deserialize_as: Callable[[Any, str, DesCtx, ColumnDefinition | None], Any] | None = field(
        default=None, repr=False
    )

    def deserialize_as(self, value: Any, type_tag: str, column: ColumnDefinition | None = None) -> Any:
        """Run the first type codec registered for ``type_tag`` on ``value``.

        Used by container codecs (map, list, set) to convert their elements
        with the declared element type. Returns ``value`` untouched when no
        codec handles the tag.
        """
        if self._deserialize_as is None:
            return value
        return self._deserialize_as(value, type_tag, self, column)


__all__ = [
    "UNSET",
    "PathSegment",
    "SerDesAction",
    "SerDesResult",
    "BaseSerDesCtx",
    "SerCtx",
    "DesCtx",
]
