"""Vector embeddings."""

from __future__ import annotations

import base64
import struct
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Iterable, Iterator

from ..exceptions import SerDesError

if TYPE_CHECKING:
    from ..serdes.ctx import DesCtx, SerCtx, SerDesResult


class DataAPIVector:
    """
    An immutable vector of floats.

    On the wire a vector is either a plain list of numbers or
    ``{"$binary": "<base64 of big-endian float32s>"}``; both are accepted on
    the way in. ``binary=True`` selects the compact form on the way out.
    """

    __slots__ = ("_values", "_binary")

    def __init__(self, values: Iterable[float], *, binary: bool = False):
        self._values = tuple(float(v) for v in values)
        self._binary = binary

    @classmethod
    def from_binary(cls, data: str | bytes) -> DataAPIVector:
        raw = base64.b64decode(data)
        if len(raw) % 4:
            raise SerDesError(f"Binary vector length {len(raw)} is not a multiple of 4")
        return cls(struct.unpack(f">{len(raw) // 4}f", raw), binary=True)

    @classmethod
    def from_wire(cls, value: Any) -> DataAPIVector:
        if isinstance(value, DataAPIVector):
            return value
        if isinstance(value, dict) and "$binary" in value:
            return cls.from_binary(value["$binary"])
        if isinstance(value, (list, tuple)):
            return cls(float(v) if isinstance(v, Decimal) else v for v in value)
        raise SerDesError(f"Can't interpret {type(value).__name__} as a vector")

    def to_binary(self) -> str:
        raw = struct.pack(f">{len(self._values)}f", *self._values)
        return base64.b64encode(raw).decode("ascii")

    def to_wire(self) -> list[float] | dict[str, str]:
        if self._binary:
            return {"$binary": self.to_binary()}
        return list(self._values)

    @property
    def values(self) -> tuple[float, ...]:
        return self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(self._values)

    def __getitem__(self, index: int) -> float:
        return self._values[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DataAPIVector):
            return self._values == other._values
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._values)

    def __repr__(self) -> str:
        if len(self._values) > 5:
            shown = ", ".join(f"{v:g}" for v in self._values[:5])
            return f"DataAPIVector([{shown}, ...], len={len(self._values)})"
        return f"DataAPIVector({list(self._values)!r})"

    # Codec protocols

    def serialize_for_collection(self, ctx: SerCtx) -> SerDesResult:
        return ctx.done(self.to_wire())

    @classmethod
    def deserialize_for_collection(cls, value: Any, ctx: DesCtx) -> SerDesResult:
        return ctx.done(cls.from_wire(value))

    def serialize_for_table(self, ctx: SerCtx) -> SerDesResult:
        return ctx.done(self.to_wire())

    @classmethod
    def deserialize_for_table(cls, value: Any, ctx: DesCtx, column: Any = None) -> SerDesResult:
        return ctx.done(cls.from_wire(value))


def vector(values: Iterable[float] | str, *, binary: bool = False) -> DataAPIVector:
    """Shorthand: build a vector from floats or from a base64 string."""
    if isinstance(values, str):
        return DataAPIVector.from_binary(values)
    return DataAPIVector(values, binary=binary)


__all__ = ["DataAPIVector", "vector"]
