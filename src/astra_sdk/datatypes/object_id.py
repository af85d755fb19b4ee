"""BSON-style ObjectIds, usable as document ``_id`` values."""

from __future__ import annotations

import itertools
import os
import re
import threading
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ..exceptions import SerDesError

if TYPE_CHECKING:
    from ..serdes.ctx import DesCtx, SerCtx, SerDesResult

_HEX_RE = re.compile(r"^[0-9a-fA-F]{24}$")

_PROCESS_RANDOM = os.urandom(5)
_counter = itertools.count(int.from_bytes(os.urandom(3), "big"))
_counter_lock = threading.Lock()


class ObjectId:
    """
    A 12-byte identifier: 4-byte timestamp, 5 random bytes, 3-byte counter.

    Serialized in collections as ``{"$objectId": "<24 hex chars>"}``.
    """

    __slots__ = ("_hex",)

    def __init__(self, value: str | bytes | None = None):
        if value is None:
            self._hex = _generate().hex()
        elif isinstance(value, bytes):
            if len(value) != 12:
                raise SerDesError(f"ObjectId needs 12 bytes, got {len(value)}")
            self._hex = value.hex()
        elif isinstance(value, str) and _HEX_RE.match(value):
            self._hex = value.lower()
        else:
            raise SerDesError(f"Invalid ObjectId {value!r}; expected 24 hex characters")

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return isinstance(value, str) and bool(_HEX_RE.match(value))

    @property
    def timestamp(self) -> datetime:
        """Creation time encoded in the first four bytes."""
        return datetime.fromtimestamp(int(self._hex[:8], 16), tz=UTC)

    @property
    def binary(self) -> bytes:
        return bytes.fromhex(self._hex)

    def __str__(self) -> str:
        return self._hex

    def __repr__(self) -> str:
        return f'ObjectId("{self._hex}")'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ObjectId):
            return self._hex == other._hex
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._hex)

    def __lt__(self, other: ObjectId) -> bool:
        return self._hex < other._hex

    # Codec protocols

    def serialize_for_collection(self, ctx: SerCtx) -> SerDesResult:
        return ctx.done({"$objectId": self._hex})

    @classmethod
    def deserialize_for_collection(cls, value: Any, ctx: DesCtx) -> SerDesResult:
        return ctx.done(cls(value["$objectId"]))


def _generate() -> bytes:
    with _counter_lock:
        count = next(_counter) & 0xFFFFFF
    return int(time.time()).to_bytes(4, "big") + _PROCESS_RANDOM + count.to_bytes(3, "big")


__all__ = ["ObjectId"]
