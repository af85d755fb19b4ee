"""
Key transformers rename document keys between host and wire conventions.

A transformer must be invertible per key: for every key ``k`` and path ``p``,
``deserialize_key(serialize_key(k, p), p) == k``. This isn't checked at
runtime.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Sequence

from .ctx import PathSegment

_UPPER_RE = re.compile(r"[A-Z]")
_SNAKE_RE = re.compile(r"_([a-z])")


class KeyTransformer(ABC):
    """Base class for key transformers.

    ``serialize`` and ``deserialize`` never mutate their input; they return a
    copy with renamed keys. Nested dicts and lists are only descended into
    when ``transform_nested`` says so for the current path.
    """

    @abstractmethod
    def serialize_key(self, key: str, path: Sequence[PathSegment]) -> str:
        """Host key -> wire key."""
        ...

    @abstractmethod
    def deserialize_key(self, key: str, path: Sequence[PathSegment]) -> str:
        """Wire key -> host key."""
        ...

    @abstractmethod
    def transform_nested(self, path: Sequence[PathSegment]) -> bool:
        """Whether the value at ``path`` should have its own keys transformed."""
        ...

    def serialize(self, obj: Any) -> Any:
        return self._transform(obj, [], self.serialize_key)

    def deserialize(self, obj: Any) -> Any:
        return self._transform(obj, [], self.deserialize_key)

    def _transform(
        self,
        obj: Any,
        path: list[PathSegment],
        fn: Callable[[str, Sequence[PathSegment]], str],
    ) -> Any:
        if isinstance(obj, dict):
            out: dict[Any, Any] = {}
            for key, value in obj.items():
                path.append(key)
                new_key = fn(key, path) if isinstance(key, str) else key
                if isinstance(value, (dict, list)) and self.transform_nested(path):
                    value = self._transform(value, path, fn)
                out[new_key] = value
                path.pop()
            return out

        if isinstance(obj, list):
            out_list = []
            for i, value in enumerate(obj):
                path.append(i)
                if isinstance(value, (dict, list)) and self.transform_nested(path):
                    value = self._transform(value, path, fn)
                out_list.append(value)
                path.pop()
            return out_list

        return obj


class Camel2SnakeCase(KeyTransformer):
    """
    camelCase on the host, snake_case on the wire.

    Args:
        except_id: Leave ``_id`` untouched (default True).
        transform_nested: Predicate on the path deciding whether nested
            objects are transformed too. Defaults to top-level keys only.

    Example::

        Camel2SnakeCase(transform_nested=lambda path: path[0] == "address")
    """

    def __init__(
        self,
        except_id: bool = True,
        transform_nested: Callable[[Sequence[PathSegment]], bool] | None = None,
    ):
        self.except_id = except_id
        self._transform_nested = transform_nested

    def transform_nested(self, path: Sequence[PathSegment]) -> bool:
        if self._transform_nested is None:
            return False
        return bool(self._transform_nested(path))

    def serialize_key(self, key: str, path: Sequence[PathSegment] = ()) -> str:
        if not key or (self.except_id and key == "_id"):
            return key
        return _UPPER_RE.sub(lambda m: "_" + m.group(0).lower(), key)

    def deserialize_key(self, key: str, path: Sequence[PathSegment] = ()) -> str:
        if not key or (self.except_id and key == "_id"):
            return key
        return _SNAKE_RE.sub(lambda m: m.group(1).upper(), key)

    def __repr__(self) -> str:
        return f"Camel2SnakeCase(except_id={self.except_id})"


__all__ = ["KeyTransformer", "Camel2SnakeCase"]
