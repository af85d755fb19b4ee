"""
Generic serialization engine shared by collections and tables.

The engine walks a value tree depth-first with an explicit path stack. At
every node the subclass resolves a codec (path, name, type, class, guard,
then the built-in defaults, first non-declining result wins) and the
engine either stops at the node (``done``) or descends into its children
(``recurse``). Nothing here suspends, so codec invocation order is
deterministic.

Serialization never mutates the caller's tree unless ``mutate_in_place``
is set; otherwise only the ancestors of changed nodes are copied.
Deserialization always copies on write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Iterable, Iterator

from ..exceptions import SerDesError
from .codecs import Codec, CodecRegistry, Universe
from .ctx import DesCtx, SerCtx, SerDesAction, SerDesResult
from .key_transformer import KeyTransformer


MAX_DEPTH = 250


class SerDes(ABC):
    """
    Base serializer/deserializer.

    Subclasses provide the context factories, the per-node resolution for
    their schema universe, and the built-in default codecs.
    """

    universe: ClassVar[Universe]

    def __init__(
        self,
        codecs: Iterable[Codec] = (),
        *,
        key_transformer: KeyTransformer | None = None,
        mutate_in_place: bool = False,
    ):
        self._codecs = CodecRegistry(self.universe, codecs).freeze()
        self._defaults = CodecRegistry(self.universe, self.default_codecs()).freeze()
        self.key_transformer = key_transformer
        self.mutate_in_place = mutate_in_place

    @classmethod
    @abstractmethod
    def default_codecs(cls) -> list[Codec]:
        """Built-in codecs, consulted after every user codec tier."""
        ...

    @property
    def codecs(self) -> CodecRegistry:
        return self._codecs

    # Public API

    def serialize(self, value: Any) -> tuple[Any, bool]:
        """
        Convert a host value to its wire form.

        Returns:
            ``(wire_value, big_numbers_present)``. The flag covers the whole
            payload and tells the transport to use the extended number encoding.
        """
        if value is None:
            return None, False

        ctx = self._make_ser_ctx(value)
        serialized = self._serialize_value(value, ctx)

        if self.key_transformer is not None:
            serialized = self.key_transformer.serialize(serialized)

        return serialized, ctx.big_nums_present

    def deserialize(
        self,
        value: Any,
        response: dict[str, Any] | None = None,
        *,
        parsing_primary_key: bool = False,
    ) -> Any:
        """Convert a wire value back to host types. ``value`` is left untouched."""
        if value is None:
            return None

        if self.key_transformer is not None:
            value = self.key_transformer.deserialize(value)

        ctx = self._make_des_ctx(value, response or {}, parsing_primary_key)
        return self._deserialize_value(ctx.root, ctx)

    def deserialize_many(self, values: Iterable[Any], response: dict[str, Any] | None = None) -> list[Any]:
        return [self.deserialize(v, response) for v in values]

    # Hooks

    @abstractmethod
    def _make_ser_ctx(self, value: Any) -> SerCtx: ...

    @abstractmethod
    def _make_des_ctx(self, value: Any, response: dict[str, Any], parsing_primary_key: bool) -> DesCtx: ...

    @abstractmethod
    def _serialize_node(self, value: Any, ctx: SerCtx) -> SerDesResult: ...

    @abstractmethod
    def _deserialize_node(self, value: Any, ctx: DesCtx) -> SerDesResult: ...

    # Resolution helpers

    def _try_serializers(self, value: Any, ctx: SerCtx, *, name: str | None) -> SerDesResult | None:
        for registry in (self._codecs, self._defaults):
            result = _first_accepting(registry.serializers(value, ctx, name=name), lambda fn: fn(value, ctx))
            if result is not None:
                return result
        return None

    def _try_deserializers(
        self,
        value: Any,
        ctx: DesCtx,
        *,
        name: str | None,
        type_tag: str | None,
        column: Any = None,
    ) -> SerDesResult | None:
        for registry in (self._codecs, self._defaults):
            candidates = registry.deserializers(value, ctx, name=name, type_tag=type_tag)
            result = _first_accepting(candidates, lambda fn: self._call_deserializer(fn, value, ctx, column))
            if result is not None:
                return result
        return None

    def _deserialize_as(self, value: Any, type_tag: str, ctx: DesCtx, column: Any) -> Any:
        for registry in (self._codecs, self._defaults):
            candidates = iter(registry.type_deserializers(type_tag))
            result = _first_accepting(candidates, lambda fn: self._call_deserializer(fn, value, ctx, column))
            if result is not None:
                return result.value if result.has_value else value
        return value

    def _call_deserializer(self, fn: Callable[..., SerDesResult], value: Any, ctx: DesCtx, column: Any) -> Any:
        return fn(value, ctx)

    # Traversal

    def _serialize_value(self, value: Any, ctx: SerCtx) -> Any:
        post_maps: list[Callable[[Any], Any]] = []
        ctx._post_maps = post_maps

        result = self._serialize_node(value, ctx)
        if result.has_value:
            value = result.value

        if result.action is not SerDesAction.DONE:
            value = self._walk(value, ctx, self._serialize_value, copy=not ctx.mutate_in_place)

        for fn in reversed(post_maps):
            value = fn(value)
        return value

    def _deserialize_value(self, value: Any, ctx: DesCtx) -> Any:
        post_maps: list[Callable[[Any], Any]] = []
        ctx._post_maps = post_maps

        result = self._deserialize_node(value, ctx)
        if result.has_value:
            value = result.value

        if result.action is not SerDesAction.DONE:
            value = self._walk(value, ctx, self._deserialize_value, copy=True)

        for fn in reversed(post_maps):
            value = fn(value)
        return value

    def _walk(self, value: Any, ctx: SerCtx | DesCtx, visit: Callable[[Any, Any], Any], *, copy: bool) -> Any:
        if not isinstance(value, (dict, list, tuple)):
            return value

        if len(ctx.path) >= MAX_DEPTH:
            path = ".".join(str(p) for p in ctx.path[:10])
            raise SerDesError(f"Value nested deeper than {MAX_DEPTH} levels (at {path}...)")

        path = ctx.path

        if isinstance(value, dict):
            out: dict[Any, Any] | None = None if copy else value
            for key, child in list(value.items()):
                path.append(key)
                new_child = visit(child, ctx)
                path.pop()
                if new_child is not child:
                    if out is None:
                        out = dict(value)
                    out[key] = new_child
            return value if out is None else out

        items: list[Any] | None = None
        if isinstance(value, tuple):
            items = list(value)
        elif not copy:
            items = value

        for i, child in enumerate(value):
            path.append(i)
            new_child = visit(child, ctx)
            path.pop()
            if new_child is not child:
                if items is None:
                    items = list(value)
                items[i] = new_child
        return value if items is None else items


def _first_accepting(candidates: Iterator[Any], invoke: Callable[[Any], Any]) -> SerDesResult | None:
    """Invoke candidates in order until one doesn't decline."""
    for fn in candidates:
        result = invoke(fn)
        if not isinstance(result, SerDesResult):
            raise SerDesError(
                f"Codec function {getattr(fn, '__name__', fn)!r} returned {result!r}; "
                "return ctx.done(...), ctx.recurse(...) or ctx.nevermind()"
            )
        if result.action is not SerDesAction.NEVERMIND:
            return result
    return None


__all__ = ["MAX_DEPTH", "SerDes"]
