"""
Codec definitions and the codec registry.

A codec pairs a match criterion with serialize and/or deserialize
functions. Match criteria are a small sum type:

- ``ByPath``: the full path from the root (``"*"`` matches any one segment)
- ``ByName``: the last path segment (a field or column name)
- ``ByType``: a type tag on deserialize (a ``$sigil`` for documents, a
  column type for tables) and/or a host class on serialize
- ``ByGuard``: predicate functions

Registries are append-only and frozen once a ``SerDes`` is built over them,
so concurrent calls can share them without locking.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Iterable, Iterator, Literal, Protocol, Self, Sequence, runtime_checkable

from ..exceptions import InvalidOptionsError
from .ctx import DesCtx, PathSegment, SerCtx, SerDesResult

Universe = Literal["collection", "table"]

SerializeFn = Callable[[Any, SerCtx], SerDesResult]
# Collection deserializers take (value, ctx); table deserializers take (value, ctx, column).
DeserializeFn = Callable[..., SerDesResult]
SerGuard = Callable[[Any, SerCtx], bool]
DesGuard = Callable[[Any, DesCtx], bool]


@runtime_checkable
class CollectionSerializable(Protocol):
    """A datatype that knows its own document wire form."""

    def serialize_for_collection(self, ctx: SerCtx) -> SerDesResult: ...

    @classmethod
    def deserialize_for_collection(cls, value: Any, ctx: DesCtx) -> SerDesResult: ...


@runtime_checkable
class TableSerializable(Protocol):
    """A datatype that knows its own table column wire form."""

    def serialize_for_table(self, ctx: SerCtx) -> SerDesResult: ...

    @classmethod
    def deserialize_for_table(cls, value: Any, ctx: DesCtx, column: Any) -> SerDesResult: ...


# ---------------------------------------------------------------------------
# Match criteria
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ByPath:
    segments: tuple[PathSegment, ...]

    def matches(self, path: Sequence[PathSegment]) -> bool:
        if len(path) != len(self.segments):
            return False
        for expected, actual in zip(self.segments, path):
            if expected == "*" or expected == actual:
                continue
            if isinstance(actual, int) and expected == str(actual):
                continue
            return False
        return True


@dataclass(frozen=True)
class ByName:
    name: str


@dataclass(frozen=True)
class ByType:
    tag: str | None = None
    cls: type | None = None


@dataclass(frozen=True)
class ByGuard:
    serialize_guard: SerGuard | None = None
    deserialize_guard: DesGuard | None = None


MatchCriterion = ByPath | ByName | ByType | ByGuard


@dataclass(frozen=True)
class Codec:
    """An immutable conversion rule for one schema universe."""

    match: MatchCriterion
    universe: Universe
    serialize: SerializeFn | None = None
    deserialize: DeserializeFn | None = None

    def __post_init__(self) -> None:
        if self.serialize is None and self.deserialize is None:
            raise InvalidOptionsError("A codec needs at least one of serialize or deserialize")
        if isinstance(self.match, ByType) and self.match.tag is None and self.match.cls is None:
            raise InvalidOptionsError("A type codec needs a type tag, a class, or both")
        if isinstance(self.match, ByType) and self.serialize is not None and self.match.cls is None:
            raise InvalidOptionsError(
                f"Type codec {self.match.tag!r} has a serialize function but no class to match on serialize"
            )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class CodecRegistry:
    """
    Ordered, append-only codec collection for one schema universe.

    Candidates are produced per tier in registration order; resolution
    (trying them until one doesn't decline) is the ``SerDes`` engine's job.
    """

    def __init__(self, universe: Universe, codecs: Iterable[Codec] = ()):
        self.universe: Universe = universe
        self._codecs: list[Codec] = []
        self._frozen = False

        self._ser_paths: dict[int, list[tuple[ByPath, SerializeFn]]] = {}
        self._des_paths: dict[int, list[tuple[ByPath, DeserializeFn]]] = {}
        self._ser_names: dict[str, list[SerializeFn]] = {}
        self._des_names: dict[str, list[DeserializeFn]] = {}
        self._ser_exact: dict[type, list[SerializeFn]] = {}
        self._ser_classes: list[tuple[type, SerializeFn]] = []
        self._des_types: dict[str, list[DeserializeFn]] = {}
        self._ser_guards: list[tuple[SerGuard, SerializeFn]] = []
        self._des_guards: list[tuple[DesGuard, DeserializeFn]] = []

        for codec in codecs:
            self.register(codec)

    def register(self, codec: Codec) -> Self:
        """Append a codec to the bucket of its match criterion."""
        if self._frozen:
            raise InvalidOptionsError("Codec registry is frozen; codecs must be registered at configuration time")
        if codec.universe != self.universe:
            raise InvalidOptionsError(
                f"Can't register a {codec.universe} codec in a {self.universe} registry"
            )

        match, ser, des = codec.match, codec.serialize, codec.deserialize

        if isinstance(match, ByPath):
            if ser:
                self._ser_paths.setdefault(len(match.segments), []).append((match, ser))
            if des:
                self._des_paths.setdefault(len(match.segments), []).append((match, des))
        elif isinstance(match, ByName):
            if ser:
                self._ser_names.setdefault(match.name, []).append(ser)
            if des:
                self._des_names.setdefault(match.name, []).append(des)
        elif isinstance(match, ByType):
            if ser and match.cls is not None:
                self._ser_exact.setdefault(match.cls, []).append(ser)
                self._ser_classes.append((match.cls, ser))
            if des and match.tag is not None:
                self._des_types.setdefault(match.tag, []).append(des)
        elif isinstance(match, ByGuard):
            if ser:
                if match.serialize_guard is None:
                    raise InvalidOptionsError("A custom codec with serialize needs a serialize_guard")
                self._ser_guards.append((match.serialize_guard, ser))
            if des:
                if match.deserialize_guard is None:
                    raise InvalidOptionsError("A custom codec with deserialize needs a deserialize_guard")
                self._des_guards.append((match.deserialize_guard, des))

        self._codecs.append(codec)
        return self

    def freeze(self) -> Self:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def codecs(self) -> tuple[Codec, ...]:
        return tuple(self._codecs)

    def __len__(self) -> int:
        return len(self._codecs)

    def __repr__(self) -> str:
        return f"CodecRegistry({self.universe!r}, {len(self._codecs)} codecs)"

    # Candidate lookup

    def path_serializers(self, path: Sequence[PathSegment]) -> Iterator[SerializeFn]:
        for criterion, fn in self._ser_paths.get(len(path), ()):
            if criterion.matches(path):
                yield fn

    def path_deserializers(self, path: Sequence[PathSegment]) -> Iterator[DeserializeFn]:
        for criterion, fn in self._des_paths.get(len(path), ()):
            if criterion.matches(path):
                yield fn

    def serializers(self, value: Any, ctx: SerCtx, *, name: str | None) -> Iterator[SerializeFn]:
        """Serialize candidates in tier order: path, name, exact class, subclass, guard."""
        yield from self.path_serializers(ctx.path)

        if name is not None:
            yield from self._ser_names.get(name, ())

        value_type = type(value)
        yield from self._ser_exact.get(value_type, ())

        for klass, fn in self._ser_classes:
            if klass is not value_type and isinstance(value, klass):
                yield fn

        for guard, fn in self._ser_guards:
            if guard(value, ctx):
                yield fn

    def deserializers(
        self,
        value: Any,
        ctx: DesCtx,
        *,
        name: str | None,
        type_tag: str | None,
    ) -> Iterator[DeserializeFn]:
        """Deserialize candidates in tier order: path, name, type tag, guard."""
        yield from self.path_deserializers(ctx.path)

        if name is not None:
            yield from self._des_names.get(name, ())

        if type_tag is not None:
            yield from self._des_types.get(type_tag, ())

        for guard, fn in self._des_guards:
            if guard(value, ctx):
                yield fn

    def type_deserializers(self, type_tag: str) -> list[DeserializeFn]:
        return list(self._des_types.get(type_tag, ()))


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


class CodecFactory:
    """Base for ``CollectionCodecs`` and ``TableCodecs``."""

    universe: ClassVar[Universe]
    serialize_method: ClassVar[str]
    deserialize_method: ClassVar[str]

    @classmethod
    def for_path(
        cls,
        path: str | Sequence[PathSegment],
        datatype: type | None = None,
        *,
        serialize: SerializeFn | None = None,
        deserialize: DeserializeFn | None = None,
    ) -> Codec:
        """Codec matching one exact path; ``"*"`` segments match anything."""
        segments = tuple(path.split(".")) if isinstance(path, str) else tuple(path)
        if datatype is not None and deserialize is None:
            deserialize = cls._datatype_deserializer(datatype)
        return Codec(ByPath(segments), cls.universe, serialize, deserialize)

    @classmethod
    def for_name(
        cls,
        name: str,
        datatype: type | None = None,
        *,
        serialize: SerializeFn | None = None,
        deserialize: DeserializeFn | None = None,
    ) -> Codec:
        """Codec matching a field (or column) name at any depth."""
        if datatype is not None and deserialize is None:
            deserialize = cls._datatype_deserializer(datatype)
        return Codec(ByName(name), cls.universe, serialize, deserialize)

    @classmethod
    def for_type(
        cls,
        type_tag: str | None,
        datatype: type | None = None,
        *,
        serialize_class: type | None = None,
        serialize: SerializeFn | None = None,
        deserialize: DeserializeFn | None = None,
    ) -> Codec:
        """
        Codec matching a type.

        ``type_tag`` selects wire values on deserialize. ``serialize_class``
        (or ``datatype``) selects host values on serialize. Passing a
        ``datatype`` implementing the universe's serializable protocol fills
        in whichever function was not given explicitly.
        """
        if datatype is not None:
            serialize_class = serialize_class or datatype
            if serialize is None and hasattr(datatype, cls.serialize_method):
                serialize = cls._datatype_serializer()
            if deserialize is None and type_tag is not None:
                deserialize = cls._datatype_deserializer(datatype)
        return Codec(ByType(type_tag, serialize_class), cls.universe, serialize, deserialize)

    @classmethod
    def custom(
        cls,
        *,
        serialize_guard: SerGuard | None = None,
        serialize: SerializeFn | None = None,
        deserialize_guard: DesGuard | None = None,
        deserialize: DeserializeFn | None = None,
    ) -> Codec:
        """Predicate-driven codec, tried after path, name and type codecs."""
        return Codec(ByGuard(serialize_guard, deserialize_guard), cls.universe, serialize, deserialize)

    @classmethod
    def _datatype_serializer(cls) -> SerializeFn:
        method = cls.serialize_method

        def serialize(value: Any, ctx: SerCtx) -> SerDesResult:
            return getattr(value, method)(ctx)

        return serialize

    @classmethod
    def _datatype_deserializer(cls, datatype: type) -> DeserializeFn:
        fn = getattr(datatype, cls.deserialize_method, None)
        if fn is None:
            raise InvalidOptionsError(
                f"Invalid codec class: '{datatype.__name__}' is missing the classmethod {cls.deserialize_method}()"
            )
        return fn


__all__ = [
    "ByGuard",
    "ByName",
    "ByPath",
    "ByType",
    "Codec",
    "CodecFactory",
    "CodecRegistry",
    "CollectionSerializable",
    "DeserializeFn",
    "MatchCriterion",
    "SerializeFn",
    "TableSerializable",
    "Universe",
]
