"""
Serialization for collections (schemaless JSON documents).

Special scalars travel as single-key sigil objects:

=============  =======================================  =================
Host type      Wire form                                Codec tier
=============  =======================================  =================
``datetime``   ``{"$date": <epoch millis>}``            type
``UUID``       ``{"$uuid": "<uuid>"}``                  type
``ObjectId``   ``{"$objectId": "<hex>"}``               type
vector         ``$vector: [...]`` or ``{"$binary": }``  name (``$vector``)
=============  =======================================  =================

Table-only types are rejected with an error that names them.
"""

from __future__ import annotations

import ipaddress
import math
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from ..datatypes import DataAPIDuration, DataAPIVector, ObjectId
from ..exceptions import SerDesError
from .big_nums import NumRepForPath, build_num_rep_for_path, coerce_number, is_big_int
from .codecs import Codec, CodecFactory
from .ctx import DesCtx, SerCtx, SerDesResult
from .engine import SerDes
from .key_transformer import KeyTransformer

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MILLISECOND = timedelta(milliseconds=1)


class CollectionCodecs(CodecFactory):
    """
    Codec factories for collections.

    Example::

        CollectionCodecs.for_name("age", serialize=lambda v, ctx: ctx.done(v * 2),
                                  deserialize=lambda v, ctx: ctx.done(v // 2))
    """

    universe = "collection"
    serialize_method = "serialize_for_collection"
    deserialize_method = "deserialize_for_collection"


def _serialize_date(value: datetime, ctx: SerCtx) -> SerDesResult:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return ctx.done({"$date": (value - EPOCH) // _MILLISECOND})


def _deserialize_date(value: dict[str, Any], ctx: DesCtx) -> SerDesResult:
    return ctx.done(EPOCH + timedelta(milliseconds=int(value["$date"])))


def _serialize_uuid(value: UUID, ctx: SerCtx) -> SerDesResult:
    return ctx.done({"$uuid": str(value)})


def _deserialize_uuid(value: dict[str, Any], ctx: DesCtx) -> SerDesResult:
    return ctx.done(UUID(value["$uuid"]))


def default_collection_codecs() -> list[Codec]:
    return [
        CollectionCodecs.for_type(
            "$date", serialize_class=datetime, serialize=_serialize_date, deserialize=_deserialize_date
        ),
        CollectionCodecs.for_type(
            "$uuid", serialize_class=UUID, serialize=_serialize_uuid, deserialize=_deserialize_uuid
        ),
        CollectionCodecs.for_type("$objectId", ObjectId),
        CollectionCodecs.for_name("$vector", DataAPIVector),
        CollectionCodecs.for_type(None, DataAPIVector),
    ]


def unsupported_in_collections_error(type_name: str, sigil: str, alternatives: list[str]) -> SerDesError:
    lines = [
        f"{type_name} may not be used with collections by default.",
        "",
        "Please use one of the following alternatives:",
    ]
    options = [*alternatives, f"Write a custom codec for {type_name}"]
    lines += [f"{i}. {alt}" for i, alt in enumerate(options, 1)]
    lines += [
        "",
        "See CollectionCodecs for more information about writing your own collection codec.",
        "",
        f"You may need CollectionCodecs.for_type(...) with a faux type (e.g. {{ {sigil}: <{type_name}> }}) so the "
        f"value can be recognised as a {type_name} when it is deserialized.",
    ]
    return SerDesError("\n".join(lines))


# (host type, display name, faux sigil, alternatives); checked in order, so datetime
# is handled by its codec before the plain date check can see it.
_TABLE_ONLY_TYPES: list[tuple[type | tuple[type, ...], str, str, list[str]]] = [
    (date, "date", "$date", ["Use a datetime", "Use a string in 'YYYY-MM-DD' format"]),
    (time, "time", "$time", ["Use a string in 'HH:MM:SS[.fff]' format", "Use seconds since midnight"]),
    (DataAPIDuration, "DataAPIDuration", "$duration", ["Use a duration string, e.g. '1h30m'"]),
    (
        (ipaddress.IPv4Address, ipaddress.IPv6Address),
        "an IP address",
        "$inet",
        ["Use the address as a string"],
    ),
    ((set, frozenset), "set", "$set", ["Use a list"]),
    ((bytes, bytearray), "bytes", "$binary", ["Use a base64 string"]),
]


class CollectionSerDes(SerDes):
    """
    Serializer/deserializer for collection documents.

    Args:
        codecs: User codecs, consulted before the built-in ones in every tier.
        key_transformer: Optional key renaming (e.g. ``Camel2SnakeCase``).
        mutate_in_place: Let serialization write into the caller's document.
        enable_big_numbers: ``{path: rep}`` mapping or ``path -> rep`` callable;
            enables ``Decimal`` and oversized ``int`` values (see ``big_nums``).
    """

    universe = "collection"

    def __init__(
        self,
        codecs: tuple[Codec, ...] | list[Codec] = (),
        *,
        key_transformer: KeyTransformer | None = None,
        mutate_in_place: bool = False,
        enable_big_numbers: Mapping[str, Any] | NumRepForPath | None = None,
    ):
        super().__init__(codecs, key_transformer=key_transformer, mutate_in_place=mutate_in_place)
        self._num_rep_for_path = build_num_rep_for_path(enable_big_numbers) if enable_big_numbers else None

    @classmethod
    def default_codecs(cls) -> list[Codec]:
        return default_collection_codecs()

    @property
    def big_numbers_enabled(self) -> bool:
        return self._num_rep_for_path is not None

    def _make_ser_ctx(self, value: Any) -> SerCtx:
        return SerCtx(
            root=value,
            mutate_in_place=self.mutate_in_place,
            big_nums_enabled=self.big_numbers_enabled,
        )

    def _make_des_ctx(self, value: Any, response: dict[str, Any], parsing_primary_key: bool) -> DesCtx:
        return DesCtx(
            root=value,
            raw_response=response,
            num_rep_for_path=self._num_rep_for_path,
            _deserialize_as=self._deserialize_as,
        )

    def _serialize_node(self, value: Any, ctx: SerCtx) -> SerDesResult:
        key = ctx.key
        result = self._try_serializers(value, ctx, name=key if isinstance(key, str) else None)
        if result is not None:
            return result

        if isinstance(value, bool) or value is None or isinstance(value, str):
            return ctx.done()

        if isinstance(value, float):
            if not math.isfinite(value):
                raise SerDesError(f"{value} can't be stored in a collection; only finite numbers are supported")
            return ctx.done()

        if isinstance(value, Decimal) or is_big_int(value):
            if not ctx.big_nums_enabled:
                kind = "Decimal" if isinstance(value, Decimal) else "Big integer"
                raise SerDesError(
                    f"{kind} serialization must be enabled through enable_big_numbers in CollectionSerDesOptions"
                )
            ctx.big_nums_present = True
            return ctx.done()

        if isinstance(value, int):
            return ctx.done()

        for types, name, sigil, alternatives in _TABLE_ONLY_TYPES:
            if isinstance(value, types):
                raise unsupported_in_collections_error(name, sigil, alternatives)

        if not isinstance(value, (dict, list, tuple)):
            raise SerDesError(
                f"No codec can serialize {type(value).__name__} at path {list(ctx.path)}; "
                "register one with CollectionCodecs"
            )

        return ctx.recurse()

    def _deserialize_node(self, value: Any, ctx: DesCtx) -> SerDesResult:
        key = ctx.key
        type_tag = next(iter(value)) if isinstance(value, dict) and len(value) == 1 else None

        result = self._try_deserializers(value, ctx, name=key if isinstance(key, str) else None, type_tag=type_tag)
        if result is not None:
            return result

        if (
            ctx.num_rep_for_path is not None
            and isinstance(value, (int, float, Decimal))
            and not isinstance(value, bool)
        ):
            path = list(ctx.path)
            return ctx.done(coerce_number(value, ctx.num_rep_for_path(path), path))

        return ctx.recurse()


__all__ = ["CollectionCodecs", "CollectionSerDes", "default_collection_codecs"]
