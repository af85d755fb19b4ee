"""
Serialization for tables (server-declared, typed columns).

Unlike collections there are no sigils: the response's
``projectionSchema`` (rows) or ``primaryKeySchema`` (inserted primary keys)
says what each top-level column is, and the column type picks the codec.
Columns declared in the schema but missing from a row are filled in with
an empty value of the right shape unless ``sparse_data`` is set.
"""

from __future__ import annotations

import base64
import ipaddress
import math
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Callable, NamedTuple
from uuid import UUID

from ..datatypes import DataAPIDuration, DataAPIVector
from ..exceptions import SerDesError, TableSchemaError
from ..schema import ColumnDefinition, extract_table_schema
from .big_nums import is_big_int
from .codecs import Codec, CodecFactory
from .ctx import DesCtx, SerCtx, SerDesResult
from .engine import SerDes
from .key_transformer import KeyTransformer

_FLOAT_SENTINELS = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}


class TableCodecs(CodecFactory):
    """
    Codec factories for tables.

    Table deserializers receive the column definition as a third argument::

        TableCodecs.for_name("age", serialize=lambda v, ctx: ctx.done(v * 2),
                             deserialize=lambda v, ctx, column: ctx.done(v / 2))
    """

    universe = "table"
    serialize_method = "serialize_for_table"
    deserialize_method = "deserialize_for_table"


class ResolvedSchema(NamedTuple):
    columns: dict[str, ColumnDefinition]
    primary_key: bool


# ---------------------------------------------------------------------------
# Default codecs
# ---------------------------------------------------------------------------


def _des(convert: Callable[[Any], Any]) -> Callable[[Any, DesCtx, Any], SerDesResult]:
    def deserialize(value: Any, ctx: DesCtx, column: Any = None) -> SerDesResult:
        return ctx.done(convert(value))

    return deserialize


def _to_int(value: Any) -> int:
    return value if isinstance(value, int) else int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, str) and value in _FLOAT_SENTINELS:
        return _FLOAT_SENTINELS[value]
    return float(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, dict):
        value = value["$binary"]
    return base64.b64decode(value)


def _to_timestamp(value: Any) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _deserialize_map(value: Any, ctx: DesCtx, column: ColumnDefinition | None) -> SerDesResult:
    entries = value if isinstance(value, list) else value.items()
    key_type = column.key_type if column else None
    value_type = column.value_type if column else None

    out = {}
    for k, v in entries:
        if key_type:
            k = ctx.deserialize_as(k, key_type)
        if value_type:
            v = ctx.deserialize_as(v, value_type)
        out[k] = v
    return ctx.done(out)


def _deserialize_elements(value: Any, ctx: DesCtx, column: ColumnDefinition | None) -> list[Any]:
    value_type = column.value_type if column else None
    if not value_type:
        return list(value)
    return [ctx.deserialize_as(v, value_type) for v in value]


def _deserialize_list(value: Any, ctx: DesCtx, column: ColumnDefinition | None) -> SerDesResult:
    return ctx.done(_deserialize_elements(value, ctx, column))


def _deserialize_set(value: Any, ctx: DesCtx, column: ColumnDefinition | None) -> SerDesResult:
    elements = _deserialize_elements(value, ctx, column)
    try:
        return ctx.done(set(elements))
    except TypeError:
        # unhashable elements (e.g. maps); keep server order
        return ctx.done(elements)


def _ser(convert: Callable[[Any], Any]) -> Callable[[Any, SerCtx], SerDesResult]:
    def serialize(value: Any, ctx: SerCtx) -> SerDesResult:
        return ctx.done(convert(value))

    return serialize


def _timestamp_to_wire(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def _serialize_set(value: set[Any] | frozenset[Any], ctx: SerCtx) -> SerDesResult:
    return ctx.recurse(list(value))


def default_table_codecs() -> list[Codec]:
    codecs = [
        TableCodecs.for_type(tag, deserialize=_des(_to_int))
        for tag in ("bigint", "counter", "varint", "int", "smallint", "tinyint")
    ]
    codecs += [TableCodecs.for_type(tag, deserialize=_des(_to_float)) for tag in ("double", "float")]
    codecs += [
        TableCodecs.for_type("decimal", deserialize=_des(_to_decimal)),
        TableCodecs.for_type(
            "blob",
            serialize_class=bytes,
            serialize=_ser(lambda v: {"$binary": base64.b64encode(v).decode("ascii")}),
            deserialize=_des(_to_bytes),
        ),
        TableCodecs.for_type(
            None,
            serialize_class=bytearray,
            serialize=_ser(lambda v: {"$binary": base64.b64encode(bytes(v)).decode("ascii")}),
        ),
        TableCodecs.for_type(
            "timestamp", serialize_class=datetime, serialize=_ser(_timestamp_to_wire), deserialize=_des(_to_timestamp)
        ),
        TableCodecs.for_type(
            "date", serialize_class=date, serialize=_ser(date.isoformat), deserialize=_des(date.fromisoformat)
        ),
        TableCodecs.for_type(
            "time", serialize_class=time, serialize=_ser(time.isoformat), deserialize=_des(time.fromisoformat)
        ),
        TableCodecs.for_type("duration", DataAPIDuration),
        TableCodecs.for_type(
            None, serialize_class=timedelta, serialize=_ser(lambda v: str(DataAPIDuration.from_timedelta(v)))
        ),
        TableCodecs.for_type(
            "inet", serialize_class=ipaddress.IPv4Address, serialize=_ser(str), deserialize=_des(ipaddress.ip_address)
        ),
        TableCodecs.for_type(None, serialize_class=ipaddress.IPv6Address, serialize=_ser(str)),
        TableCodecs.for_type("uuid", serialize_class=UUID, serialize=_ser(str), deserialize=_des(UUID)),
        TableCodecs.for_type("timeuuid", deserialize=_des(UUID)),
        TableCodecs.for_type("vector", DataAPIVector),
        TableCodecs.for_type("map", deserialize=_deserialize_map),
        TableCodecs.for_type("list", deserialize=_deserialize_list),
        TableCodecs.for_type("set", serialize_class=set, serialize=_serialize_set, deserialize=_deserialize_set),
        TableCodecs.for_type(None, serialize_class=frozenset, serialize=_serialize_set),
    ]
    return codecs


def _empty_value(column: ColumnDefinition) -> Any:
    kind = column.resolved_type
    if kind == "map":
        return {}
    if kind == "set":
        return set()
    if kind == "list":
        return []
    return None


# ---------------------------------------------------------------------------
# SerDes
# ---------------------------------------------------------------------------


class TableSerDes(SerDes):
    """
    Serializer/deserializer for table rows and primary keys.

    Args:
        codecs: User codecs, consulted before the built-in ones in every tier.
        key_transformer: Optional key renaming; schema column names are
            renamed with it too.
        mutate_in_place: Let serialization write into the caller's row.
        sparse_data: Leave columns missing from a row out of the result
            instead of filling them in.
    """

    universe = "table"

    def __init__(
        self,
        codecs: tuple[Codec, ...] | list[Codec] = (),
        *,
        key_transformer: KeyTransformer | None = None,
        mutate_in_place: bool = False,
        sparse_data: bool = False,
    ):
        super().__init__(codecs, key_transformer=key_transformer, mutate_in_place=mutate_in_place)
        self.sparse_data = sparse_data

    @classmethod
    def default_codecs(cls) -> list[Codec]:
        return default_table_codecs()

    def resolve_schema(self, response: dict[str, Any]) -> ResolvedSchema:
        """Extract (and key-transform) the column schema from a raw response."""
        columns, primary_key = extract_table_schema(response)
        if self.key_transformer is not None:
            columns = {self.key_transformer.deserialize_key(k, [k]): v for k, v in columns.items()}
        return ResolvedSchema(columns, primary_key)

    def deserialize(
        self,
        value: Any,
        response: dict[str, Any] | None = None,
        *,
        parsing_primary_key: bool = False,
        schema: ResolvedSchema | None = None,
    ) -> Any:
        if value is None:
            return None

        response = response or {}
        schema = schema or self.resolve_schema(response)

        if self.key_transformer is not None and isinstance(value, dict):
            value = self.key_transformer.deserialize(value)

        ctx = self._ctx_for(value, response, schema, parsing_primary_key)
        return self._deserialize_value(ctx.root, ctx)

    def deserialize_many(self, values: Any, response: dict[str, Any] | None = None) -> list[Any]:
        response = response or {}
        schema = self.resolve_schema(response)
        return [self.deserialize(v, response, schema=schema) for v in values]

    def _make_ser_ctx(self, value: Any) -> SerCtx:
        return SerCtx(root=value, mutate_in_place=self.mutate_in_place)

    def _make_des_ctx(self, value: Any, response: dict[str, Any], parsing_primary_key: bool) -> DesCtx:
        return self._ctx_for(value, response, self.resolve_schema(response), parsing_primary_key)

    def _ctx_for(
        self,
        value: Any,
        response: dict[str, Any],
        schema: ResolvedSchema,
        parsing_primary_key: bool,
    ) -> DesCtx:
        primary_key = parsing_primary_key or schema.primary_key

        if primary_key and isinstance(value, (list, tuple)):
            if len(value) != len(schema.columns):
                raise TableSchemaError(
                    f"Primary key has {len(value)} values but the schema declares {len(schema.columns)} columns"
                )
            value = dict(zip(schema.columns, value))

        return DesCtx(
            root=value,
            raw_response=response,
            table_schema=schema.columns,
            parsing_primary_key=primary_key,
            populate_sparse_data=not primary_key and not self.sparse_data,
            _deserialize_as=self._deserialize_as,
        )

    def _call_deserializer(self, fn: Callable[..., SerDesResult], value: Any, ctx: DesCtx, column: Any) -> Any:
        return fn(value, ctx, column)

    def _serialize_node(self, value: Any, ctx: SerCtx) -> SerDesResult:
        name = ctx.path[0] if len(ctx.path) == 1 and isinstance(ctx.path[0], str) else None
        result = self._try_serializers(value, ctx, name=name)
        if result is not None:
            return result

        # JSON objects only take string keys; other map keys go out as [[key, value], ...]
        if isinstance(value, dict) and ctx.path and any(not isinstance(k, str) for k in value):
            return ctx.recurse([[k, v] for k, v in value.items()])

        if isinstance(value, bool) or value is None or isinstance(value, str):
            return ctx.done()

        if isinstance(value, float):
            if math.isnan(value):
                return ctx.done("NaN")
            if math.isinf(value):
                return ctx.done("Infinity" if value > 0 else "-Infinity")
            return ctx.done()

        if isinstance(value, Decimal):
            if not value.is_finite():
                return ctx.done("NaN" if value.is_nan() else ("Infinity" if value > 0 else "-Infinity"))
            ctx.big_nums_present = True
            return ctx.done()

        if isinstance(value, int):
            if is_big_int(value):
                ctx.big_nums_present = True
            return ctx.done()

        if not isinstance(value, (dict, list, tuple)):
            raise SerDesError(
                f"No codec can serialize {type(value).__name__} at path {list(ctx.path)}; "
                "register one with TableCodecs"
            )

        return ctx.recurse()

    def _deserialize_node(self, value: Any, ctx: DesCtx) -> SerDesResult:
        path = ctx.path
        schema = ctx.table_schema or {}

        if not path:
            if ctx.populate_sparse_data and isinstance(value, dict):
                ctx.populate_sparse_data = False
                missing = [k for k in schema if k not in value]
                if missing:
                    value = dict(value)
                    for key in missing:
                        value[key] = _empty_value(schema[key])
                    ctx.sparse_keys = frozenset(missing)
                    return ctx.recurse(value)
            return ctx.recurse()

        if len(path) == 1:
            key = path[0]
            if key in ctx.sparse_keys:
                return ctx.done()

            column = schema.get(key) if isinstance(key, str) else None
            if column is None:
                result = self._try_deserializers(value, ctx, name=key if isinstance(key, str) else None, type_tag=None)
                if result is not None:
                    return result
                return ctx.done(float(value) if isinstance(value, Decimal) else value)

            type_tag = None if value is None else column.resolved_type
            result = self._try_deserializers(value, ctx, name=key, type_tag=type_tag, column=column)
            return result if result is not None else ctx.done()

        result = self._try_deserializers(value, ctx, name=None, type_tag=None)
        return result if result is not None else ctx.recurse()


__all__ = ["ResolvedSchema", "TableCodecs", "TableSerDes", "default_table_codecs"]
