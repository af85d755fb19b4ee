"""
Tests for codec definitions, the codec registry and tiered resolution.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from astra_sdk.exceptions import InvalidOptionsError, SerDesError
from astra_sdk.serdes import (
    ByPath,
    Codec,
    CodecRegistry,
    CollectionCodecs,
    CollectionSerDes,
    DesCtx,
    SerCtx,
    SerDesAction,
    TableCodecs,
)

# ---------------------------------------------------------------------------
# Match criteria
# ---------------------------------------------------------------------------


class TestByPath:
    """Tests for path matching."""

    def test_exact_match(self) -> None:
        assert ByPath(("a", "b")).matches(["a", "b"])
        assert not ByPath(("a", "b")).matches(["a", "c"])

    def test_length_must_match(self) -> None:
        assert not ByPath(("a",)).matches(["a", "b"])
        assert not ByPath(("a", "b")).matches(["a"])

    def test_wildcard_matches_any_segment(self) -> None:
        criterion = ByPath(("items", "*", "price"))
        assert criterion.matches(["items", 0, "price"])
        assert criterion.matches(["items", "x", "price"])
        assert not criterion.matches(["items", 0, "cost"])

    def test_numeric_segment_matches_list_index(self) -> None:
        assert ByPath(("items", "0")).matches(["items", 0])
        assert not ByPath(("items", "1")).matches(["items", 0])


# ---------------------------------------------------------------------------
# Codec construction
# ---------------------------------------------------------------------------


class TestCodec:
    """Tests for Codec validation and the factories."""

    def test_needs_a_function(self) -> None:
        with pytest.raises(InvalidOptionsError, match="at least one"):
            CollectionCodecs.for_name("x")

    def test_type_codec_with_serialize_needs_class(self) -> None:
        with pytest.raises(InvalidOptionsError, match="no class"):
            CollectionCodecs.for_type("$x", serialize=lambda v, ctx: ctx.done(v))

    def test_for_path_splits_dotted_string(self) -> None:
        codec = CollectionCodecs.for_path("a.b.c", deserialize=lambda v, ctx: ctx.done(v))
        assert codec.match == ByPath(("a", "b", "c"))

    def test_for_type_with_datatype_fills_functions(self) -> None:
        class Money:
            def __init__(self, cents: int):
                self.cents = cents

            def serialize_for_collection(self, ctx: SerCtx) -> Any:
                return ctx.done({"$money": self.cents})

            @classmethod
            def deserialize_for_collection(cls, value: Any, ctx: DesCtx) -> Any:
                return ctx.done(cls(value["$money"]))

        codec = CollectionCodecs.for_type("$money", Money)
        assert codec.serialize is not None
        assert codec.deserialize is not None

        serdes = CollectionSerDes([codec])
        wire, _ = serdes.serialize({"price": Money(250)})
        assert wire == {"price": {"$money": 250}}
        assert serdes.deserialize(wire)["price"].cents == 250

    def test_datatype_without_classmethod_rejected(self) -> None:
        class Plain:
            pass

        with pytest.raises(InvalidOptionsError, match="deserialize_for_collection"):
            CollectionCodecs.for_name("x", Plain)

    def test_table_factory_uses_table_universe(self) -> None:
        codec = TableCodecs.for_name("x", deserialize=lambda v, ctx, col: ctx.done(v))
        assert codec.universe == "table"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def _ser(tag: str) -> Any:
    def fn(value: Any, ctx: SerCtx) -> Any:
        return ctx.done(tag)

    fn.__name__ = tag
    return fn


class TestCodecRegistry:
    """Tests for CodecRegistry."""

    def test_rejects_other_universe(self) -> None:
        registry = CodecRegistry("collection")
        with pytest.raises(InvalidOptionsError, match="table codec"):
            registry.register(TableCodecs.for_name("x", serialize=_ser("x")))

    def test_frozen_registry_rejects_codecs(self) -> None:
        registry = CodecRegistry("collection").freeze()
        assert registry.frozen
        with pytest.raises(InvalidOptionsError, match="frozen"):
            registry.register(CollectionCodecs.for_name("x", serialize=_ser("x")))

    def test_len_and_codecs(self) -> None:
        codecs = [CollectionCodecs.for_name("a", serialize=_ser("a")), CollectionCodecs.for_name("b", serialize=_ser("b"))]
        registry = CodecRegistry("collection", codecs)
        assert len(registry) == 2
        assert registry.codecs == tuple(codecs)

    def test_serializer_tier_order(self) -> None:
        """Path, then name, then class, then guard."""
        guard = _ser("guard")
        by_class = _ser("class")
        by_name = _ser("name")
        by_path = _ser("path")

        registry = CodecRegistry(
            "collection",
            [
                CollectionCodecs.custom(serialize_guard=lambda v, ctx: True, serialize=guard),
                CollectionCodecs.for_type(None, serialize_class=int, serialize=by_class),
                CollectionCodecs.for_name("x", serialize=by_name),
                CollectionCodecs.for_path("x", serialize=by_path),
            ],
        )
        ctx = SerCtx(root={"x": 1}, path=["x"])
        assert list(registry.serializers(1, ctx, name="x")) == [by_path, by_name, by_class, guard]

    def test_exact_class_before_subclass(self) -> None:
        class Base:
            pass

        class Child(Base):
            pass

        for_base = _ser("base")
        for_child = _ser("child")
        registry = CodecRegistry(
            "collection",
            [
                CollectionCodecs.for_type(None, serialize_class=Base, serialize=for_base),
                CollectionCodecs.for_type(None, serialize_class=Child, serialize=for_child),
            ],
        )
        ctx = SerCtx(root=None)
        assert list(registry.serializers(Child(), ctx, name=None)) == [for_child, for_base]
        assert list(registry.serializers(Base(), ctx, name=None)) == [for_base]

    def test_deserializer_tier_order(self) -> None:
        def make(tag: str) -> Any:
            def fn(value: Any, ctx: DesCtx) -> Any:
                return ctx.done(tag)

            return fn

        guard, by_type, by_name, by_path = make("guard"), make("type"), make("name"), make("path")
        registry = CodecRegistry(
            "collection",
            [
                CollectionCodecs.custom(deserialize_guard=lambda v, ctx: True, deserialize=guard),
                CollectionCodecs.for_type("$t", deserialize=by_type),
                CollectionCodecs.for_name("x", deserialize=by_name),
                CollectionCodecs.for_path(["x"], deserialize=by_path),
            ],
        )
        ctx = DesCtx(root=None, path=["x"])
        candidates = list(registry.deserializers({"$t": 1}, ctx, name="x", type_tag="$t"))
        assert candidates == [by_path, by_name, by_type, guard]

    def test_custom_codec_needs_guard(self) -> None:
        with pytest.raises(InvalidOptionsError, match="serialize_guard"):
            CodecRegistry("collection", [CollectionCodecs.custom(serialize=_ser("x"))])


# ---------------------------------------------------------------------------
# Resolution through a SerDes
# ---------------------------------------------------------------------------


class TestResolution:
    """Codec outcomes: done, recurse, nevermind."""

    def test_nevermind_falls_through_to_next_codec(self) -> None:
        calls: list[str] = []

        def first(value: Any, ctx: SerCtx) -> Any:
            calls.append("first")
            return ctx.nevermind()

        def second(value: Any, ctx: SerCtx) -> Any:
            calls.append("second")
            return ctx.done(value.upper())

        serdes = CollectionSerDes(
            [CollectionCodecs.for_name("name", serialize=first), CollectionCodecs.for_name("name", serialize=second)]
        )
        wire, _ = serdes.serialize({"name": "ada"})
        assert wire == {"name": "ADA"}
        assert calls == ["first", "second"]

    def test_user_codec_declining_falls_back_to_defaults(self) -> None:
        serdes = CollectionSerDes(
            [CollectionCodecs.for_type(None, serialize_class=datetime, serialize=lambda v, ctx: ctx.nevermind())]
        )
        wire, _ = serdes.serialize({"at": datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)})
        assert wire == {"at": {"$date": 1000}}

    def test_user_codec_overrides_default(self) -> None:
        serdes = CollectionSerDes(
            [
                CollectionCodecs.for_type(
                    None, serialize_class=datetime, serialize=lambda v, ctx: ctx.done(v.isoformat())
                )
            ]
        )
        when = datetime(2024, 1, 1, tzinfo=UTC)
        wire, _ = serdes.serialize({"at": when})
        assert wire == {"at": when.isoformat()}

    def test_recurse_with_replacement_traverses_new_value(self) -> None:
        """A codec can swap a node and still let its children be converted."""
        when = datetime(1970, 1, 1, 0, 0, 2, tzinfo=UTC)
        serdes = CollectionSerDes(
            [CollectionCodecs.for_name("wrapped", serialize=lambda v, ctx: ctx.recurse({"inner": v}))]
        )
        wire, _ = serdes.serialize({"wrapped": when})
        assert wire == {"wrapped": {"inner": {"$date": 2000}}}

    def test_done_stops_descent(self) -> None:
        serdes = CollectionSerDes([CollectionCodecs.for_name("raw", serialize=lambda v, ctx: ctx.done())])
        when = datetime(2024, 1, 1, tzinfo=UTC)
        wire, _ = serdes.serialize({"raw": {"at": when}})
        assert wire["raw"]["at"] is when

    def test_map_after_runs_after_children(self) -> None:
        def serialize_tags(value: Any, ctx: SerCtx) -> Any:
            ctx.map_after(sorted)
            return ctx.recurse()

        serdes = CollectionSerDes(
            [
                CollectionCodecs.for_name("tags", serialize=serialize_tags),
                CollectionCodecs.for_path("tags.*", serialize=lambda v, ctx: ctx.done(v.lower())),
            ]
        )
        wire, _ = serdes.serialize({"tags": ["b", "C", "a"]})
        assert wire == {"tags": ["a", "b", "c"]}

    def test_codec_must_return_a_result(self) -> None:
        serdes = CollectionSerDes([CollectionCodecs.for_name("x", serialize=lambda v, ctx: v)])
        with pytest.raises(SerDesError, match="ctx.done"):
            serdes.serialize({"x": 1})

    def test_guard_codec(self) -> None:
        serdes = CollectionSerDes(
            [
                CollectionCodecs.custom(
                    serialize_guard=lambda v, ctx: isinstance(v, complex),
                    serialize=lambda v, ctx: ctx.done({"$complex": [v.real, v.imag]}),
                    deserialize_guard=lambda v, ctx: isinstance(v, dict) and "$complex" in v,
                    deserialize=lambda v, ctx: ctx.done(complex(*v["$complex"])),
                )
            ]
        )
        wire, _ = serdes.serialize({"z": 1 + 2j})
        assert wire == {"z": {"$complex": [1.0, 2.0]}}
        assert serdes.deserialize(wire) == {"z": 1 + 2j}

    def test_results_carry_actions(self) -> None:
        ctx = SerCtx(root=None)
        assert ctx.done().action is SerDesAction.DONE
        assert ctx.recurse(1).value == 1
        assert not ctx.nevermind().has_value
