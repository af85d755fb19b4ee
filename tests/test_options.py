"""
Tests for the layered option dataclasses.
"""

from __future__ import annotations

import pytest

from astra_sdk import (
    Camel2SnakeCase,
    CollectionCodecs,
    CollectionSerDesOptions,
    DataAPIClientOptions,
    TableSerDesOptions,
    TimeoutOptions,
)
from astra_sdk.exceptions import InvalidOptionsError
from astra_sdk.options import DEFAULT_TIMEOUTS
from astra_sdk.serdes import CollectionSerDes, TableSerDes


class TestTimeoutOptions:
    @pytest.mark.parametrize("value", [-1, 1.5, True, "100"])
    def test_rejects_invalid_values(self, value: object) -> None:
        with pytest.raises(InvalidOptionsError, match="request_timeout_ms must be a non-negative integer"):
            TimeoutOptions(request_timeout_ms=value)  # type: ignore[arg-type]

    def test_zero_is_allowed(self) -> None:
        assert TimeoutOptions(request_timeout_ms=0).get("request_timeout_ms") == 0

    def test_get_falls_back_to_defaults(self) -> None:
        options = TimeoutOptions(request_timeout_ms=1000)
        assert options.get("request_timeout_ms") == 1000
        assert options.get("database_admin_timeout_ms") == DEFAULT_TIMEOUTS.database_admin_timeout_ms

    def test_merge_child_wins_where_set(self) -> None:
        parent = TimeoutOptions(request_timeout_ms=1000, general_method_timeout_ms=5000)
        merged = parent.merge(TimeoutOptions(general_method_timeout_ms=9000, table_admin_timeout_ms=100))

        assert merged == TimeoutOptions(
            request_timeout_ms=1000, general_method_timeout_ms=9000, table_admin_timeout_ms=100
        )
        assert parent.general_method_timeout_ms == 5000

    def test_merge_none(self) -> None:
        parent = TimeoutOptions(request_timeout_ms=1000)
        assert parent.merge(None) is parent


class TestSerDesOptions:
    def test_codecs_accumulate_parent_first(self) -> None:
        first = CollectionCodecs.for_name("a", serialize=lambda v, ctx: ctx.done(1))
        second = CollectionCodecs.for_name("b", serialize=lambda v, ctx: ctx.done(2))

        merged = CollectionSerDesOptions(codecs=[first]).merge(CollectionSerDesOptions(codecs=[second]))
        assert list(merged.codecs) == [first, second]

    def test_child_overrides_scalars(self) -> None:
        parent = CollectionSerDesOptions(mutate_in_place=True, enable_big_numbers={"*": "decimal"})
        merged = parent.merge(CollectionSerDesOptions(mutate_in_place=False))

        assert merged.mutate_in_place is False
        assert merged.enable_big_numbers == {"*": "decimal"}

    def test_collection_build(self) -> None:
        serdes = CollectionSerDesOptions(key_transformer=Camel2SnakeCase(), enable_big_numbers={"*": "number"}).build()
        assert isinstance(serdes, CollectionSerDes)
        assert serdes.big_numbers_enabled
        assert isinstance(serdes.key_transformer, Camel2SnakeCase)
        assert not serdes.mutate_in_place

    def test_table_build(self) -> None:
        serdes = TableSerDesOptions().merge(TableSerDesOptions(sparse_data=True)).build()
        assert isinstance(serdes, TableSerDes)
        assert serdes.sparse_data


class TestClientOptions:
    def test_defaults(self) -> None:
        options = DataAPIClientOptions()
        assert options.environment == "astra"
        assert options.timeouts == DEFAULT_TIMEOUTS

    @pytest.mark.parametrize(
        "environment, path",
        [("astra", "api/json/v1"), ("hcd", "v1"), ("dse", "v1"), ("other", "v1")],
    )
    def test_api_path_by_environment(self, environment: str, path: str) -> None:
        assert DataAPIClientOptions(environment=environment).resolved_api_path == path  # type: ignore[arg-type]

    def test_explicit_api_path(self) -> None:
        assert DataAPIClientOptions(environment="hcd", api_path="data/v1").resolved_api_path == "data/v1"

    def test_timeouts_merge_with_defaults(self) -> None:
        options = DataAPIClientOptions(timeout_defaults=TimeoutOptions(request_timeout_ms=1))
        assert options.timeouts.request_timeout_ms == 1
        assert options.timeouts.general_method_timeout_ms == DEFAULT_TIMEOUTS.general_method_timeout_ms

    def test_with_overrides(self) -> None:
        options = DataAPIClientOptions(token="a")
        changed = options.with_overrides(token="b")
        assert (options.token, changed.token) == ("a", "b")

    def test_invalid_environment(self) -> None:
        with pytest.raises(InvalidOptionsError, match="expected one of astra"):
            DataAPIClientOptions(environment="oracle")  # type: ignore[arg-type]
