"""
Tests for the protocol layer: JSON encoding, targets and responses.
"""

import math
from decimal import Decimal
from types import SimpleNamespace

import pytest

from astra_sdk.exceptions import SerDesError
from astra_sdk.protocol import CommandTarget, DataAPIResponse, dumps, loads


class TestDumps:
    def test_compact(self) -> None:
        assert dumps({"find": {"filter": {"a": 1}}}) == '{"find":{"filter":{"a":1}}}'

    def test_decimal_as_bare_number(self) -> None:
        text = dumps({"price": Decimal("0.1000000000000000000001"), "n": 2**70}, big_numbers=True)
        assert text == '{"price":0.1000000000000000000001,"n":1180591620717411303424}'

    @pytest.mark.parametrize("lookalike", ["__ASTRA_NUM_0__", "__astra_num_0__", "__astra_num__0__"])
    def test_placeholder_lookalike_strings_untouched(self, lookalike: str) -> None:
        text = dumps({"a": Decimal("1.5"), "b": lookalike}, big_numbers=True)
        assert text == f'{{"a":1.5,"b":"{lookalike}"}}'

    def test_placeholders_differ_between_calls(self, monkeypatch: pytest.MonkeyPatch) -> None:
        nonces = iter(["first", "second"])
        monkeypatch.setattr("astra_sdk.protocol.wire.uuid.uuid4", lambda: SimpleNamespace(hex=next(nonces)))

        # a string equal to the first call's placeholder survives the second call
        assert dumps({"a": Decimal("1")}, big_numbers=True) == '{"a":1}'
        text = dumps({"a": Decimal("2"), "b": "__astra_num_first_0__"}, big_numbers=True)
        assert text == '{"a":2,"b":"__astra_num_first_0__"}'

    def test_decimal_without_flag(self) -> None:
        with pytest.raises(SerDesError, match="not JSON serializable"):
            dumps({"a": Decimal("1.5")})

    def test_non_finite_float(self) -> None:
        with pytest.raises(SerDesError):
            dumps({"a": math.nan})

    def test_non_finite_decimal(self) -> None:
        with pytest.raises(SerDesError, match="JSON number"):
            dumps({"a": Decimal("Infinity")}, big_numbers=True)


class TestLoads:
    def test_plain(self) -> None:
        assert loads(b'{"a":1.5,"b":2}') == {"a": 1.5, "b": 2}

    def test_big_numbers(self) -> None:
        body = loads('{"a":0.1000000000000000000001,"b":123456789012345678901234567890}', big_numbers=True)
        assert body == {"a": Decimal("0.1000000000000000000001"), "b": 123456789012345678901234567890}
        assert isinstance(body["b"], int)


class TestCommandTarget:
    @pytest.mark.parametrize(
        "target, path",
        [
            (CommandTarget(), "/api/json/v1"),
            (CommandTarget(keyspace="ks"), "/api/json/v1/ks"),
            (CommandTarget(keyspace="ks", collection="docs"), "/api/json/v1/ks/docs"),
            (CommandTarget(keyspace="ks", table="rows"), "/api/json/v1/ks/rows"),
        ],
    )
    def test_path(self, target: CommandTarget, path: str) -> None:
        assert target.path("/api/json/v1/") == path

    def test_empty_api_path(self) -> None:
        assert CommandTarget(keyspace="ks").path("") == "/ks"

    def test_str(self) -> None:
        assert str(CommandTarget()) == "<database>"
        assert str(CommandTarget(keyspace="ks", table="rows")) == "ks.rows"

    def test_collection_and_table_exclusive(self) -> None:
        with pytest.raises(ValueError, match="not both"):
            CommandTarget(keyspace="ks", collection="a", table="b")

    def test_source_needs_keyspace(self) -> None:
        with pytest.raises(ValueError, match="keyspace is required"):
            CommandTarget(collection="a")


class TestDataAPIResponse:
    def test_from_dict(self) -> None:
        response = DataAPIResponse.from_dict(
            {
                "data": {"documents": [{"_id": 1}], "nextPageState": "abc"},
                "status": {"warnings": [{"message": "careful"}]},
            }
        )
        assert response.documents == [{"_id": 1}]
        assert response.next_page_state == "abc"
        assert response.warnings == [{"message": "careful"}]
        assert not response.is_error

    def test_missing_sections(self) -> None:
        response = DataAPIResponse.from_dict({"errors": [{"message": "nope"}]})
        assert response.documents == []
        assert response.document is None
        assert response.status == {}
        assert response.is_error
