"""
Tests for the value types: DataAPIVector, DataAPIDuration and ObjectId.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from astra_sdk.datatypes import DataAPIDuration, DataAPIVector, ObjectId, duration, vector
from astra_sdk.datatypes.duration import NS_PER_HOUR, NS_PER_MIN, NS_PER_MS, NS_PER_SEC
from astra_sdk.exceptions import SerDesError

# ---------------------------------------------------------------------------
# Vectors
# ---------------------------------------------------------------------------


class TestDataAPIVector:
    def test_sequence_behaviour(self) -> None:
        v = DataAPIVector([1, 2.5, 3])
        assert len(v) == 3
        assert list(v) == [1.0, 2.5, 3.0]
        assert v[1] == 2.5
        assert v.values == (1.0, 2.5, 3.0)

    def test_equality_and_hash(self) -> None:
        assert DataAPIVector([1.0, 2.0]) == DataAPIVector([1, 2])
        assert len({DataAPIVector([1.0]), DataAPIVector([1.0])}) == 1
        assert DataAPIVector([1.0]) != [1.0]

    def test_plain_wire_form(self) -> None:
        assert DataAPIVector([0.5, 0.25]).to_wire() == [0.5, 0.25]

    def test_binary_wire_form(self) -> None:
        wire = DataAPIVector([0.5, -1.0, 2.0], binary=True).to_wire()
        assert set(wire) == {"$binary"}
        decoded = DataAPIVector.from_wire(wire)
        assert decoded == DataAPIVector([0.5, -1.0, 2.0])

    def test_from_binary_bad_length(self) -> None:
        with pytest.raises(SerDesError, match="not a multiple of 4"):
            DataAPIVector.from_binary("AAA=")

    def test_from_wire_rejects_other_values(self) -> None:
        with pytest.raises(SerDesError, match="as a vector"):
            DataAPIVector.from_wire("0.5,0.5")

    def test_repr_truncates(self) -> None:
        assert repr(DataAPIVector([1, 2])) == "DataAPIVector([1.0, 2.0])"
        assert repr(DataAPIVector(range(10))) == "DataAPIVector([0, 1, 2, 3, 4, ...], len=10)"

    def test_shorthand(self) -> None:
        assert vector([1, 2]) == DataAPIVector([1.0, 2.0])
        binary = DataAPIVector([3.0], binary=True).to_binary()
        assert vector(binary) == DataAPIVector([3.0])


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------


class TestDurationParsing:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1y2mo", DataAPIDuration(14, 0, 0)),
            ("3w4d", DataAPIDuration(0, 25, 0)),
            ("5h6m7s", DataAPIDuration(0, 0, 5 * NS_PER_HOUR + 6 * NS_PER_MIN + 7 * NS_PER_SEC)),
            ("8ms9us10ns", DataAPIDuration(0, 0, 8 * NS_PER_MS + 9_000 + 10)),
            ("12µs", DataAPIDuration(0, 0, 12_000)),
            ("1Y1D", DataAPIDuration(12, 1, 0)),
            ("-1d2h", DataAPIDuration(0, -1, -2 * NS_PER_HOUR)),
        ],
    )
    def test_standard_format(self, text: str, expected: DataAPIDuration) -> None:
        assert DataAPIDuration.parse(text) == expected

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("P1Y2M3D", DataAPIDuration(14, 3, 0)),
            ("PT4H5M", DataAPIDuration(0, 0, 4 * NS_PER_HOUR + 5 * NS_PER_MIN)),
            ("PT6.007S", DataAPIDuration(0, 0, 6 * NS_PER_SEC + 7 * NS_PER_MS)),
            ("P2W", DataAPIDuration(0, 14, 0)),
            ("-P1D", DataAPIDuration(0, -1, 0)),
        ],
    )
    def test_iso_format(self, text: str, expected: DataAPIDuration) -> None:
        assert DataAPIDuration.parse(text) == expected

    @pytest.mark.parametrize("text", ["", "-", "5s4h", "1d1d", "abc", "P", "PT", "P1DT", "P1X"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(SerDesError):
            DataAPIDuration.parse(text)


class TestDuration:
    def test_str_is_canonical(self) -> None:
        assert str(DataAPIDuration.parse("P1Y2M3DT4H5M6.007S")) == "1y2mo3d4h5m6s7ms"
        assert str(DataAPIDuration.parse("2w")) == "14d"
        assert str(DataAPIDuration()) == "0s"
        assert str(DataAPIDuration.parse("-1h1ns")) == "-1h1ns"

    def test_repr(self) -> None:
        assert repr(DataAPIDuration(1, 0, 0)) == 'DataAPIDuration("1mo")'

    def test_mixed_signs_rejected(self) -> None:
        with pytest.raises(ValueError, match="same sign"):
            DataAPIDuration(1, -1, 0)

    def test_negation(self) -> None:
        d = DataAPIDuration.parse("1d")
        assert (-d).is_negative
        assert -(-d) == d

    def test_timedelta_conversion(self) -> None:
        delta = timedelta(days=1, hours=2, microseconds=5)
        d = DataAPIDuration.from_timedelta(delta)
        assert d.nanoseconds == (26 * 3600) * NS_PER_SEC + 5_000
        assert d.to_timedelta() == delta
        assert DataAPIDuration(0, -2, 0).to_timedelta() == timedelta(days=-2)

    def test_months_cannot_become_timedelta(self) -> None:
        with pytest.raises(ValueError, match="month component"):
            DataAPIDuration.parse("1mo").to_timedelta()

    def test_shorthand(self) -> None:
        assert duration("1h") == DataAPIDuration(0, 0, NS_PER_HOUR)
        assert duration(timedelta(seconds=1)) == DataAPIDuration(0, 0, NS_PER_SEC)

    def test_hashable(self) -> None:
        assert len({duration("1h"), duration("60m")}) == 1


# ---------------------------------------------------------------------------
# ObjectIds
# ---------------------------------------------------------------------------


class TestObjectId:
    def test_from_hex(self) -> None:
        oid = ObjectId("5F3C1A2B00000000000000AA")
        assert str(oid) == "5f3c1a2b00000000000000aa"
        assert repr(oid) == 'ObjectId("5f3c1a2b00000000000000aa")'
        assert oid == ObjectId("5f3c1a2b00000000000000aa")

    def test_timestamp(self) -> None:
        assert ObjectId("000000010000000000000000").timestamp == datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)

    def test_binary(self) -> None:
        oid = ObjectId(bytes(range(12)))
        assert oid.binary == bytes(range(12))
        assert str(oid) == "000102030405060708090a0b"

    def test_generated_ids_are_unique_and_ordered(self) -> None:
        ids = [ObjectId() for _ in range(50)]
        assert len(set(ids)) == 50
        assert all(ObjectId.is_valid(str(i)) for i in ids)
        assert abs(ids[0].timestamp - datetime.now(UTC)) < timedelta(minutes=1)

    @pytest.mark.parametrize("value", ["xyz", "5f3c1a2b", b"short", 42])
    def test_invalid(self, value: object) -> None:
        with pytest.raises(SerDesError):
            ObjectId(value)  # type: ignore[arg-type]

    def test_is_valid(self) -> None:
        assert ObjectId.is_valid("5f3c1a2b00000000000000aa")
        assert not ObjectId.is_valid("5f3c")
        assert not ObjectId.is_valid(None)
