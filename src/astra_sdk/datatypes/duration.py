"""CQL ``duration`` values."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from ..exceptions import SerDesError

if TYPE_CHECKING:
    from ..serdes.ctx import DesCtx, SerCtx, SerDesResult

NS_PER_US = 1_000
NS_PER_MS = 1_000_000
NS_PER_SEC = 1_000_000_000
NS_PER_MIN = 60 * NS_PER_SEC
NS_PER_HOUR = 60 * NS_PER_MIN

_STANDARD_RE = re.compile(r"(\d+)(y|mo|w|d|h|ms|us|µs|ns|m|s)", re.IGNORECASE)
_ISO_RE = re.compile(
    r"^P(?:(?P<y>\d+)Y)?(?:(?P<mo>\d+)M)?(?:(?P<d>\d+)D)?"
    r"(?:T(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+)(?:\.(?P<frac>\d{1,9}))?S)?)?$"
)
_ISO_WEEK_RE = re.compile(r"^P(\d+)W$")

# Standard-format units in the order they must appear, with (months, days, nanos) weights.
_UNITS: list[tuple[str, tuple[int, int, int]]] = [
    ("y", (12, 0, 0)),
    ("mo", (1, 0, 0)),
    ("w", (0, 7, 0)),
    ("d", (0, 1, 0)),
    ("h", (0, 0, NS_PER_HOUR)),
    ("m", (0, 0, NS_PER_MIN)),
    ("s", (0, 0, NS_PER_SEC)),
    ("ms", (0, 0, NS_PER_MS)),
    ("us", (0, 0, NS_PER_US)),
    ("ns", (0, 0, 1)),
]
_UNIT_INDEX = {unit: i for i, (unit, _) in enumerate(_UNITS)}


class DataAPIDuration:
    """
    A duration made of months, days and nanoseconds.

    The three components aren't convertible into each other (a month has no
    fixed number of days), which is why ``timedelta`` can't represent every
    duration. All three components share the duration's sign.

    Accepts the standard format (``"1y2mo3w4d5h6m7s8ms9us10ns"``), ISO-8601
    (``"P1Y2M3DT4H5M6.007S"``) and ISO week format (``"P2W"``), each
    optionally prefixed with ``-``.
    """

    __slots__ = ("months", "days", "nanoseconds")

    def __init__(self, months: int = 0, days: int = 0, nanoseconds: int = 0):
        signs = {(c > 0) - (c < 0) for c in (months, days, nanoseconds)} - {0}
        if len(signs) > 1:
            raise ValueError("Duration components must all share the same sign")
        self.months = months
        self.days = days
        self.nanoseconds = nanoseconds

    @classmethod
    def parse(cls, text: str) -> DataAPIDuration:
        negative = text.startswith("-")
        body = text[1:] if negative else text
        if not body:
            raise SerDesError("Invalid duration; an empty string (or just a sign) is not allowed")

        if body.startswith("P"):
            months, days, nanos = _parse_iso(body)
        else:
            months, days, nanos = _parse_standard(body)

        if negative:
            return cls(-months, -days, -nanos)
        return cls(months, days, nanos)

    @classmethod
    def from_timedelta(cls, delta: timedelta) -> DataAPIDuration:
        nanos = (delta.days * 86_400 + delta.seconds) * NS_PER_SEC + delta.microseconds * NS_PER_US
        return cls(0, 0, nanos)

    def to_timedelta(self) -> timedelta:
        """Convert to ``timedelta``; months can't be converted and raise ``ValueError``."""
        if self.months:
            raise ValueError(f"Can't convert {self} to timedelta: it has a month component")
        micros = abs(self.nanoseconds) // NS_PER_US
        return timedelta(days=self.days, microseconds=-micros if self.nanoseconds < 0 else micros)

    @property
    def is_negative(self) -> bool:
        return self.months < 0 or self.days < 0 or self.nanoseconds < 0

    def __str__(self) -> str:
        months, days, nanos = abs(self.months), abs(self.days), abs(self.nanoseconds)
        parts = []

        years, months = divmod(months, 12)
        for amount, unit in ((years, "y"), (months, "mo"), (days, "d")):
            if amount:
                parts.append(f"{amount}{unit}")

        for unit, ns in (("h", NS_PER_HOUR), ("m", NS_PER_MIN), ("s", NS_PER_SEC), ("ms", NS_PER_MS), ("us", NS_PER_US)):
            amount, nanos = divmod(nanos, ns)
            if amount:
                parts.append(f"{amount}{unit}")
        if nanos:
            parts.append(f"{nanos}ns")

        text = "".join(parts) or "0s"
        return f"-{text}" if self.is_negative else text

    def __repr__(self) -> str:
        return f'DataAPIDuration("{self}")'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DataAPIDuration):
            return (self.months, self.days, self.nanoseconds) == (other.months, other.days, other.nanoseconds)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.months, self.days, self.nanoseconds))

    def __neg__(self) -> DataAPIDuration:
        return DataAPIDuration(-self.months, -self.days, -self.nanoseconds)

    # Codec protocols

    def serialize_for_table(self, ctx: SerCtx) -> SerDesResult:
        return ctx.done(str(self))

    @classmethod
    def deserialize_for_table(cls, value: Any, ctx: DesCtx, column: Any = None) -> SerDesResult:
        if isinstance(value, DataAPIDuration):
            return ctx.done(value)
        return ctx.done(cls.parse(value))


def _parse_standard(body: str) -> tuple[int, int, int]:
    months = days = nanos = 0
    pos = 0
    last_index = -1

    while pos < len(body):
        match = _STANDARD_RE.match(body, pos)
        if match is None:
            raise SerDesError(f"Invalid duration {body!r}; expected the standard format, e.g. '1y2mo3d4h'")

        amount, unit = int(match.group(1)), match.group(2).lower().replace("µs", "us")
        index = _UNIT_INDEX[unit]
        if index <= last_index:
            raise SerDesError(f"Invalid duration {body!r}; units must appear once each, largest first")
        last_index = index

        m, d, n = _UNITS[index][1]
        months += amount * m
        days += amount * d
        nanos += amount * n
        pos = match.end()

    return months, days, nanos


def _parse_iso(body: str) -> tuple[int, int, int]:
    week = _ISO_WEEK_RE.match(body)
    if week:
        return 0, int(week.group(1)) * 7, 0

    match = _ISO_RE.match(body)
    if match is None or body in ("P", "PT") or body.endswith("T"):
        raise SerDesError(f"Invalid ISO-8601 duration {body!r}")

    def num(group: str) -> int:
        return int(match.group(group) or 0)

    frac = match.group("frac") or ""
    nanos = (
        num("h") * NS_PER_HOUR
        + num("m") * NS_PER_MIN
        + num("s") * NS_PER_SEC
        + (int(frac.ljust(9, "0")) if frac else 0)
    )
    return num("y") * 12 + num("mo"), num("d"), nanos


def duration(value: str | timedelta) -> DataAPIDuration:
    """Shorthand for ``DataAPIDuration.parse`` / ``from_timedelta``."""
    if isinstance(value, timedelta):
        return DataAPIDuration.from_timedelta(value)
    return DataAPIDuration.parse(value)


__all__ = ["DataAPIDuration", "duration"]
