"""
Numeric representation config for collections with big numbers enabled.

When big numbers are enabled, collection responses are parsed with
``Decimal`` for every non-integer number, and each numeric leaf is then
coerced to the representation configured for its path::

    CollectionSerDesOptions(enable_big_numbers={
        "*": "number",
        "discount": "bigint",
        "items.*.price": "decimal",
    })

Representations:

- ``number``: ``int`` within the float-safe range, ``float`` otherwise (lossless only)
- ``bigint``: ``int`` (integral values only)
- ``decimal``: ``Decimal``
- ``string``: ``str``
- ``number_or_string``: ``number`` when lossless, ``str`` otherwise

A callable ``(value, path) -> value`` may stand in for any representation.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Literal, Mapping, Sequence

from ..exceptions import InvalidOptionsError, NumCoercionError
from .ctx import PathSegment

NumRep = Literal["number", "bigint", "decimal", "string", "number_or_string"]
NumRepFn = Callable[[Any, list[PathSegment]], Any]
NumRepForPath = Callable[[Sequence[PathSegment]], "NumRep | NumRepFn"]

NUM_REPS: frozenset[str] = frozenset({"number", "bigint", "decimal", "string", "number_or_string"})

MAX_SAFE_INTEGER = 2**53 - 1

_REP = "__rep__"


def is_big_int(value: Any) -> bool:
    """True for ints a double can't represent exactly (bools excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_SAFE_INTEGER


def build_num_rep_for_path(cfg: Mapping[str, Any] | NumRepForPath) -> NumRepForPath:
    """Turn an ``enable_big_numbers`` option into a ``path -> rep`` lookup."""
    if callable(cfg):
        return cfg

    tree: dict[str, Any] = {}
    for dotted, rep in cfg.items():
        if not callable(rep) and rep not in NUM_REPS:
            raise InvalidOptionsError(f"Invalid numeric representation {rep!r} for path {dotted!r}")
        node = tree
        for key in dotted.split("."):
            node = node.setdefault(key, {})
        node[_REP] = rep

    def num_rep_for_path(path: Sequence[PathSegment]) -> NumRep | NumRepFn:
        rep = _find_matching_rep([str(p) for p in path], tree)
        return "number" if rep is None else rep

    return num_rep_for_path


def _find_matching_rep(path: list[str], tree: dict[str, Any] | None) -> Any:
    rep = None
    for segment in path:
        if tree is None:
            return rep
        exact = tree.get(segment)
        if exact is not None:
            tree = exact
        else:
            tree = tree.get("*")
            if tree is not None:
                rep = tree.get(_REP, rep)
    return tree.get(_REP) if tree is not None else rep


def coerce_number(value: int | float | Decimal, rep: NumRep | NumRepFn, path: list[PathSegment]) -> Any:
    """Coerce a parsed number to ``rep``, raising ``NumCoercionError`` on loss."""
    if callable(rep):
        return rep(value, path)

    from_type = "decimal" if isinstance(value, (Decimal, float)) else "int"

    if rep == "decimal":
        return Decimal(value) if not isinstance(value, Decimal) else value

    if rep == "string":
        return str(value)

    if rep == "bigint":
        if isinstance(value, int):
            return value
        if Decimal(value) != Decimal(value).to_integral_value():
            raise NumCoercionError(path, value, from_type, rep)
        return int(value)

    as_number = _as_number(value)
    if as_number is not None:
        return as_number
    if rep == "number_or_string":
        return str(value)
    raise NumCoercionError(path, value, from_type, rep)


def _as_number(value: int | float | Decimal) -> int | float | None:
    if isinstance(value, int):
        return value if abs(value) <= MAX_SAFE_INTEGER else None
    if isinstance(value, float):
        return value
    as_float = float(value)
    if Decimal(repr(as_float)) != value:
        return None
    return as_float


__all__ = [
    "MAX_SAFE_INTEGER",
    "NUM_REPS",
    "NumRep",
    "build_num_rep_for_path",
    "coerce_number",
    "is_big_int",
]
