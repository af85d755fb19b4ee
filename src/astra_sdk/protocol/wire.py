"""
JSON encoding for Data API payloads.

Python's ``json`` already round-trips arbitrarily large integers; the only
extra work is ``Decimal``. When a payload is flagged as carrying big
numbers, each ``Decimal`` is swapped for a placeholder string (unique to
the call) before ``json.dumps`` and the quoted placeholder is then replaced
with the exact digits, so the server receives a bare JSON number.
"""

import json
import uuid
from decimal import Decimal
from typing import Any

from ..exceptions import SerDesError

_MARKER_PREFIX = "__astra_num"


def _extract_decimals(value: Any, markers: dict[str, str], nonce: str) -> Any:
    """Replace every ``Decimal`` with a placeholder, recording its digits in *markers*."""
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise SerDesError(f"{value} can't be sent as a JSON number")
        marker = f"{_MARKER_PREFIX}_{nonce}_{len(markers)}__"
        markers[marker] = str(value)
        return marker
    if isinstance(value, dict):
        return {k: _extract_decimals(v, markers, nonce) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_extract_decimals(item, markers, nonce) for item in value]
    return value


def dumps(payload: Any, *, big_numbers: bool = False) -> str:
    """
    Encode a serialized payload.

    Args:
        payload: Output of a ``SerDes.serialize`` call (plain JSON types,
            plus ``Decimal`` when ``big_numbers`` is set).
        big_numbers: The side-channel flag returned by ``serialize``.

    Raises:
        SerDesError: If the payload contains a non-finite float or an
            unflagged ``Decimal``.
    """
    markers: dict[str, str] = {}
    if big_numbers:
        payload = _extract_decimals(payload, markers, uuid.uuid4().hex)

    try:
        text = json.dumps(payload, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise SerDesError(f"Payload is not JSON serializable: {e}") from e

    for marker, digits in markers.items():
        text = text.replace(f'"{marker}"', digits)
    return text


def loads(text: str | bytes, *, big_numbers: bool = False) -> Any:
    """Decode a response body; with ``big_numbers`` non-integers become ``Decimal``."""
    if big_numbers:
        return json.loads(text, parse_float=Decimal)
    return json.loads(text)


__all__ = ["dumps", "loads"]
