"""
Host-side datatypes with a dedicated wire form.

Everything else maps onto standard library types: ``datetime``/``date``/
``time``, ``uuid.UUID``, ``decimal.Decimal``, ``bytes``, ``ipaddress``
addresses, ``set`` and ``dict``.
"""

from .duration import DataAPIDuration, duration
from .object_id import ObjectId
from .vector import DataAPIVector, vector

__all__ = [
    "DataAPIDuration",
    "DataAPIVector",
    "ObjectId",
    "duration",
    "vector",
]
