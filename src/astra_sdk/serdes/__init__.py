"""
Serialization between host values and Data API wire JSON.

Two schema universes share one engine: collections (schemaless documents
with ``$sigil`` scalars) and tables (typed columns described by the
response schema).
"""

from .big_nums import MAX_SAFE_INTEGER, NumRep, build_num_rep_for_path, coerce_number, is_big_int
from .codecs import (
    ByGuard,
    ByName,
    ByPath,
    ByType,
    Codec,
    CodecFactory,
    CodecRegistry,
    CollectionSerializable,
    TableSerializable,
)
from .collections import CollectionCodecs, CollectionSerDes
from .ctx import UNSET, DesCtx, SerCtx, SerDesAction, SerDesResult
from .engine import MAX_DEPTH, SerDes
from .key_transformer import Camel2SnakeCase, KeyTransformer
from .tables import ResolvedSchema, TableCodecs, TableSerDes

__all__ = [
    "MAX_DEPTH",
    "MAX_SAFE_INTEGER",
    "UNSET",
    "ByGuard",
    "ByName",
    "ByPath",
    "ByType",
    "Camel2SnakeCase",
    "Codec",
    "CodecFactory",
    "CodecRegistry",
    "CollectionCodecs",
    "CollectionSerDes",
    "CollectionSerializable",
    "DesCtx",
    "KeyTransformer",
    "NumRep",
    "ResolvedSchema",
    "SerCtx",
    "SerDes",
    "SerDesAction",
    "SerDesResult",
    "TableCodecs",
    "TableSerDes",
    "TableSerializable",
    "build_num_rep_for_path",
    "coerce_number",
    "is_big_int",
]
