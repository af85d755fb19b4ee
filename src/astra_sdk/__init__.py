"""
Astra Data SDK - An async Python client for the Astra Data API.

Talks to the Data API over HTTP (httpx) with JSON commands.

Supports:
- Collections (schemaless documents) and tables (typed rows)
- Lazy, paginated cursors with client-side limits and mapping
- Hybrid search (find_and_rerank)
- Pluggable serialization codecs and key transformers
- Big numbers (Decimal, arbitrary-precision ints) without float loss
- Hierarchical command events and command capture for debugging
- Astra database and keyspace administration
"""

from ._version import __version__
from .admin import AstraAdmin, DbAdmin
from .client import DataAPIClient
from .collection import Collection
from .connection import DataAPIHttpClient, DevOpsAPIHttpClient
from .cursors import AbstractCursor, CursorState, FindAndRerankCursor, FindCursor, RerankedResult
from .datatypes import DataAPIDuration, DataAPIVector, ObjectId, duration, vector
from .db import Db
from .debug import CommandLog, CommandLogger
from .events import (
    AdminCommandFailedEvent,
    AdminCommandPollingEvent,
    AdminCommandStartedEvent,
    AdminCommandSucceededEvent,
    CommandFailedEvent,
    CommandStartedEvent,
    CommandSucceededEvent,
    CommandWarningsEvent,
    EventHub,
)
from .exceptions import (
    CursorError,
    DataAPIConnectionError,
    DataAPIError,
    DataAPIHttpError,
    DataAPIResponseError,
    DataAPITimeoutError,
    DevOpsAPIError,
    DevOpsAPITimeoutError,
    InsertManyError,
    InvalidOptionsError,
    NumCoercionError,
    SerDesError,
    TableSchemaError,
    TooManyDocumentsToCountError,
)
from .options import (
    CollectionSerDesOptions,
    DataAPIClientOptions,
    DbOptions,
    TableSerDesOptions,
    TimeoutOptions,
)
from .schema import ColumnDefinition, PrimaryKey, TableDefinition, TableDescriptor
from .serdes import Camel2SnakeCase, CollectionCodecs, KeyTransformer, TableCodecs
from .table import Table
from .types import (
    CollectionDescriptor,
    DatabaseInfo,
    DeleteResult,
    IndexDescriptor,
    InsertManyResult,
    InsertOneResult,
    UpdateResult,
)

__all__ = [
    "__version__",
    # Client tree
    "DataAPIClient",
    "Db",
    "Collection",
    "Table",
    "AstraAdmin",
    "DbAdmin",
    # Transport
    "DataAPIHttpClient",
    "DevOpsAPIHttpClient",
    # Cursors
    "AbstractCursor",
    "CursorState",
    "FindCursor",
    "FindAndRerankCursor",
    "RerankedResult",
    # Datatypes
    "DataAPIDuration",
    "DataAPIVector",
    "ObjectId",
    "duration",
    "vector",
    # Options
    "CollectionSerDesOptions",
    "DataAPIClientOptions",
    "DbOptions",
    "TableSerDesOptions",
    "TimeoutOptions",
    # Serialization
    "Camel2SnakeCase",
    "CollectionCodecs",
    "KeyTransformer",
    "TableCodecs",
    # Schema
    "ColumnDefinition",
    "PrimaryKey",
    "TableDefinition",
    "TableDescriptor",
    # Results
    "CollectionDescriptor",
    "DatabaseInfo",
    "DeleteResult",
    "IndexDescriptor",
    "InsertManyResult",
    "InsertOneResult",
    "UpdateResult",
    # Events and debugging
    "EventHub",
    "CommandStartedEvent",
    "CommandSucceededEvent",
    "CommandFailedEvent",
    "CommandWarningsEvent",
    "AdminCommandStartedEvent",
    "AdminCommandPollingEvent",
    "AdminCommandSucceededEvent",
    "AdminCommandFailedEvent",
    "CommandLog",
    "CommandLogger",
    # Exceptions
    "DataAPIError",
    "DataAPIConnectionError",
    "DataAPIHttpError",
    "DataAPIResponseError",
    "DataAPITimeoutError",
    "CursorError",
    "DevOpsAPIError",
    "DevOpsAPITimeoutError",
    "InsertManyError",
    "InvalidOptionsError",
    "NumCoercionError",
    "SerDesError",
    "TableSchemaError",
    "TooManyDocumentsToCountError",
]
