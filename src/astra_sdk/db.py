"""
A Data API database.

A ``Db`` is bound to one API endpoint and a working keyspace. It spawns
``Collection`` and ``Table`` objects (no I/O) and runs the keyspace-level
admin commands: creating, listing and dropping collections and tables.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Self

from .collection import Collection
from .connection import DataAPIHttpClient
from .events import EventHub
from .exceptions import DataAPIError, InvalidOptionsError
from .options import CollectionSerDesOptions, DbOptions, TableSerDesOptions, TimeoutCategory, TimeoutOptions
from .protocol import CommandTarget, DataAPIResponse
from .schema import TableDefinition, TableDescriptor
from .table import Table
from .types import CollectionDescriptor, DatabaseInfo
from .utils import normalize_endpoint, validate_identifier

if TYPE_CHECKING:
    from .admin import DbAdmin
    from .client import DataAPIClient

logger = logging.getLogger(__name__)

DEFAULT_KEYSPACE = "default_keyspace"

_ASTRA_ENDPOINT_RE = re.compile(
    r"^https?://(?P<id>[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})-(?P<region>[a-z0-9-]+)\.apps\.astra"
)


class Db:
    """
    A database reachable at ``endpoint``.

    Usually obtained from ``DataAPIClient.db``.

    Args:
        client: The owning client; provides defaults, events and transport.
        endpoint: API endpoint of the database.
        keyspace: Working keyspace (default ``default_keyspace``).
        token: Overrides the client's token.
        options: Per-database overrides.
    """

    def __init__(
        self,
        client: DataAPIClient,
        endpoint: str,
        *,
        keyspace: str | None = None,
        token: str | None = None,
        options: DbOptions | None = None,
    ):
        options = options or DbOptions()
        client_options = client.options

        self.client = client
        self.endpoint = normalize_endpoint(endpoint)
        self.keyspace = keyspace or options.keyspace or DEFAULT_KEYSPACE
        validate_identifier(self.keyspace, "keyspace name")
        self.token = token or options.token or client.token

        self.events: EventHub = client.events.child(Db)
        self.timeouts: TimeoutOptions = client_options.timeouts.merge(options.timeout_defaults)
        self.collection_serdes = (client_options.collection_serdes or CollectionSerDesOptions()).merge(
            options.collection_serdes
        )
        self.table_serdes = (client_options.table_serdes or TableSerDesOptions()).merge(options.table_serdes)

        self._http = DataAPIHttpClient(
            self.endpoint,
            self.token,
            api_path=client_options.resolved_api_path,
            timeout_ms=self.timeouts.get("request_timeout_ms"),
            additional_headers={**(client_options.additional_headers or {}), **(options.additional_headers or {})},
            caller=client_options.caller,
            events=self.events,
            transport=client._transport,
        )

    def __repr__(self) -> str:
        return f'Db(endpoint="{self.endpoint}", keyspace="{self.keyspace}")'

    @property
    def id(self) -> str | None:
        """Database id, parsed from an Astra endpoint (None elsewhere)."""
        match = _ASTRA_ENDPOINT_RE.match(self.endpoint)
        return match.group("id") if match else None

    @property
    def region(self) -> str | None:
        match = _ASTRA_ENDPOINT_RE.match(self.endpoint)
        return match.group("region") if match else None

    def use_keyspace(self, keyspace: str) -> None:
        """Switch the working keyspace for collections and tables spawned from now on."""
        validate_identifier(keyspace, "keyspace name")
        self.keyspace = keyspace

    # Spawning

    def collection(
        self,
        name: str,
        *,
        keyspace: str | None = None,
        timeout_defaults: TimeoutOptions | None = None,
        serdes: CollectionSerDesOptions | None = None,
    ) -> Collection:
        """A handle on a collection. No request is made; the collection may not exist."""
        return Collection(self, name, keyspace=keyspace, timeout_defaults=timeout_defaults, serdes=serdes)

    def table(
        self,
        name: str,
        *,
        keyspace: str | None = None,
        timeout_defaults: TimeoutOptions | None = None,
        serdes: TableSerDesOptions | None = None,
    ) -> Table:
        return Table(self, name, keyspace=keyspace, timeout_defaults=timeout_defaults, serdes=serdes)

    # Commands

    async def _command(
        self,
        name: str,
        payload: dict[str, Any],
        *,
        keyspace: str | None = None,
        timeout_category: TimeoutCategory = "request_timeout_ms",
    ) -> DataAPIResponse:
        return await self._http.execute_command(
            {name: payload},
            target=CommandTarget(keyspace=keyspace or self.keyspace),
            timeout_ms=self.timeouts.get(timeout_category),
            events=self.events,
        )

    async def command(
        self,
        command: dict[str, Any],
        *,
        collection: str | None = None,
        table: str | None = None,
        keyspace: str | None = None,
    ) -> dict[str, Any]:
        """
        Run a raw command and return the raw response.

        Nothing is serialized or deserialized; ``command`` must already be
        in wire form.

        Example::

            await db.command({"findCollections": {}})
            await db.command({"countDocuments": {"filter": {}}}, collection="products")
        """
        target = CommandTarget(keyspace=keyspace or self.keyspace, collection=collection, table=table)
        response = await self._http.execute_command(command, target=target, events=self.events)
        return response.raw

    # Collections

    async def create_collection(
        self,
        name: str,
        *,
        definition: dict[str, Any] | None = None,
        keyspace: str | None = None,
        check_exists: bool = False,
        timeout_defaults: TimeoutOptions | None = None,
        serdes: CollectionSerDesOptions | None = None,
    ) -> Collection:
        """
        Create a collection and return a handle on it.

        Args:
            name: Collection name.
            definition: Creation options, e.g. ``{"vector": {"dimension": 1024, "metric": "cosine"}}``.
            keyspace: Overrides the working keyspace.
            check_exists: Fail if a collection with this name already exists.
                Without it, creating an existing collection with identical
                options succeeds.

        Raises:
            DataAPIError: If ``check_exists`` is set and the collection exists.
        """
        validate_identifier(name, "collection name")
        keyspace = keyspace or self.keyspace

        if check_exists:
            existing = await self.list_collections(keyspace=keyspace, names_only=True)
            if name in existing:
                raise DataAPIError(f"Collection {keyspace}.{name} already exists")

        payload: dict[str, Any] = {"name": name}
        if definition:
            payload["options"] = definition
        await self._command(
            "createCollection", payload, keyspace=keyspace, timeout_category="collection_admin_timeout_ms"
        )
        logger.debug(f"Created collection {keyspace}.{name}")
        return self.collection(name, keyspace=keyspace, timeout_defaults=timeout_defaults, serdes=serdes)

    async def list_collections(
        self, *, keyspace: str | None = None, names_only: bool = False
    ) -> list[CollectionDescriptor] | list[str]:
        response = await self._command(
            "findCollections",
            {"options": {"explain": not names_only}},
            keyspace=keyspace,
            timeout_category="collection_admin_timeout_ms",
        )
        collections = response.status.get("collections") or []
        if names_only:
            return list(collections)
        return [CollectionDescriptor.from_dict(c) for c in collections]

    async def drop_collection(self, name: str, *, keyspace: str | None = None) -> None:
        validate_identifier(name, "collection name")
        await self._command(
            "deleteCollection", {"name": name}, keyspace=keyspace, timeout_category="collection_admin_timeout_ms"
        )
        logger.debug(f"Dropped collection {keyspace or self.keyspace}.{name}")

    # Tables

    async def create_table(
        self,
        name: str,
        *,
        definition: TableDefinition | dict[str, Any],
        if_not_exists: bool = False,
        keyspace: str | None = None,
        timeout_defaults: TimeoutOptions | None = None,
        serdes: TableSerDesOptions | None = None,
    ) -> Table:
        """
        Create a table and return a handle on it.

        Example::

            table = await db.create_table("games", definition={
                "columns": {"match_id": "text", "round": "int", "winner": "text"},
                "primaryKey": {"partitionBy": ["match_id"], "partitionSort": {"round": 1}},
            })
        """
        validate_identifier(name, "table name")
        if not isinstance(definition, TableDefinition):
            definition = TableDefinition.model_validate(definition)

        await self._command(
            "createTable",
            {"name": name, "definition": definition.to_wire(), "options": {"ifNotExists": if_not_exists}},
            keyspace=keyspace,
            timeout_category="table_admin_timeout_ms",
        )
        logger.debug(f"Created table {keyspace or self.keyspace}.{name}")
        return self.table(name, keyspace=keyspace, timeout_defaults=timeout_defaults, serdes=serdes)

    async def list_tables(
        self, *, keyspace: str | None = None, names_only: bool = False
    ) -> list[TableDescriptor] | list[str]:
        response = await self._command(
            "listTables",
            {"options": {"explain": not names_only}},
            keyspace=keyspace,
            timeout_category="table_admin_timeout_ms",
        )
        tables = response.status.get("tables") or []
        if names_only:
            return list(tables)
        return [TableDescriptor.model_validate(t) for t in tables]

    async def drop_table(self, name: str, *, if_exists: bool = False, keyspace: str | None = None) -> None:
        validate_identifier(name, "table name")
        await self._command(
            "dropTable",
            {"name": name, "options": {"ifExists": if_exists}},
            keyspace=keyspace,
            timeout_category="table_admin_timeout_ms",
        )
        logger.debug(f"Dropped table {keyspace or self.keyspace}.{name}")

    # Admin

    def admin(self) -> DbAdmin:
        """Keyspace administration for this database."""
        from .admin import DbAdmin

        return DbAdmin(self)

    async def info(self) -> DatabaseInfo:
        """DevOps API description of this database (Astra only)."""
        if self.id is None:
            raise InvalidOptionsError(f"Cannot look up database info for non-Astra endpoint {self.endpoint}")
        return await self.client.admin(self.token).database_info(self.id)

    # Lifecycle

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> Self:
        await self._http.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["DEFAULT_KEYSPACE", "Db"]
