"""
Administration: Astra databases (DevOps API) and keyspaces (Data API).

Example::

    admin = client.admin()
    info = await admin.create_database("shop", cloud_provider="GCP", region="us-east1")
    db = client.db(f"https://{info.id}-us-east1.apps.astra.datastax.com")

    await db.admin().create_keyspace("analytics")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .connection import DevOpsAPIHttpClient, DevOpsAPIResponse
from .connection.devops import DEFAULT_DEVOPS_URL, DEFAULT_POLL_INTERVAL_S
from .events import EventHub
from .exceptions import DevOpsAPIError
from .protocol import CommandTarget
from .types import DatabaseInfo
from .utils import drop_none, validate_identifier

if TYPE_CHECKING:
    from .client import DataAPIClient
    from .db import Db

logger = logging.getLogger(__name__)

_CREATING_STATES = ("PENDING", "INITIALIZING")
_TERMINATING_STATES = ("TERMINATING",)


class AstraAdmin:
    """
    Astra organization admin, over the DevOps API.

    Args:
        client: The owning client.
        token: Overrides the client's token.
    """

    def __init__(self, client: DataAPIClient, token: str | None = None):
        options = client.options
        self.client = client
        self.timeouts = options.timeouts
        self.events: EventHub = client.events.child(AstraAdmin)
        self._http = DevOpsAPIHttpClient(
            options.devops_base_url or DEFAULT_DEVOPS_URL,
            token or client.token,
            timeout_ms=self.timeouts.get("request_timeout_ms"),
            additional_headers=options.additional_headers,
            caller=options.caller,
            events=self.events,
            transport=client._transport,
        )

    def __repr__(self) -> str:
        return f'AstraAdmin(base_url="{self._http.base_url}")'

    async def list_databases(self, *, include: str | None = None) -> list[DatabaseInfo]:
        """All databases visible to the token. ``include`` filters by status (e.g. ``"nonterminated"``)."""
        path = "/databases" if include is None else f"/databases?include={include}"
        response = await self._http.request("GET", path)
        return [DatabaseInfo.from_dict(d) for d in response.data or []]

    async def database_info(self, id: str) -> DatabaseInfo:
        response = await self._http.request("GET", f"/databases/{id}")
        return DatabaseInfo.from_dict(response.data)

    async def create_database(
        self,
        name: str,
        *,
        cloud_provider: str,
        region: str,
        keyspace: str | None = None,
        blocking: bool = True,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        timeout_ms: int | None = None,
    ) -> DatabaseInfo:
        """
        Create a serverless vector database.

        Args:
            name: Database name.
            cloud_provider: ``AWS``, ``GCP`` or ``AZURE``.
            region: Cloud region, e.g. ``us-east1``.
            keyspace: Initial keyspace (server default otherwise).
            blocking: Wait until the database is ``ACTIVE``.
            poll_interval_s: Delay between status polls while blocking.
            timeout_ms: Budget for the wait (database admin timeout by default).
        """
        if keyspace is not None:
            validate_identifier(keyspace, "keyspace name")
        body = drop_none(
            {
                "name": name,
                "keyspace": keyspace,
                "cloudProvider": cloud_provider,
                "region": region,
                "tier": "serverless",
                "capacityUnits": 1,
                "dbType": "vector",
            }
        )

        if not blocking:
            response = await self._http.request("POST", "/databases", body)
            return await self.database_info(_id_from_location(response))

        response = await self._http.request_long_running(
            "POST",
            "/databases",
            body,
            id=_id_from_location,
            target_status="ACTIVE",
            legal_states=_CREATING_STATES,
            poll_interval_s=poll_interval_s,
            timeout_ms=timeout_ms if timeout_ms is not None else self.timeouts.get("database_admin_timeout_ms"),
        )
        return await self.database_info(_id_from_location(response))

    async def drop_database(
        self,
        id: str,
        *,
        blocking: bool = True,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        timeout_ms: int | None = None,
    ) -> None:
        """Terminate a database, waiting until it is ``TERMINATED`` when ``blocking``."""
        path = f"/databases/{id}/terminate"
        if not blocking:
            await self._http.request("POST", path)
            return

        await self._http.request_long_running(
            "POST",
            path,
            id=id,
            target_status="TERMINATED",
            legal_states=_TERMINATING_STATES,
            poll_interval_s=poll_interval_s,
            timeout_ms=timeout_ms if timeout_ms is not None else self.timeouts.get("database_admin_timeout_ms"),
        )

    async def close(self) -> None:
        await self._http.close()


class DbAdmin:
    """Keyspace administration for one database, over Data API admin commands."""

    def __init__(self, db: Db):
        self.db = db
        self.events: EventHub = db.events.child(DbAdmin)

    def __repr__(self) -> str:
        return f"DbAdmin({self.db!r})"

    async def _command(self, name: str, payload: dict[str, Any]) -> Any:
        response = await self.db._http.execute_command(
            {name: payload},
            target=CommandTarget(),
            timeout_ms=self.db.timeouts.get("keyspace_admin_timeout_ms"),
            events=self.events,
        )
        return response.status

    async def list_keyspaces(self) -> list[str]:
        status = await self._command("findKeyspaces", {})
        return list(status.get("keyspaces") or [])

    async def create_keyspace(
        self,
        name: str,
        *,
        replication: dict[str, Any] | None = None,
        update_db_keyspace: bool = False,
    ) -> None:
        """
        Create a keyspace.

        Args:
            name: Keyspace name.
            replication: e.g. ``{"class": "SimpleStrategy", "replication_factor": 1}``.
            update_db_keyspace: Also make it the database's working keyspace.
        """
        validate_identifier(name, "keyspace name")
        options = drop_none({"replication": replication})
        await self._command("createKeyspace", drop_none({"name": name, "options": options or None}))
        logger.info(f"Created keyspace {name}")
        if update_db_keyspace:
            self.db.use_keyspace(name)

    async def drop_keyspace(self, name: str) -> None:
        validate_identifier(name, "keyspace name")
        await self._command("dropKeyspace", {"name": name})
        logger.info(f"Dropped keyspace {name}")


def _id_from_location(response: DevOpsAPIResponse) -> str:
    # Database creation answers 201 with the new id as the last segment of Location
    location = response.headers.get("location") or response.headers.get("Location")
    if not location:
        raise DevOpsAPIError("Database creation response has no Location header", body=response.data)
    return location.rstrip("/").rsplit("/", 1)[-1]


__all__ = ["AstraAdmin", "DbAdmin"]
