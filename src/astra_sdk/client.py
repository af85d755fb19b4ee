"""
Entry point of the SDK.

Example::

    async with DataAPIClient("AstraCS:...") as client:
        db = client.db("https://<id>-<region>.apps.astra.datastax.com")
        collection = db.collection("products")
        print(await collection.find_one({"_id": "p1"}))
"""

from __future__ import annotations

import logging
import os
from typing import Any, Self

import httpx

from .admin import AstraAdmin
from .db import Db
from .events import EventHub
from .exceptions import InvalidOptionsError
from .options import DataAPIClientOptions, DbOptions

logger = logging.getLogger(__name__)

ENV_TOKEN = "ASTRA_DB_APPLICATION_TOKEN"
ENV_ENDPOINT = "ASTRA_DB_API_ENDPOINT"
ENV_KEYSPACE = "ASTRA_DB_KEYSPACE"


class DataAPIClient:
    """
    Root of the object tree: client -> db -> collection/table.

    The client holds defaults (token, timeouts, serialization options) that
    every database it spawns inherits, and the root ``EventHub`` that
    receives events bubbling up from all of them.

    Args:
        token: Application token (``AstraCS:...``).
        options: Client-wide options.
        transport: Optional ``httpx`` transport shared by every HTTP client
            (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        options: DataAPIClientOptions | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.options = options or DataAPIClientOptions()
        self.token = token or self.options.token
        self.events = EventHub(DataAPIClient)
        self._transport = transport
        self._default_endpoint: str | None = None
        self._default_keyspace: str | None = None
        self._dbs: list[Db] = []
        self._admins: list[AstraAdmin] = []

    @classmethod
    def from_env(
        cls,
        *,
        options: DataAPIClientOptions | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Self:
        """
        Build a client from environment variables.

        Reads ``ASTRA_DB_APPLICATION_TOKEN``; ``ASTRA_DB_API_ENDPOINT`` and
        ``ASTRA_DB_KEYSPACE`` become the defaults of ``db()``.
        """
        client = cls(os.environ.get(ENV_TOKEN), options=options, transport=transport)
        client._default_endpoint = os.environ.get(ENV_ENDPOINT)
        client._default_keyspace = os.environ.get(ENV_KEYSPACE)
        return client

    def __repr__(self) -> str:
        return f'DataAPIClient(environment="{self.options.environment}")'

    def db(
        self,
        endpoint: str | None = None,
        *,
        keyspace: str | None = None,
        token: str | None = None,
        options: DbOptions | None = None,
    ) -> Db:
        """A handle on the database at ``endpoint``. No request is made."""
        endpoint = endpoint or self._default_endpoint
        if not endpoint:
            raise InvalidOptionsError(f"No endpoint given and {ENV_ENDPOINT} is not set")

        db = Db(self, endpoint, keyspace=keyspace or self._default_keyspace, token=token, options=options)
        self._dbs.append(db)
        logger.debug(f"Spawned {db!r}")
        return db

    def admin(self, token: str | None = None) -> AstraAdmin:
        """Database administration over the Astra DevOps API."""
        if self.options.environment != "astra":
            raise InvalidOptionsError(
                f"The DevOps API is only available on Astra, not in environment {self.options.environment!r}"
            )
        admin = AstraAdmin(self, token)
        self._admins.append(admin)
        return admin

    async def close(self) -> None:
        """Close every HTTP client spawned from this client."""
        for db in self._dbs:
            await db.close()
        for admin in self._admins:
            await admin.close()
        self._dbs.clear()
        self._admins.clear()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["DataAPIClient"]
