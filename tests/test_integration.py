"""
Round trips against a live Data API.

Skipped unless ASTRA_DB_API_ENDPOINT (and ASTRA_DB_APPLICATION_TOKEN) are set.
Every test works in its own collection or table and drops it afterwards.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
from conftest import ASTRA_DB_API_ENDPOINT, ASTRA_DB_APPLICATION_TOKEN, ASTRA_DB_KEYSPACE

from astra_sdk import Collection, DataAPIClient, Db, Table

pytestmark = pytest.mark.integration


def unique_name(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@pytest.fixture
async def live_db() -> AsyncGenerator[Db, None]:
    async with DataAPIClient(ASTRA_DB_APPLICATION_TOKEN) as client:
        yield client.db(ASTRA_DB_API_ENDPOINT, keyspace=ASTRA_DB_KEYSPACE)


@pytest.fixture
async def collection(live_db: Db) -> AsyncGenerator[Collection, None]:
    created = await live_db.create_collection(unique_name("sdk_coll"))
    yield created
    await created.drop()


@pytest.fixture
async def table(live_db: Db) -> AsyncGenerator[Table, None]:
    created = await live_db.create_table(
        unique_name("sdk_table"),
        definition={
            "columns": {
                "pk": "text",
                "n": "int",
                "born": "date",
                "price": "decimal",
                "tags": {"type": "set", "valueType": "text"},
            },
            "primaryKey": {"partitionBy": ["pk"], "partitionSort": {"n": 1}},
        },
    )
    yield created
    await created.drop()


async def test_collection_round_trip(collection: Collection) -> None:
    added = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
    await collection.insert_one({"_id": "a", "added": added, "tags": ["x", "y"]})
    await collection.insert_many([{"_id": str(i), "n": i} for i in range(30)])

    assert await collection.find_one({"_id": "a"}) == {"_id": "a", "added": added, "tags": ["x", "y"]}
    assert await collection.count_documents({}, upper_bound=100) == 31
    assert len(await collection.find({"n": {"$gte": 0}}).to_list()) == 30

    result = await collection.update_many({"n": {"$lt": 10}}, {"$set": {"low": True}})
    assert result.modified_count == 10
    assert sorted(await collection.distinct("low")) == [True]

    deleted = await collection.delete_many({"n": {"$gte": 0}})
    assert deleted.deleted_count == 30


async def test_table_round_trip(table: Table) -> None:
    inserted = await table.insert_one(
        {"pk": "p", "n": 1, "born": date(2000, 2, 29), "price": Decimal("19.99"), "tags": {"a", "b"}}
    )
    assert inserted.inserted_id == {"pk": "p", "n": 1}

    row = await table.find_one({"pk": "p", "n": 1})
    assert row == {"pk": "p", "n": 1, "born": date(2000, 2, 29), "price": Decimal("19.99"), "tags": {"a", "b"}}

    await table.insert_one({"pk": "p", "n": 2})
    sparse = await table.find_one({"pk": "p", "n": 2})
    assert sparse == {"pk": "p", "n": 2, "born": None, "price": None, "tags": set()}

    assert await table.count_rows({"pk": "p"}, upper_bound=10) == 2
