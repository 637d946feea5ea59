import os

import pytest

from factory_ledger.core.errors import CatalogViolation
from factory_ledger.models.transaction import LifecycleStatus, TransactionKind
from factory_ledger.repositories.base import StoreQuery
from factory_ledger.repositories.catalog_repo import MongoProductCatalog, StaticProductCatalog
from factory_ledger.repositories.transaction_repo import TransactionRepository
from factory_ledger.schemas.transaction import (
    SortField,
    SortOrder,
    TransactionCreate,
    TransactionFilter,
    TransactionUpdate,
)
from factory_ledger.services.aggregator import Aggregator
from factory_ledger.services.ledger_service import LedgerService

pytestmark = pytest.mark.skipif(
    not os.getenv("MONGODB_URI"), reason="MONGODB_URI not set"
)


def sale(client_name, **fields) -> TransactionCreate:
    return TransactionCreate(kind=TransactionKind.SALE, client_name=client_name, **fields)


@pytest.mark.asyncio
async def test_insert_get_round_trip(test_db):
    repo = TransactionRepository(test_db)
    ledger = await LedgerService(repo, StaticProductCatalog()).for_product("white-oil")

    created = await ledger.create(sale("Ali", quantity=100, rate=50, tendered=5000))
    fetched = await ledger.get(created.id)

    assert fetched.id == created.id
    assert fetched.total_amount == 5000.0
    assert fetched.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_optimistic_lock(test_db):
    repo = TransactionRepository(test_db)
    ledger = await LedgerService(repo, StaticProductCatalog()).for_product("white-oil")
    created = await ledger.create(sale("Ali", quantity=1, rate=1))

    first = await repo.update("white-oil", created.id, 1, {"notes": "a"})
    second = await repo.update("white-oil", created.id, 1, {"notes": "b"})

    assert first["version"] == 2
    assert second is None


@pytest.mark.asyncio
async def test_find_sorts_client_names_case_insensitively(test_db):
    repo = TransactionRepository(test_db)
    ledger = await LedgerService(repo, StaticProductCatalog()).for_product("white-oil")
    for name in ["charlie", "Alpha", "bravo"]:
        await ledger.create(sale(name, quantity=1, rate=1))

    docs = await repo.find(StoreQuery(
        product_type="white-oil", sort_by=SortField.CLIENT_NAME, sort_order=SortOrder.ASC
    ))

    assert [doc["client_name"] for doc in docs] == ["Alpha", "bravo", "charlie"]


@pytest.mark.asyncio
async def test_cancelled_filter_matches_memory_semantics(test_db):
    repo = TransactionRepository(test_db)
    ledgers = LedgerService(repo, StaticProductCatalog())
    ledger = await ledgers.for_product("white-oil")
    await ledger.create(sale("Ali", quantity=1, rate=100))
    cancelled = await ledger.create(sale("Ali", quantity=1, rate=50))
    await ledger.update(cancelled.id, TransactionUpdate(lifecycle_status=LifecycleStatus.CANCELLED))

    aggregate = await Aggregator(ledgers).summarize("white-oil", TransactionFilter(client_name="ali"))

    assert aggregate.total_amount == 100.0
    assert await repo.count(StoreQuery(product_type="white-oil")) == 2


@pytest.mark.asyncio
async def test_mongo_catalog_reads_admin_documents(test_db):
    await test_db["product_catalog"].insert_many([
        {"name": "White Oil", "value": "white-oil", "unit": "kg"},
        {"name": "Used Drums", "allowedTransactions": ["purchase"], "enableNugCalculation": True},
        {"name": "Retired", "is_deleted": True},
    ])
    catalog = MongoProductCatalog(test_db)

    products = await catalog.list_all()
    drums = await catalog.resolve("used-drums")

    assert [p.key for p in products] == ["used-drums", "white-oil"]
    assert drums.allowed_kinds == [TransactionKind.PURCHASE]
    assert drums.net_weight_mode is True


@pytest.mark.asyncio
async def test_mongo_catalog_skips_reserved_keys(test_db):
    await test_db["product_catalog"].insert_many([
        {"name": "Stats"},
        {"name": "Clients", "value": "clients"},
        {"name": "Yellow Oil"},
    ])
    catalog = MongoProductCatalog(test_db)

    products = await catalog.list_all()

    assert [p.key for p in products] == ["yellow-oil"]
    with pytest.raises(CatalogViolation):
        await catalog.resolve("stats")
