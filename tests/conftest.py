import os
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from factory_ledger.api.deps import get_catalog, get_renderer, get_store
from factory_ledger.core.auth import (
    REPORTS_READ,
    TRANSACTIONS_READ,
    create_access_token,
)
from factory_ledger.main import app
from factory_ledger.models.product import ProductType
from factory_ledger.models.transaction import TransactionKind
from factory_ledger.repositories.catalog_repo import StaticProductCatalog
from factory_ledger.repositories.memory_repo import InMemoryTransactionStore
from factory_ledger.services.aggregator import Aggregator
from factory_ledger.services.ledger_service import LedgerService
from factory_ledger.services.renderer import PdfStatementRenderer
from factory_ledger.services.statement_builder import StatementBuilder

# Test database configuration
TEST_MONGODB_URI = os.getenv("MONGODB_URI")
TEST_MONGODB_DB = "factory_ledger_test"

TEST_PRODUCTS = [
    ProductType(key="white-oil", display_name="White Oil"),
    ProductType(
        key="diesel",
        display_name="Diesel",
        unit="litre",
        allowed_kinds=[TransactionKind.SALE],
        net_weight_mode=True,
    ),
]


@pytest.fixture
def store() -> InMemoryTransactionStore:
    return InMemoryTransactionStore()


@pytest.fixture
def catalog() -> StaticProductCatalog:
    return StaticProductCatalog(TEST_PRODUCTS)


@pytest.fixture
def ledgers(store, catalog) -> LedgerService:
    return LedgerService(store, catalog, timeout=2.0)


@pytest.fixture
def aggregator(ledgers) -> Aggregator:
    return Aggregator(ledgers)


@pytest.fixture
def builder(ledgers, aggregator) -> StatementBuilder:
    return StatementBuilder(ledgers, aggregator, company_name="Test Factory", currency="PKR")


@pytest_asyncio.fixture
async def white_oil(ledgers):
    return await ledgers.for_product("white-oil")


@pytest.fixture
def test_client(store, catalog):
    """API client wired to the in-memory store and static catalog."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_renderer] = PdfStatementRenderer

    # No context manager: the lifespan would connect to MongoDB
    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    token = create_access_token("admin-1", role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def reader_headers():
    token = create_access_token("clerk-1", permissions=[TRANSACTIONS_READ, REPORTS_READ])
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_db() -> AsyncIOMotorDatabase:
    """Fixture for test MongoDB database (for async repository tests)."""
    client = AsyncIOMotorClient(TEST_MONGODB_URI, tz_aware=True)
    db = client[TEST_MONGODB_DB]

    # Drop database before test to ensure clean state
    await client.drop_database(TEST_MONGODB_DB)

    yield db

    await client.drop_database(TEST_MONGODB_DB)
    client.close()
