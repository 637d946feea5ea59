import pytest

from factory_ledger.models.product import ProductType
from factory_ledger.models.transaction import LifecycleStatus, PaymentStatus, TransactionKind
from factory_ledger.repositories.catalog_repo import StaticProductCatalog
from factory_ledger.repositories.memory_repo import InMemoryTransactionStore
from factory_ledger.schemas.transaction import (
    PageRequest,
    TransactionCreate,
    TransactionFilter,
    TransactionUpdate,
)
from factory_ledger.services.aggregator import Aggregator, fold
from factory_ledger.services.ledger_service import LedgerService
from factory_ledger.services.status_engine import round2


def sale(client_name="Ali Traders", **fields) -> TransactionCreate:
    return TransactionCreate(kind=TransactionKind.SALE, client_name=client_name, **fields)


def purchase(client_name="Karachi Refinery", **fields) -> TransactionCreate:
    return TransactionCreate(kind=TransactionKind.PURCHASE, client_name=client_name, **fields)


@pytest.mark.asyncio
async def test_summarize_empty_is_zero(aggregator):
    aggregate = await aggregator.summarize("white-oil", TransactionFilter(client_name="nobody"))

    assert aggregate.count == 0
    assert aggregate.total_amount == 0.0
    assert aggregate.total_outstanding == 0.0


@pytest.mark.asyncio
async def test_outstanding_is_taken_over_sums(aggregator, white_oil):
    await white_oil.create(sale(quantity=100, rate=50, tendered=4000))   # short 1000
    await white_oil.create(sale(quantity=10, rate=50, tendered=800))     # advance 300
    await white_oil.create(sale(quantity=0, rate=0, total_amount=0, tendered=500))

    aggregate = await aggregator.summarize("white-oil", TransactionFilter(client_name="Ali"))

    assert aggregate.count == 3
    assert aggregate.total_quantity == 110.0
    assert aggregate.total_amount == 5500.0
    assert aggregate.total_tendered == 5300.0
    assert aggregate.total_outstanding == 200.0
    assert aggregate.shortfall == 200.0
    assert aggregate.net_advance == -200.0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filter",
    [
        TransactionFilter(),
        TransactionFilter(kind=TransactionKind.SALE),
        TransactionFilter(client_name="ali"),
        TransactionFilter(payment_status=PaymentStatus.PENDING),
        TransactionFilter(client_name="no such client"),
    ],
)
async def test_outstanding_matches_record_sums(aggregator, white_oil, filter):
    await white_oil.create(sale(quantity=3, rate=33.335, tendered=50.5))
    await white_oil.create(sale(client_name="Bilal", quantity=7, rate=0.13, tendered=1))
    await white_oil.create(purchase(quantity=2.5, rate=410.2, tendered=1200))
    await white_oil.create(purchase(quantity=0, rate=0, total_amount=0, tendered=75))

    result = await aggregator.collect("white-oil", filter)
    expected = (
        round2(sum(row.total_amount for row in result.transactions))
        - round2(sum(row.tendered for row in result.transactions))
    )

    assert result.aggregate.total_outstanding == round2(expected)
    assert result.aggregate.count == len(result.transactions)


@pytest.mark.asyncio
async def test_delete_removes_contribution(aggregator, white_oil):
    keep = await white_oil.create(sale(quantity=10, rate=10, tendered=0))
    drop = await white_oil.create(sale(quantity=20, rate=10, tendered=50))
    before = await aggregator.summarize("white-oil", TransactionFilter(client_name="Ali"))

    await white_oil.delete(drop.id)
    after = await aggregator.summarize("white-oil", TransactionFilter(client_name="Ali"))

    assert before.total_amount == 300.0
    assert after.total_amount == keep.total_amount == 100.0
    assert after.total_outstanding == 100.0
    assert after.count == 1


@pytest.mark.asyncio
async def test_cancelled_records_are_excluded_by_default(aggregator, white_oil):
    await white_oil.create(sale(quantity=10, rate=10))
    cancelled = await white_oil.create(sale(quantity=5, rate=10))
    await white_oil.update(
        cancelled.id, TransactionUpdate(lifecycle_status=LifecycleStatus.CANCELLED)
    )

    default = await aggregator.summarize("white-oil", TransactionFilter())
    including = await aggregator.summarize("white-oil", TransactionFilter(include_cancelled=True))

    assert default.total_amount == 100.0
    assert including.total_amount == 150.0


@pytest.mark.asyncio
async def test_advances_view_single_product(aggregator, white_oil):
    await white_oil.create(sale(quantity=100, rate=50, tendered=6000))         # advance 1000
    await white_oil.create(sale(quantity=0, rate=0, total_amount=0, tendered=500))
    await white_oil.create(purchase(total_amount=2000, tendered=2500))         # overpaid 500
    await white_oil.create(sale(quantity=10, rate=10, tendered=100))           # full
    await white_oil.create(sale(quantity=10, rate=10, tendered=40))            # short 60

    view = await aggregator.summarize_advances("white-oil", TransactionFilter(), PageRequest())

    assert view.summary.sales_advance_total == 1500.0
    assert view.summary.sales_count == 2
    assert view.summary.purchase_advance_total == 500.0
    assert view.summary.purchase_count == 1
    assert view.summary.total_outstanding == 1940.0
    assert len(view.transactions) == 3
    assert all(row.payment_status in (PaymentStatus.ADVANCE, PaymentStatus.OVERPAID)
               for row in view.transactions)
    assert view.pagination.total_items == 3
    assert view.partial is False


@pytest.mark.asyncio
async def test_pure_advance_appears_in_advances(aggregator, white_oil):
    deposit = await white_oil.create(sale(quantity=0, rate=0, total_amount=0, tendered=500))

    view = await aggregator.summarize_advances("white-oil", TransactionFilter(), PageRequest())

    assert [row.id for row in view.transactions] == [deposit.id]
    assert view.transactions[0].net_advance == 500.0
    assert view.summary.total_outstanding == 500.0


@pytest.mark.asyncio
async def test_advances_view_paginates_newest_first(aggregator, white_oil):
    created = []
    for index in range(3):
        created.append(await white_oil.create(sale(quantity=0, rate=0, total_amount=0, tendered=index + 1)))

    view = await aggregator.summarize_advances(
        "white-oil", TransactionFilter(), PageRequest(page=2, limit=2)
    )

    assert [row.id for row in view.transactions] == [created[0].id]
    assert view.pagination.total_pages == 2


@pytest.mark.asyncio
async def test_product_stats(aggregator, white_oil):
    await white_oil.create(sale(quantity=10, rate=10))
    await white_oil.create(sale(quantity=5, rate=10))
    await white_oil.create(purchase(quantity=1, rate=70))

    stats = await aggregator.product_stats("white-oil", TransactionFilter())
    by_kind = {item.kind: item for item in stats.stats}

    assert by_kind[TransactionKind.SALE].count == 2
    assert by_kind[TransactionKind.SALE].total_value == 150.0
    assert by_kind[TransactionKind.PURCHASE].total_value == 70.0


@pytest.mark.asyncio
async def test_client_suggestions(aggregator, white_oil):
    await white_oil.create(sale(client_name="Zain", quantity=1, rate=100, tendered=150))
    await white_oil.create(sale(client_name="ahmed", quantity=1, rate=100, tendered=20))
    await white_oil.create(purchase(client_name="Supplier", quantity=1, rate=1))

    suggestions = await aggregator.client_suggestions(
        "white-oil", TransactionFilter(kind=TransactionKind.SALE)
    )

    assert suggestions.all_clients == ["ahmed", "Zain"]
    assert [(c.name, c.total_advance) for c in suggestions.clients_with_advances] == [("Zain", 50.0)]


# ===== CROSS PRODUCT =====

class FailingStore(InMemoryTransactionStore):
    """Fails every query for one product type."""

    def __init__(self, broken: str):
        super().__init__()
        self.broken = broken

    async def find(self, query):
        if query.product_type == self.broken:
            raise ConnectionError("replica set unavailable")
        return await super().find(query)


@pytest.fixture
def two_products():
    return StaticProductCatalog([
        ProductType(key="a-oil", display_name="A Oil"),
        ProductType(key="b-oil", display_name="B Oil"),
    ])


@pytest.mark.asyncio
async def test_cross_product_rollup_reports_failed_product(two_products):
    store = FailingStore(broken="b-oil")
    ledgers = LedgerService(store, two_products, timeout=2.0)
    a_oil = await ledgers.for_product("a-oil")
    b_oil = await ledgers.for_product("b-oil")
    await a_oil.create(sale(quantity=10, rate=10, tendered=150))
    await b_oil.create(sale(quantity=99, rate=99, tendered=0))

    aggregator = Aggregator(ledgers)
    summary = await aggregator.summarize_across_products(TransactionFilter(client_name="Ali Traders"))
    advances = await aggregator.summarize_advances_global(TransactionFilter(), PageRequest())

    assert [p.product_type for p in summary.products] == ["a-oil"]
    assert summary.combined.total_amount == 100.0
    assert [f.product_type for f in summary.failed_product_types] == ["b-oil"]
    assert "replica set unavailable" in summary.failed_product_types[0].reason

    assert advances.summary.sales_advance_total == 50.0
    assert advances.partial is True
    assert advances.failed_product_types[0].product_type == "b-oil"


@pytest.mark.asyncio
async def test_global_advances_span_products(ledgers, aggregator):
    white_oil = await ledgers.for_product("white-oil")
    diesel = await ledgers.for_product("diesel")
    await white_oil.create(sale(quantity=1, rate=100, tendered=130))
    await diesel.create(sale(quantity=1, rate=100, tendered=120))

    view = await aggregator.summarize_advances_global(TransactionFilter(), PageRequest())

    assert view.summary.sales_advance_total == 50.0
    assert {row.product_type for row in view.transactions} == {"white-oil", "diesel"}
    assert view.failed_product_types == []


@pytest.mark.asyncio
async def test_dashboard(ledgers, aggregator):
    white_oil = await ledgers.for_product("white-oil")
    diesel = await ledgers.for_product("diesel")
    await white_oil.create(sale(quantity=10, rate=10))
    await white_oil.create(purchase(quantity=5, rate=10))
    await diesel.create(sale(quantity=2, rate=100))

    rollup = await aggregator.dashboard(TransactionFilter())

    assert rollup.sales_count == 2
    assert rollup.purchase_count == 1
    assert rollup.total_sales_amount == 300.0
    assert rollup.total_purchases_amount == 50.0
    assert rollup.gross_margin == 250.0
    assert {item.product_type for item in rollup.products} == {"white-oil", "diesel"}


@pytest.mark.asyncio
async def test_period_report(ledgers, aggregator):
    white_oil = await ledgers.for_product("white-oil")
    diesel = await ledgers.for_product("diesel")
    first = await white_oil.create(sale(quantity=10, rate=10))
    await diesel.create(sale(quantity=2, rate=100))
    await white_oil.create(purchase(quantity=5, rate=10))

    report = await aggregator.period_report(TransactionKind.SALE, TransactionFilter())

    assert report.total_amount == 300.0
    assert report.total_count == 2
    assert [bucket.label for bucket in report.monthly_data] == [first.created_at.strftime("%Y-%m")]
    assert {bucket.label: bucket.amount for bucket in report.product_breakdown} == {
        "White Oil": 100.0,
        "Diesel": 200.0,
    }


def test_fold_of_nothing():
    aggregate = fold([])

    assert aggregate.count == 0
    assert aggregate.total_outstanding == 0.0
    assert aggregate.net_advance == 0.0
