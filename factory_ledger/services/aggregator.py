"""
Aggregator - summaries built from ledger records.

Every figure here is a fold over ProductLedger.fetch_all() output, with
payment status taken from the status engine. Cross-product rollups query each
product type independently and concurrently; a product type that fails is
reported in failed_product_types and left out of the sums.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, Iterable, List, Tuple, TypeVar

from factory_ledger.models.product import ProductType
from factory_ledger.models.transaction import Transaction, TransactionKind
from factory_ledger.schemas.report import (
    AdvancesView,
    AdvanceSummary,
    AggregateResult,
    ClientAdvance,
    ClientAggregate,
    ClientSuggestions,
    CrossProductSummary,
    DashboardRollup,
    KindStats,
    PeriodBucket,
    PeriodReport,
    ProductAggregate,
    ProductBreakdown,
    ProductFailure,
    ProductStats,
)
from factory_ledger.schemas.transaction import (
    PageRequest,
    Pagination,
    TransactionFilter,
    TransactionResponse,
)
from factory_ledger.services.ledger_service import LedgerService, ProductLedger
from factory_ledger.services.status_engine import classify_transaction, round2

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fold(transactions: Iterable[Transaction]) -> ClientAggregate:
    """Sum a transaction set. Outstanding is taken over the sums, not per row."""
    count = 0
    quantity = amount = tendered = 0.0
    for transaction in transactions:
        count += 1
        quantity += transaction.quantity
        amount += transaction.total_amount
        tendered += transaction.tendered

    total_amount = round2(amount)
    total_tendered = round2(tendered)
    return ClientAggregate(
        count=count,
        total_quantity=round2(quantity),
        total_amount=total_amount,
        total_tendered=total_tendered,
        total_outstanding=round2(total_amount - total_tendered),
    )


def summarize_advance_records(transactions: Iterable[Transaction]) -> Tuple[AdvanceSummary, List[Transaction]]:
    """
    Advance totals count only ADVANCE/OVERPAID records; total_outstanding is
    the signed sum of net_advance over every record, so pending and advance
    records net against each other.
    """
    sales_total = purchase_total = net_total = 0.0
    sales_count = purchase_count = 0
    advance_records: List[Transaction] = []

    for transaction in transactions:
        classification = classify_transaction(transaction)
        net_total += classification.net_advance
        if not classification.is_advance:
            continue
        advance_records.append(transaction)
        if transaction.kind == TransactionKind.SALE:
            sales_total += classification.net_advance
            sales_count += 1
        else:
            purchase_total += classification.net_advance
            purchase_count += 1

    summary = AdvanceSummary(
        sales_advance_total=round2(sales_total),
        purchase_advance_total=round2(purchase_total),
        sales_count=sales_count,
        purchase_count=purchase_count,
        total_outstanding=round2(net_total),
    )
    return summary, advance_records


def _paginate(transactions: List[Transaction], page: PageRequest) -> Tuple[List[TransactionResponse], Pagination]:
    ordered = sorted(transactions, key=lambda t: (t.created_at, t.id), reverse=True)
    skip = (page.page - 1) * page.limit
    rows = [TransactionResponse.from_transaction(t) for t in ordered[skip:skip + page.limit]]
    return rows, Pagination.build(page, len(ordered))


class Aggregator:

    def __init__(self, ledgers: LedgerService):
        self.ledgers = ledgers

    # ===== SINGLE PRODUCT =====

    async def collect(self, product_type: str, filter: TransactionFilter) -> AggregateResult:
        """Matching records plus their aggregate, from one read."""
        ledger = await self.ledgers.for_product(product_type)
        transactions = await ledger.fetch_all(filter)
        kinds = sorted({t.kind for t in transactions}, key=lambda kind: kind.value)
        return AggregateResult(
            transactions=[TransactionResponse.from_transaction(t) for t in transactions],
            aggregate=fold(transactions),
            kinds=kinds,
        )

    async def summarize(self, product_type: str, filter: TransactionFilter) -> ClientAggregate:
        return (await self.collect(product_type, filter)).aggregate

    async def summarize_advances(
        self, product_type: str, filter: TransactionFilter, page: PageRequest
    ) -> AdvancesView:
        ledger = await self.ledgers.for_product(product_type)
        transactions = await ledger.fetch_all(filter)
        summary, advance_records = summarize_advance_records(transactions)
        rows, pagination = _paginate(advance_records, page)
        return AdvancesView(transactions=rows, summary=summary, pagination=pagination)

    async def product_stats(self, product_type: str, filter: TransactionFilter) -> ProductStats:
        ledger = await self.ledgers.for_product(product_type)
        transactions = await ledger.fetch_all(filter)
        return ProductStats(product_type=product_type, stats=self._kind_stats(transactions))

    async def client_suggestions(self, product_type: str, filter: TransactionFilter) -> ClientSuggestions:
        """Known client names, and the ones holding a net advance."""
        ledger = await self.ledgers.for_product(product_type)
        transactions = await ledger.fetch_all(filter)

        by_client: Dict[str, List[Transaction]] = defaultdict(list)
        for transaction in transactions:
            by_client[transaction.client_name].append(transaction)

        with_advances = []
        for name in sorted(by_client, key=str.lower):
            aggregate = fold(by_client[name])
            if aggregate.net_advance > 0:
                with_advances.append(ClientAdvance(name=name, total_advance=aggregate.net_advance))

        return ClientSuggestions(
            all_clients=sorted(by_client, key=str.lower),
            clients_with_advances=with_advances,
        )

    # ===== CROSS PRODUCT =====

    async def summarize_advances_global(
        self, filter: TransactionFilter, page: PageRequest
    ) -> AdvancesView:
        results, failures = await self._across_catalog(lambda ledger: ledger.fetch_all(filter))
        transactions = [t for _, batch in results for t in batch]
        summary, advance_records = summarize_advance_records(transactions)
        rows, pagination = _paginate(advance_records, page)
        return AdvancesView(
            transactions=rows,
            summary=summary,
            pagination=pagination,
            failed_product_types=failures,
        )

    async def summarize_across_products(self, filter: TransactionFilter) -> CrossProductSummary:
        results, failures = await self._across_catalog(lambda ledger: ledger.fetch_all(filter))
        products = [
            ProductAggregate(
                product_type=product.key,
                display_name=product.display_name,
                aggregate=fold(batch),
            )
            for product, batch in results
        ]
        return CrossProductSummary(
            client_name=filter.client_name,
            products=products,
            combined=fold(t for _, batch in results for t in batch),
            failed_product_types=failures,
        )

    async def dashboard(self, filter: TransactionFilter) -> DashboardRollup:
        results, failures = await self._across_catalog(lambda ledger: ledger.fetch_all(filter))

        breakdown = []
        for product, batch in results:
            sales = fold(t for t in batch if t.kind == TransactionKind.SALE)
            purchases = fold(t for t in batch if t.kind == TransactionKind.PURCHASE)
            breakdown.append(ProductBreakdown(
                product_type=product.key,
                display_name=product.display_name,
                sales_count=sales.count,
                sales_amount=sales.total_amount,
                purchase_count=purchases.count,
                purchase_amount=purchases.total_amount,
            ))

        total_sales = round2(sum(item.sales_amount for item in breakdown))
        total_purchases = round2(sum(item.purchase_amount for item in breakdown))
        return DashboardRollup(
            sales_count=sum(item.sales_count for item in breakdown),
            purchase_count=sum(item.purchase_count for item in breakdown),
            total_sales_amount=total_sales,
            total_purchases_amount=total_purchases,
            gross_margin=round2(total_sales - total_purchases),
            products=breakdown,
            failed_product_types=failures,
        )

    async def period_report(self, kind: TransactionKind, filter: TransactionFilter) -> PeriodReport:
        """Sales or purchase totals over the catalog, by month and by product."""
        scoped = filter.model_copy(update={"kind": kind})
        results, failures = await self._across_catalog(lambda ledger: ledger.fetch_all(scoped))

        by_month: Dict[str, List[Transaction]] = defaultdict(list)
        by_product = []
        for product, batch in results:
            aggregate = fold(batch)
            by_product.append(PeriodBucket(
                label=product.display_name, amount=aggregate.total_amount, count=aggregate.count
            ))
            for transaction in batch:
                by_month[transaction.created_at.strftime("%Y-%m")].append(transaction)

        monthly = []
        for month in sorted(by_month):
            aggregate = fold(by_month[month])
            monthly.append(PeriodBucket(label=month, amount=aggregate.total_amount, count=aggregate.count))

        combined = fold(t for _, batch in results for t in batch)
        return PeriodReport(
            kind=kind,
            total_amount=combined.total_amount,
            total_count=combined.count,
            monthly_data=monthly,
            product_breakdown=by_product,
            failed_product_types=failures,
        )

    # ===== PRIVATE HELPERS =====

    @staticmethod
    def _kind_stats(transactions: List[Transaction]) -> List[KindStats]:
        stats = []
        for kind in TransactionKind:
            aggregate = fold(t for t in transactions if t.kind == kind)
            stats.append(KindStats(kind=kind, count=aggregate.count, total_value=aggregate.total_amount))
        return stats

    async def _across_catalog(
        self, fetch: Callable[[ProductLedger], Awaitable[T]]
    ) -> Tuple[List[Tuple[ProductType, T]], List[ProductFailure]]:
        products = await self.ledgers.product_types()

        async def guarded(product: ProductType):
            ledger = ProductLedger(product, self.ledgers.store, self.ledgers.timeout)
            try:
                return product, await fetch(ledger), None
            except Exception as exc:
                logger.warning(
                    "Product type excluded from rollup",
                    extra={"product_type": product.key, "reason": str(exc)},
                    exc_info=True
                )
                return product, None, ProductFailure(
                    product_type=product.key, reason=str(exc) or type(exc).__name__
                )

        outcomes = await asyncio.gather(*(guarded(product) for product in products))

        results = [(product, value) for product, value, failure in outcomes if failure is None]
        failures = [failure for _, _, failure in outcomes if failure is not None]
        return results, failures
