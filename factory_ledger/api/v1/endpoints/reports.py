from fastapi import APIRouter, Depends

from factory_ledger.api.deps import (
    get_aggregator,
    get_renderer,
    get_statement_builder,
    get_transaction_filter,
)
from factory_ledger.api.v1.endpoints.products import document_response
from factory_ledger.core.auth import REPORTS_READ, Principal, require_permission
from factory_ledger.models.transaction import TransactionKind
from factory_ledger.schemas.common import Envelope
from factory_ledger.schemas.report import PeriodReport
from factory_ledger.schemas.transaction import TransactionFilter
from factory_ledger.services.aggregator import Aggregator
from factory_ledger.services.renderer import StatementRenderer
from factory_ledger.services.statement_builder import StatementBuilder

router = APIRouter()


@router.get("/sales", response_model=Envelope[PeriodReport])
async def sales_report(
    filter: TransactionFilter = Depends(get_transaction_filter),
    aggregator: Aggregator = Depends(get_aggregator),
    principal: Principal = Depends(require_permission(REPORTS_READ))
):
    """Sales across the catalog, by month and by product."""
    return Envelope(data=await aggregator.period_report(TransactionKind.SALE, filter))


@router.get("/purchases", response_model=Envelope[PeriodReport])
async def purchases_report(
    filter: TransactionFilter = Depends(get_transaction_filter),
    aggregator: Aggregator = Depends(get_aggregator),
    principal: Principal = Depends(require_permission(REPORTS_READ))
):
    """Purchases across the catalog, by month and by product."""
    return Envelope(data=await aggregator.period_report(TransactionKind.PURCHASE, filter))


@router.get("/products/{product_type}/pdf")
async def product_report_document(
    product_type: str,
    filter: TransactionFilter = Depends(get_transaction_filter),
    builder: StatementBuilder = Depends(get_statement_builder),
    renderer: StatementRenderer = Depends(get_renderer),
    principal: Principal = Depends(require_permission(REPORTS_READ))
):
    statement = await builder.build_product_report(product_type, filter)
    return document_response(renderer, statement, f"{product_type}-report.pdf")
