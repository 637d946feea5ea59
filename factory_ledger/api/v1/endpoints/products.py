from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from factory_ledger.api.deps import (
    get_aggregator,
    get_catalog,
    get_ledger_service,
    get_page_request,
    get_renderer,
    get_statement_builder,
    get_transaction_filter,
)
from factory_ledger.core.auth import (
    REPORTS_READ,
    TRANSACTIONS_DELETE,
    TRANSACTIONS_READ,
    TRANSACTIONS_WRITE,
    Principal,
    require_permission,
)
from factory_ledger.core.errors import TransactionValidationError
from factory_ledger.models.product import ProductType
from factory_ledger.repositories.catalog_repo import ProductCatalog, slugify
from factory_ledger.schemas.common import Envelope
from factory_ledger.schemas.report import (
    AdvancesView,
    ClientAggregate,
    ClientSuggestions,
    CrossProductSummary,
    DashboardRollup,
    ProductStats,
)
from factory_ledger.schemas.statement import Statement
from factory_ledger.schemas.transaction import (
    PageRequest,
    TransactionCreate,
    TransactionFilter,
    TransactionPage,
    TransactionResponse,
    TransactionUpdate,
)
from factory_ledger.services.aggregator import Aggregator
from factory_ledger.services.ledger_service import LedgerService
from factory_ledger.services.renderer import StatementRenderer, render_statement
from factory_ledger.services.statement_builder import StatementBuilder

router = APIRouter()


def document_response(renderer: StatementRenderer, statement: Statement, filename: str) -> Response:
    """Render a statement and return it as a download."""
    content = render_statement(renderer, statement)
    return Response(
        content=content,
        media_type=renderer.media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# ===== CATALOG AND CROSS-PRODUCT =====

@router.get("/types", response_model=Envelope[List[ProductType]])
async def list_product_types(catalog: ProductCatalog = Depends(get_catalog)):
    """Product types the ledger accepts."""
    return Envelope(data=await catalog.list_all())


@router.get("/stats", response_model=Envelope[DashboardRollup])
async def dashboard_stats(
    filter: TransactionFilter = Depends(get_transaction_filter),
    aggregator: Aggregator = Depends(get_aggregator),
    principal: Principal = Depends(require_permission(TRANSACTIONS_READ))
):
    """Sales and purchase totals across every product type."""
    return Envelope(data=await aggregator.dashboard(filter))


@router.get("/clients/summary", response_model=Envelope[CrossProductSummary])
async def client_summary_across_products(
    filter: TransactionFilter = Depends(get_transaction_filter),
    aggregator: Aggregator = Depends(get_aggregator),
    principal: Principal = Depends(require_permission(TRANSACTIONS_READ))
):
    """One client's aggregate per product type, plus the combined total."""
    if not (filter.client_name or "").strip():
        raise TransactionValidationError(["clientName is required"])
    scoped = filter.model_copy(update={"exact_client": True})
    return Envelope(data=await aggregator.summarize_across_products(scoped))


# ===== PER PRODUCT =====

@router.get("/{product_type}", response_model=Envelope[TransactionPage])
async def list_transactions(
    product_type: str,
    filter: TransactionFilter = Depends(get_transaction_filter),
    page: PageRequest = Depends(get_page_request),
    ledgers: LedgerService = Depends(get_ledger_service),
    principal: Principal = Depends(require_permission(TRANSACTIONS_READ))
):
    ledger = await ledgers.for_product(product_type)
    return Envelope(data=await ledger.list(filter, page))


@router.post(
    "/{product_type}",
    response_model=Envelope[TransactionResponse],
    status_code=status.HTTP_201_CREATED
)
async def create_transaction(
    product_type: str,
    data: TransactionCreate,
    ledgers: LedgerService = Depends(get_ledger_service),
    principal: Principal = Depends(require_permission(TRANSACTIONS_WRITE))
):
    """
    Record a sale or purchase.

    - totalAmount is computed from quantity x rate when both are positive
    - quantity = rate = 0 records a pure advance with an explicit totalAmount
    """
    ledger = await ledgers.for_product(product_type)
    transaction = await ledger.create(data)
    return Envelope(
        data=TransactionResponse.from_transaction(transaction),
        message="Transaction created successfully"
    )


@router.get("/{product_type}/advances", response_model=Envelope[AdvancesView])
async def list_advances(
    product_type: str,
    global_view: bool = Query(False, alias="global"),
    filter: TransactionFilter = Depends(get_transaction_filter),
    page: PageRequest = Depends(get_page_request),
    aggregator: Aggregator = Depends(get_aggregator),
    principal: Principal = Depends(require_permission(TRANSACTIONS_READ))
):
    """
    Records holding an advance or overpayment, with running totals.

    With global=true every product type in the catalog is included and any
    product type that could not be queried is listed in failedProductTypes.
    """
    if global_view:
        view = await aggregator.summarize_advances_global(filter, page)
    else:
        view = await aggregator.summarize_advances(product_type, filter, page)
    return Envelope(data=view)


@router.get("/{product_type}/stats", response_model=Envelope[ProductStats])
async def product_stats(
    product_type: str,
    filter: TransactionFilter = Depends(get_transaction_filter),
    aggregator: Aggregator = Depends(get_aggregator),
    principal: Principal = Depends(require_permission(TRANSACTIONS_READ))
):
    return Envelope(data=await aggregator.product_stats(product_type, filter))


@router.get("/{product_type}/clients", response_model=Envelope[ClientSuggestions])
async def client_suggestions(
    product_type: str,
    filter: TransactionFilter = Depends(get_transaction_filter),
    aggregator: Aggregator = Depends(get_aggregator),
    principal: Principal = Depends(require_permission(TRANSACTIONS_READ))
):
    """Known clients for autocomplete, and those currently holding an advance."""
    return Envelope(data=await aggregator.client_suggestions(product_type, filter))


@router.get("/{product_type}/summary", response_model=Envelope[ClientAggregate])
async def summarize_transactions(
    product_type: str,
    filter: TransactionFilter = Depends(get_transaction_filter),
    aggregator: Aggregator = Depends(get_aggregator),
    principal: Principal = Depends(require_permission(TRANSACTIONS_READ))
):
    return Envelope(data=await aggregator.summarize(product_type, filter))


@router.get("/{product_type}/client-report")
async def client_report(
    product_type: str,
    filter: TransactionFilter = Depends(get_transaction_filter),
    builder: StatementBuilder = Depends(get_statement_builder),
    renderer: StatementRenderer = Depends(get_renderer),
    principal: Principal = Depends(require_permission(REPORTS_READ))
):
    """Client statement document: one line per record plus the aggregate row."""
    statement = await builder.build_client_statement(product_type, filter.client_name, filter)
    return document_response(
        renderer, statement, f"{slugify(statement.client_name) or 'client'}-report.pdf"
    )


@router.get("/{product_type}/{transaction_id}/invoice")
async def transaction_invoice(
    product_type: str,
    transaction_id: str,
    builder: StatementBuilder = Depends(get_statement_builder),
    renderer: StatementRenderer = Depends(get_renderer),
    principal: Principal = Depends(require_permission(REPORTS_READ))
):
    statement = await builder.build_invoice(product_type, transaction_id)
    return document_response(
        renderer, statement, f"{slugify(statement.client_name) or 'client'}-invoice.pdf"
    )


@router.get("/{product_type}/{transaction_id}", response_model=Envelope[TransactionResponse])
async def get_transaction(
    product_type: str,
    transaction_id: str,
    ledgers: LedgerService = Depends(get_ledger_service),
    principal: Principal = Depends(require_permission(TRANSACTIONS_READ))
):
    ledger = await ledgers.for_product(product_type)
    transaction = await ledger.get(transaction_id)
    return Envelope(data=TransactionResponse.from_transaction(transaction))


@router.put("/{product_type}/{transaction_id}", response_model=Envelope[TransactionResponse])
async def update_transaction(
    product_type: str,
    transaction_id: str,
    patch: TransactionUpdate,
    ledgers: LedgerService = Depends(get_ledger_service),
    principal: Principal = Depends(require_permission(TRANSACTIONS_WRITE))
):
    """
    Partial update.

    - Changing quantity or rate recomputes totalAmount
    - Otherwise a supplied totalAmount is kept as a manual correction
    - Pass version to fail with 409 if the record changed since it was read
    """
    ledger = await ledgers.for_product(product_type)
    transaction = await ledger.update(transaction_id, patch)
    return Envelope(
        data=TransactionResponse.from_transaction(transaction),
        message="Transaction updated successfully"
    )


@router.delete("/{product_type}/{transaction_id}", response_model=Envelope[Optional[dict]])
async def delete_transaction(
    product_type: str,
    transaction_id: str,
    ledgers: LedgerService = Depends(get_ledger_service),
    principal: Principal = Depends(require_permission(TRANSACTIONS_DELETE))
):
    ledger = await ledgers.for_product(product_type)
    await ledger.delete(transaction_id)
    return Envelope(message="Transaction deleted successfully")
