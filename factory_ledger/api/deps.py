from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from fastapi import Depends, Query, Request

from factory_ledger.core.config import settings
from factory_ledger.models.transaction import LifecycleStatus, PaymentStatus, TransactionKind
from factory_ledger.repositories.base import TransactionStore
from factory_ledger.repositories.catalog_repo import ProductCatalog
from factory_ledger.schemas.transaction import (
    PageRequest,
    SortField,
    SortOrder,
    TransactionFilter,
)
from factory_ledger.services.aggregator import Aggregator
from factory_ledger.services.ledger_service import LedgerService
from factory_ledger.services.renderer import StatementRenderer
from factory_ledger.services.statement_builder import StatementBuilder


def get_store(request: Request) -> TransactionStore:
    return request.app.state.store


def get_catalog(request: Request) -> ProductCatalog:
    return request.app.state.catalog


def get_renderer(request: Request) -> StatementRenderer:
    return request.app.state.renderer


def get_ledger_service(
    store: TransactionStore = Depends(get_store),
    catalog: ProductCatalog = Depends(get_catalog)
) -> LedgerService:
    return LedgerService(store, catalog)


def get_aggregator(ledgers: LedgerService = Depends(get_ledger_service)) -> Aggregator:
    return Aggregator(ledgers)


def get_statement_builder(
    ledgers: LedgerService = Depends(get_ledger_service),
    aggregator: Aggregator = Depends(get_aggregator)
) -> StatementBuilder:
    return StatementBuilder(ledgers, aggregator)


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def get_transaction_filter(
    kind: Optional[TransactionKind] = Query(None),
    transaction_type: Optional[TransactionKind] = Query(None, alias="transactionType"),
    client_name: Optional[str] = Query(None, alias="clientName"),
    exact_client: bool = Query(False, alias="exactClient"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    lifecycle_status: Optional[LifecycleStatus] = Query(None, alias="lifecycleStatus"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    include_cancelled: bool = Query(False, alias="includeCancelled"),
) -> TransactionFilter:
    """Query-string filter. endDate is inclusive of the whole day."""
    return TransactionFilter(
        kind=kind or transaction_type,
        client_name=client_name,
        exact_client=exact_client,
        payment_status=payment_status,
        lifecycle_status=lifecycle_status,
        created_from=_start_of_day(start_date) if start_date else None,
        created_to=_start_of_day(end_date + timedelta(days=1)) if end_date else None,
        include_cancelled=include_cancelled,
    )


def get_page_request(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sort_by: SortField = Query(SortField.CREATED_AT, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
) -> PageRequest:
    return PageRequest(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)
