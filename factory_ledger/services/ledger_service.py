"""
Ledger service - validated CRUD over one product type's transactions.

Write path:
1. Check the kind against the product's allowed kinds
2. Validate numeric input (never clamp, always reject)
3. Resolve the authoritative total_amount
4. Persist exactly one document
Every storage call is bounded by STORE_TIMEOUT_SECONDS.
"""

import asyncio
import logging
import math
from typing import Awaitable, List, Optional, TypeVar

from factory_ledger.core.config import settings
from factory_ledger.core.errors import (
    CatalogViolation,
    ConflictError,
    NotFoundError,
    StoreTimeout,
    TransactionValidationError,
)
from factory_ledger.models.base import new_id, utcnow
from factory_ledger.models.product import ProductType
from factory_ledger.models.transaction import Transaction, TransactionKind
from factory_ledger.repositories.base import StoreQuery, TransactionStore
from factory_ledger.repositories.catalog_repo import ProductCatalog
from factory_ledger.schemas.transaction import (
    PageRequest,
    Pagination,
    SortField,
    SortOrder,
    TransactionCreate,
    TransactionFilter,
    TransactionPage,
    TransactionResponse,
    TransactionUpdate,
)
from factory_ledger.services.status_engine import classify_transaction, round2

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout: float, what: str) -> T:
    """Await a storage call, turning an overrun into StoreTimeout."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise StoreTimeout(f"{what} timed out after {timeout}s") from exc


def _check_number(field: str, value: Optional[float], errors: List[str]) -> None:
    if value is None:
        errors.append(f"{field} cannot be null")
    elif not math.isfinite(value):
        errors.append(f"{field} must be a finite number")
    elif value < 0:
        errors.append(f"{field} cannot be negative")


def _clean_client_name(name: Optional[str], errors: List[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        errors.append("clientName is required")
    return cleaned


def _resolve_total(
    quantity: float, rate: float, total_amount: Optional[float], errors: List[str]
) -> Optional[float]:
    """
    quantity and rate both positive -> round2(quantity * rate), any supplied
    total is overridden. Both zero -> the explicit total (pure advance or
    manual entry). Anything else is rejected.
    """
    if quantity > 0 and rate > 0:
        total = round2(quantity * rate)
        if not math.isfinite(total):
            errors.append("quantity x rate is too large")
            return None
        return total
    if quantity == 0 and rate == 0:
        if total_amount is None:
            errors.append("totalAmount is required when quantity and rate are 0")
            return None
        return round2(total_amount)
    errors.append(
        "quantity and rate must both be greater than 0, "
        "or both be 0 with an explicit totalAmount"
    )
    return None


class ProductLedger:
    """Ledger store for a single product type."""

    def __init__(
        self,
        product: ProductType,
        store: TransactionStore,
        timeout: Optional[float] = None
    ):
        self.product = product
        self.store = store
        self.timeout = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout

    async def create(self, data: TransactionCreate) -> Transaction:
        self._check_kind(data.kind)

        errors: List[str] = []
        client_name = _clean_client_name(data.client_name, errors)
        _check_number("quantity", data.quantity, errors)
        _check_number("rate", data.rate, errors)
        _check_number("tendered", data.tendered, errors)
        if data.total_amount is not None:
            _check_number("totalAmount", data.total_amount, errors)

        total_amount = None
        if not errors:
            total_amount = _resolve_total(data.quantity, data.rate, data.total_amount, errors)
        if errors:
            raise TransactionValidationError(errors)

        now = utcnow()
        transaction = Transaction(
            id=new_id(),
            product_type=self.product.key,
            kind=data.kind,
            client_name=client_name,
            quantity=data.quantity,
            quantity_unit=data.quantity_unit or self.product.unit,
            rate=data.rate,
            rate_unit=data.rate_unit or f"per_{self.product.unit}",
            total_amount=total_amount,
            tendered=round2(data.tendered),
            lifecycle_status=data.lifecycle_status,
            notes=data.notes,
            version=1,
            created_at=now,
            updated_at=now,
        )

        doc = await self._call(self.store.insert(transaction.to_document()), "insert")
        created = Transaction.from_document(doc)
        logger.info(
            "Transaction created",
            extra={"product_type": self.product.key, "transaction_id": created.id}
        )
        return created

    async def get(self, transaction_id: str) -> Transaction:
        doc = await self._call(self.store.get(self.product.key, transaction_id), "get")
        if doc is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return Transaction.from_document(doc)

    async def update(self, transaction_id: str, patch: TransactionUpdate) -> Transaction:
        """
        Apply a partial patch.

        If quantity or rate change, total_amount is recomputed from them and a
        supplied totalAmount is ignored. Otherwise a supplied totalAmount is
        kept as a manual correction.
        """
        existing = await self.get(transaction_id)
        if patch.version is not None and patch.version != existing.version:
            raise ConflictError(
                f"Version conflict: expected {patch.version}, current {existing.version}"
            )
        self._check_kind(existing.kind)

        fields = patch.model_fields_set
        errors: List[str] = []
        changes = {}

        if "client_name" in fields:
            changes["client_name"] = _clean_client_name(patch.client_name, errors)
        for name, label in (
            ("quantity", "quantity"),
            ("rate", "rate"),
            ("tendered", "tendered"),
            ("total_amount", "totalAmount"),
        ):
            if name in fields:
                _check_number(label, getattr(patch, name), errors)
        if errors:
            raise TransactionValidationError(errors)

        quantity = patch.quantity if "quantity" in fields else existing.quantity
        rate = patch.rate if "rate" in fields else existing.rate
        supplied_total = patch.total_amount if "total_amount" in fields else None
        basis_changed = quantity != existing.quantity or rate != existing.rate

        if basis_changed:
            fallback = existing.total_amount if supplied_total is None else supplied_total
            total_amount = _resolve_total(quantity, rate, fallback, errors)
        elif supplied_total is not None:
            total_amount = round2(supplied_total)
        else:
            total_amount = existing.total_amount
        if errors:
            raise TransactionValidationError(errors)

        changes["quantity"] = quantity
        changes["rate"] = rate
        changes["total_amount"] = total_amount
        if "tendered" in fields:
            changes["tendered"] = round2(patch.tendered)
        if patch.quantity_unit:
            changes["quantity_unit"] = patch.quantity_unit
        if patch.rate_unit:
            changes["rate_unit"] = patch.rate_unit
        if patch.lifecycle_status is not None:
            changes["lifecycle_status"] = patch.lifecycle_status.value
        if "notes" in fields:
            changes["notes"] = patch.notes
        changes["updated_at"] = utcnow()

        doc = await self._call(
            self.store.update(self.product.key, transaction_id, existing.version, changes),
            "update"
        )
        if doc is None:
            logger.warning(
                "Optimistic lock conflict",
                extra={"product_type": self.product.key, "transaction_id": transaction_id}
            )
            raise ConflictError(
                f"Transaction {transaction_id} was changed or deleted by another request"
            )

        updated = Transaction.from_document(doc)
        logger.info(
            "Transaction updated",
            extra={
                "product_type": self.product.key,
                "transaction_id": transaction_id,
                "version": updated.version,
            }
        )
        return updated

    async def delete(self, transaction_id: str) -> None:
        deleted = await self._call(self.store.delete(self.product.key, transaction_id), "delete")
        if not deleted:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        logger.info(
            "Transaction deleted",
            extra={"product_type": self.product.key, "transaction_id": transaction_id}
        )

    async def list(self, filter: TransactionFilter, page: PageRequest) -> TransactionPage:
        query = self._query(filter, aggregate=False)
        query.sort_by = page.sort_by
        query.sort_order = page.sort_order
        skip = (page.page - 1) * page.limit

        if filter.payment_status is None:
            total_items = await self._call(self.store.count(query), "count")
            query.skip = skip
            query.limit = page.limit
            docs = await self._call(self.store.find(query), "find")
            transactions = [Transaction.from_document(doc) for doc in docs]
        else:
            # Status is derived, so it can only be filtered after classification
            docs = await self._call(self.store.find(query), "find")
            matching = [
                t for t in (Transaction.from_document(doc) for doc in docs)
                if classify_transaction(t).status == filter.payment_status
            ]
            total_items = len(matching)
            transactions = matching[skip:skip + page.limit]

        return TransactionPage(
            transactions=[TransactionResponse.from_transaction(t) for t in transactions],
            pagination=Pagination.build(page, total_items),
        )

    async def fetch_all(
        self,
        filter: TransactionFilter,
        sort_by: SortField = SortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> List[Transaction]:
        """Every record an aggregate over this filter should include."""
        query = self._query(filter, aggregate=True)
        query.sort_by = sort_by
        query.sort_order = sort_order
        docs = await self._call(self.store.find(query), "find")
        transactions = [Transaction.from_document(doc) for doc in docs]
        if filter.payment_status is not None:
            transactions = [
                t for t in transactions
                if classify_transaction(t).status == filter.payment_status
            ]
        return transactions

    # ===== PRIVATE HELPERS =====

    def _check_kind(self, kind: TransactionKind) -> None:
        if not self.product.allows(kind):
            raise CatalogViolation(
                f"{kind.value.capitalize()} transactions are not allowed for {self.product.display_name}"
            )

    def _query(self, filter: TransactionFilter, aggregate: bool) -> StoreQuery:
        return StoreQuery(
            product_type=self.product.key,
            kind=filter.kind,
            client_name=(filter.client_name or "").strip() or None,
            exact_client=filter.exact_client,
            lifecycle_status=filter.lifecycle_status,
            exclude_cancelled=aggregate and not filter.include_cancelled,
            created_from=filter.created_from,
            created_to=filter.created_to,
        )

    async def _call(self, awaitable: Awaitable[T], operation: str) -> T:
        return await bounded(
            awaitable, self.timeout, f"Storage {operation} for '{self.product.key}'"
        )


class LedgerService:
    """Resolves product types through the catalog and hands out ProductLedgers."""

    def __init__(
        self,
        store: TransactionStore,
        catalog: ProductCatalog,
        timeout: Optional[float] = None
    ):
        self.store = store
        self.catalog = catalog
        self.timeout = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout

    async def for_product(self, product_type: str) -> ProductLedger:
        product = await bounded(
            self.catalog.resolve(product_type), self.timeout, "Catalog lookup"
        )
        return ProductLedger(product, self.store, self.timeout)

    async def product_types(self) -> List[ProductType]:
        return await bounded(self.catalog.list_all(), self.timeout, "Catalog listing")
