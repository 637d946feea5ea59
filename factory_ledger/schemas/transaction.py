from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, Field

from factory_ledger.models.base import CamelModel
from factory_ledger.models.transaction import (
    LifecycleStatus,
    PaymentStatus,
    Transaction,
    TransactionKind,
)
from factory_ledger.services.status_engine import classify_transaction


class TransactionCreate(CamelModel):
    """Create body. Legacy field names from the old dashboard are still accepted."""
    kind: TransactionKind = Field(validation_alias=AliasChoices("kind", "transactionType"))
    client_name: str = Field(validation_alias=AliasChoices("clientName", "client_name"))
    quantity: float = Field(0.0, validation_alias=AliasChoices("quantity", "weight"))
    quantity_unit: Optional[str] = Field(
        None, validation_alias=AliasChoices("quantityUnit", "weightUnit")
    )
    rate: float = 0.0
    rate_unit: Optional[str] = Field(None, validation_alias=AliasChoices("rateUnit", "rate_unit"))
    total_amount: Optional[float] = Field(
        None, validation_alias=AliasChoices("totalAmount", "totalBalance")
    )
    tendered: float = Field(0.0, validation_alias=AliasChoices("tendered", "remainingAmount"))
    lifecycle_status: LifecycleStatus = Field(
        LifecycleStatus.PENDING, validation_alias=AliasChoices("lifecycleStatus", "status")
    )
    notes: Optional[str] = None


class TransactionUpdate(CamelModel):
    """Partial patch. Only fields present in the body are applied."""
    client_name: Optional[str] = Field(None, validation_alias=AliasChoices("clientName", "client_name"))
    quantity: Optional[float] = Field(None, validation_alias=AliasChoices("quantity", "weight"))
    quantity_unit: Optional[str] = Field(
        None, validation_alias=AliasChoices("quantityUnit", "weightUnit")
    )
    rate: Optional[float] = None
    rate_unit: Optional[str] = Field(None, validation_alias=AliasChoices("rateUnit", "rate_unit"))
    total_amount: Optional[float] = Field(
        None, validation_alias=AliasChoices("totalAmount", "totalBalance")
    )
    tendered: Optional[float] = Field(None, validation_alias=AliasChoices("tendered", "remainingAmount"))
    lifecycle_status: Optional[LifecycleStatus] = Field(
        None, validation_alias=AliasChoices("lifecycleStatus", "status")
    )
    notes: Optional[str] = None
    version: Optional[int] = None  # Expected version for optimistic locking


class TransactionResponse(CamelModel):
    id: str
    product_type: str
    kind: TransactionKind
    client_name: str
    quantity: float
    quantity_unit: str
    rate: float
    rate_unit: str
    total_amount: float
    tendered: float
    payment_status: PaymentStatus
    net_advance: float
    advance_amount: float
    shortfall: float
    lifecycle_status: LifecycleStatus
    notes: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionResponse":
        classification = classify_transaction(transaction)
        return cls(
            id=transaction.id,
            product_type=transaction.product_type,
            kind=transaction.kind,
            client_name=transaction.client_name,
            quantity=transaction.quantity,
            quantity_unit=transaction.quantity_unit,
            rate=transaction.rate,
            rate_unit=transaction.rate_unit,
            total_amount=transaction.total_amount,
            tendered=transaction.tendered,
            payment_status=classification.status,
            net_advance=classification.net_advance,
            advance_amount=classification.advance_amount,
            shortfall=classification.shortfall,
            lifecycle_status=transaction.lifecycle_status,
            notes=transaction.notes,
            version=transaction.version,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )


class SortField(str, Enum):
    CREATED_AT = "createdAt"
    CLIENT_NAME = "clientName"
    TOTAL_AMOUNT = "totalAmount"
    QUANTITY = "quantity"

    @property
    def attribute(self) -> str:
        return {
            SortField.CREATED_AT: "created_at",
            SortField.CLIENT_NAME: "client_name",
            SortField.TOTAL_AMOUNT: "total_amount",
            SortField.QUANTITY: "quantity",
        }[self]


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class TransactionFilter(CamelModel):
    """
    Record selection shared by listings, aggregates and statements.

    payment_status is applied after classification. include_cancelled only
    affects aggregates: listings always show cancelled records.
    """
    kind: Optional[TransactionKind] = None
    client_name: Optional[str] = None
    exact_client: bool = False
    payment_status: Optional[PaymentStatus] = None
    lifecycle_status: Optional[LifecycleStatus] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None  # exclusive
    include_cancelled: bool = False


class PageRequest(CamelModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @classmethod
    def build(cls, page: PageRequest, total_items: int) -> "Pagination":
        total_pages = max(1, -(-total_items // page.limit))
        return cls(
            current_page=page.page,
            total_pages=total_pages,
            total_items=total_items,
            items_per_page=page.limit,
        )


class TransactionPage(CamelModel):
    transactions: List[TransactionResponse]
    pagination: Pagination
