from typing import List, Optional

from pydantic import Field, computed_field

from factory_ledger.models.base import CamelModel
from factory_ledger.models.transaction import TransactionKind
from factory_ledger.schemas.transaction import Pagination, TransactionResponse


class ClientAggregate(CamelModel):
    """
    Totals over a filtered transaction set.

    total_outstanding is computed from the sums, so an advance on one record
    offsets a shortfall on another.
    """
    count: int = 0
    total_quantity: float = 0.0
    total_amount: float = 0.0
    total_tendered: float = 0.0
    total_outstanding: float = 0.0

    @computed_field
    @property
    def net_advance(self) -> float:
        return -self.total_outstanding if self.total_outstanding else 0.0

    @computed_field
    @property
    def shortfall(self) -> float:
        return self.total_outstanding if self.total_outstanding > 0 else 0.0


class ProductFailure(CamelModel):
    """A product type whose query failed during a cross-product rollup."""
    product_type: str
    reason: str


class AdvanceSummary(CamelModel):
    sales_advance_total: float = 0.0
    purchase_advance_total: float = 0.0
    sales_count: int = 0
    purchase_count: int = 0
    total_outstanding: float = 0.0


class AdvancesView(CamelModel):
    transactions: List[TransactionResponse]
    summary: AdvanceSummary
    pagination: Pagination
    failed_product_types: List[ProductFailure] = Field(default_factory=list)

    @computed_field
    @property
    def partial(self) -> bool:
        return bool(self.failed_product_types)


class ProductAggregate(CamelModel):
    product_type: str
    display_name: str
    aggregate: ClientAggregate


class CrossProductSummary(CamelModel):
    client_name: Optional[str] = None
    products: List[ProductAggregate]
    combined: ClientAggregate
    failed_product_types: List[ProductFailure] = Field(default_factory=list)


class KindStats(CamelModel):
    kind: TransactionKind
    count: int = 0
    total_value: float = 0.0


class ProductStats(CamelModel):
    product_type: str
    stats: List[KindStats]


class ProductBreakdown(CamelModel):
    product_type: str
    display_name: str
    sales_count: int = 0
    sales_amount: float = 0.0
    purchase_count: int = 0
    purchase_amount: float = 0.0


class DashboardRollup(CamelModel):
    sales_count: int = 0
    purchase_count: int = 0
    total_sales_amount: float = 0.0
    total_purchases_amount: float = 0.0
    gross_margin: float = 0.0
    products: List[ProductBreakdown] = Field(default_factory=list)
    failed_product_types: List[ProductFailure] = Field(default_factory=list)


class PeriodBucket(CamelModel):
    label: str
    amount: float = 0.0
    count: int = 0


class PeriodReport(CamelModel):
    kind: TransactionKind
    total_amount: float = 0.0
    total_count: int = 0
    monthly_data: List[PeriodBucket] = Field(default_factory=list)
    product_breakdown: List[PeriodBucket] = Field(default_factory=list)
    failed_product_types: List[ProductFailure] = Field(default_factory=list)


class ClientAdvance(CamelModel):
    name: str
    total_advance: float


class ClientSuggestions(CamelModel):
    all_clients: List[str]
    clients_with_advances: List[ClientAdvance]


class AggregateResult(CamelModel):
    """Records and their aggregate, computed together so they never diverge."""
    transactions: List[TransactionResponse]
    aggregate: ClientAggregate
    kinds: List[TransactionKind] = Field(default_factory=list)
