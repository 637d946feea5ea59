from datetime import datetime
from enum import Enum
from typing import List, Optional

from factory_ledger.models.base import CamelModel
from factory_ledger.models.product import ProductType
from factory_ledger.models.transaction import PaymentStatus, TransactionKind
from factory_ledger.schemas.report import ClientAggregate


class StatementType(str, Enum):
    INVOICE = "invoice"
    CLIENT_STATEMENT = "client_statement"
    PRODUCT_REPORT = "product_report"


class StatementHeader(CamelModel):
    total_amount: float
    total_tendered: float
    net_advance: float
    shortfall: float
    status: Optional[PaymentStatus] = None  # None when lines mix sales and purchases


class StatementLine(CamelModel):
    transaction_id: str
    date: datetime
    kind: TransactionKind
    client_name: str
    quantity: float
    quantity_unit: str
    rate: float
    rate_unit: str
    total_amount: float
    tendered: float
    net_advance: float
    payment_status: PaymentStatus
    notes: Optional[str] = None


class Statement(CamelModel):
    """Structured document handed to a renderer. Holds no arithmetic of its own."""
    statement_type: StatementType
    title: str
    company_name: str
    currency: str
    product: ProductType
    client_name: Optional[str] = None
    generated_at: datetime
    header: StatementHeader
    lines: List[StatementLine]
    aggregate: Optional[ClientAggregate] = None
