"""
Payment status engine.

The only place in the code base that turns (kind, total, tendered) into a
payment status. Ledger reads, aggregates, client suggestions and statements all
go through classify(); nothing else compares tendered against total.

Rule:
    net_advance = tendered - total_amount
    net_advance > 0   -> ADVANCE (sale) / OVERPAID (purchase)
    net_advance == 0  -> FULL
    net_advance < 0   -> PENDING, shortfall = -net_advance

A pure-advance record (total_amount == 0, tendered > 0) falls in the first
branch with net_advance == tendered.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Protocol

from factory_ledger.models.transaction import PaymentStatus, TransactionKind

_CENT = Decimal("0.01")

# Enough digits to quantize the largest finite float to cents
_PRECISION = 400

_SURPLUS_STATUS = {
    TransactionKind.SALE: PaymentStatus.ADVANCE,
    TransactionKind.PURCHASE: PaymentStatus.OVERPAID,
}


def round2(value: float) -> float:
    """Round half-up to two decimals, on the decimal representation of value."""
    if not math.isfinite(value):
        return value
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return float(Decimal(repr(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Classification:
    status: PaymentStatus
    net_advance: float

    @property
    def advance_amount(self) -> float:
        return self.net_advance if self.net_advance > 0 else 0.0

    @property
    def shortfall(self) -> float:
        return -self.net_advance if self.net_advance < 0 else 0.0

    @property
    def is_advance(self) -> bool:
        return self.status in (PaymentStatus.ADVANCE, PaymentStatus.OVERPAID)


class Classifiable(Protocol):
    kind: TransactionKind
    total_amount: float
    tendered: float


def classify(kind: TransactionKind, total_amount: float, tendered: float) -> Classification:
    kind = TransactionKind(kind)
    net_advance = round2(tendered - total_amount)

    if net_advance > 0:
        return Classification(_SURPLUS_STATUS[kind], net_advance)
    if net_advance == 0:
        # normalises -0.0
        return Classification(PaymentStatus.FULL, 0.0)
    return Classification(PaymentStatus.PENDING, net_advance)


def classify_transaction(transaction: Classifiable) -> Classification:
    return classify(transaction.kind, transaction.total_amount, transaction.tendered)
