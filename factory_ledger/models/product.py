from typing import List, Optional

from pydantic import Field

from factory_ledger.models.base import CamelModel
from factory_ledger.models.transaction import TransactionKind


class ProductType(CamelModel):
    """A product the factory buys or sells, as exposed by the catalog."""

    key: str = Field(..., min_length=1)
    display_name: str
    unit: str = "kg"
    allowed_kinds: List[TransactionKind] = Field(
        default_factory=lambda: [TransactionKind.SALE, TransactionKind.PURCHASE]
    )
    net_weight_mode: bool = False
    price_per_unit: Optional[float] = None

    def allows(self, kind: TransactionKind) -> bool:
        return kind in self.allowed_kinds
