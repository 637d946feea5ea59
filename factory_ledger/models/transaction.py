"""
Transaction model - one sale or purchase record of a single product type.

Design principles:
- One mutable record per transaction, hard-deleted on removal
- total_amount is authoritative; payment status is never stored, it is
  derived from (kind, total_amount, tendered) on every read
- version is bumped on every write and used for optimistic locking
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from factory_ledger.models.base import utcnow


class TransactionKind(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    FULL = "full"
    ADVANCE = "advance"
    OVERPAID = "overpaid"


class LifecycleStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Transaction(BaseModel):
    """
    Stored transaction fields.

    Invariants:
    - quantity > 0 and rate > 0 implies total_amount == round2(quantity * rate)
      as of the last write that touched quantity or rate
    - quantity == rate == 0 marks a pure-advance or manually totalled record
    - tendered >= 0, total_amount >= 0
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    id: str = Field(validation_alias="_id", serialization_alias="_id")
    product_type: str
    kind: TransactionKind
    client_name: str

    quantity: float = 0.0
    quantity_unit: str = "kg"
    rate: float = 0.0
    rate_unit: str = "per_kg"
    total_amount: float = 0.0
    tendered: float = 0.0

    lifecycle_status: LifecycleStatus = LifecycleStatus.PENDING
    notes: Optional[str] = None

    version: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Transaction":
        doc = dict(doc)
        doc["_id"] = str(doc["_id"])
        return cls.model_validate(doc)

    def to_document(self) -> Dict[str, Any]:
        """Storage shape: snake_case keys, enums as plain strings."""
        return self.model_dump(by_alias=True, mode="python") | {
            "kind": self.kind.value,
            "lifecycle_status": self.lifecycle_status.value,
        }
