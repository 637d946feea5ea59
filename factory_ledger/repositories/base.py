"""Abstract storage interface for transaction records."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from factory_ledger.models.transaction import LifecycleStatus, TransactionKind
from factory_ledger.schemas.transaction import SortField, SortOrder


@dataclass
class StoreQuery:
    """Selection on stored fields only. Derived fields never reach the store."""
    product_type: str
    kind: Optional[TransactionKind] = None
    client_name: Optional[str] = None
    exact_client: bool = False
    lifecycle_status: Optional[LifecycleStatus] = None
    exclude_cancelled: bool = False
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    skip: int = 0
    limit: Optional[int] = None


class TransactionStore(ABC):
    """
    Persistence for transaction documents.

    Documents are plain dicts with snake_case keys and a string "_id". Every
    write touches exactly one document.
    """

    @abstractmethod
    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def get(self, product_type: str, transaction_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def update(
        self,
        product_type: str,
        transaction_id: str,
        expected_version: int,
        changes: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Apply changes and bump version iff the stored version matches.

        Returns the updated document, or None when nothing matched.
        """

    @abstractmethod
    async def delete(self, product_type: str, transaction_id: str) -> bool:
        ...

    @abstractmethod
    async def find(self, query: StoreQuery) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def count(self, query: StoreQuery) -> int:
        ...
