import copy
from typing import Any, Dict, List, Optional

from factory_ledger.models.base import new_id
from factory_ledger.models.transaction import LifecycleStatus
from factory_ledger.repositories.base import StoreQuery, TransactionStore
from factory_ledger.schemas.transaction import SortOrder


class InMemoryTransactionStore(TransactionStore):
    """Process-local store used for development and tests."""

    def __init__(self):
        self._docs: Dict[str, Dict[str, Any]] = {}

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(doc)
        doc["_id"] = doc.get("_id") or new_id()
        self._docs[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def get(self, product_type: str, transaction_id: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(transaction_id)
        if doc is None or doc["product_type"] != product_type:
            return None
        return copy.deepcopy(doc)

    async def update(
        self,
        product_type: str,
        transaction_id: str,
        expected_version: int,
        changes: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(transaction_id)
        if doc is None or doc["product_type"] != product_type:
            return None
        if doc.get("version", 1) != expected_version:
            return None
        doc.update(copy.deepcopy(changes))
        doc["version"] = expected_version + 1
        return copy.deepcopy(doc)

    async def delete(self, product_type: str, transaction_id: str) -> bool:
        doc = self._docs.get(transaction_id)
        if doc is None or doc["product_type"] != product_type:
            return False
        del self._docs[transaction_id]
        return True

    async def find(self, query: StoreQuery) -> List[Dict[str, Any]]:
        matches = [doc for doc in self._docs.values() if self._matches(doc, query)]
        reverse = query.sort_order == SortOrder.DESC
        key = query.sort_by.attribute
        matches.sort(key=lambda doc: (self._sort_value(doc[key]), doc["_id"]), reverse=reverse)

        end = None if query.limit is None else query.skip + query.limit
        return [copy.deepcopy(doc) for doc in matches[query.skip:end]]

    async def count(self, query: StoreQuery) -> int:
        return sum(1 for doc in self._docs.values() if self._matches(doc, query))

    # ===== PRIVATE HELPERS =====

    @staticmethod
    def _sort_value(value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @staticmethod
    def _matches(doc: Dict[str, Any], query: StoreQuery) -> bool:
        if doc["product_type"] != query.product_type:
            return False
        if query.kind is not None and doc["kind"] != query.kind.value:
            return False
        if query.client_name:
            name = doc["client_name"].lower()
            wanted = query.client_name.lower()
            if query.exact_client and name != wanted:
                return False
            if not query.exact_client and wanted not in name:
                return False
        if query.lifecycle_status is not None and doc["lifecycle_status"] != query.lifecycle_status.value:
            return False
        if query.exclude_cancelled and doc["lifecycle_status"] == LifecycleStatus.CANCELLED.value:
            return False
        if query.created_from is not None and doc["created_at"] < query.created_from:
            return False
        if query.created_to is not None and doc["created_at"] >= query.created_to:
            return False
        return True
