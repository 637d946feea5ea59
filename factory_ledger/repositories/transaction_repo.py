"""
TransactionRepository - MongoDB storage for transaction records.

All product types share one collection; every query is scoped by
product_type. Ids cross the boundary as hex strings.
"""

import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.collation import Collation

from factory_ledger.models.transaction import LifecycleStatus
from factory_ledger.repositories.base import StoreQuery, TransactionStore
from factory_ledger.schemas.transaction import SortOrder

# Case-insensitive ordering for client names
_COLLATION = Collation(locale="en", strength=2)


class TransactionRepository(TransactionStore):
    """Transaction database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["transactions"]

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        given_id = doc.get("_id")
        doc["_id"] = ObjectId(given_id) if given_id and ObjectId.is_valid(given_id) else ObjectId()
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def get(self, product_type: str, transaction_id: str) -> Optional[Dict[str, Any]]:
        if not ObjectId.is_valid(transaction_id):
            return None
        doc = await self.collection.find_one({
            "_id": ObjectId(transaction_id),
            "product_type": product_type
        })
        return self._out(doc)

    async def update(
        self,
        product_type: str,
        transaction_id: str,
        expected_version: int,
        changes: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        if not ObjectId.is_valid(transaction_id):
            return None
        changes = {k: v for k, v in changes.items() if k not in ("_id", "version")}
        result = await self.collection.find_one_and_update(
            {
                "_id": ObjectId(transaction_id),
                "product_type": product_type,
                "version": expected_version  # Optimistic lock
            },
            {
                "$set": changes,
                "$inc": {"version": 1}
            },
            return_document=ReturnDocument.AFTER
        )
        return self._out(result)

    async def delete(self, product_type: str, transaction_id: str) -> bool:
        if not ObjectId.is_valid(transaction_id):
            return False
        result = await self.collection.delete_one({
            "_id": ObjectId(transaction_id),
            "product_type": product_type
        })
        return result.deleted_count > 0

    async def find(self, query: StoreQuery) -> List[Dict[str, Any]]:
        direction = DESCENDING if query.sort_order == SortOrder.DESC else ASCENDING
        cursor = self.collection.find(
            self._build_filter(query),
            collation=_COLLATION
        ).sort([(query.sort_by.attribute, direction), ("_id", direction)])

        if query.skip:
            cursor = cursor.skip(query.skip)
        if query.limit is not None:
            cursor = cursor.limit(query.limit)

        docs = await cursor.to_list(None)
        return [self._out(doc) for doc in docs]

    async def count(self, query: StoreQuery) -> int:
        return await self.collection.count_documents(self._build_filter(query))

    async def create_indexes(self) -> None:
        await self.collection.create_index([("product_type", ASCENDING), ("created_at", DESCENDING)])
        await self.collection.create_index([("product_type", ASCENDING), ("client_name", ASCENDING)])
        await self.collection.create_index([("product_type", ASCENDING), ("kind", ASCENDING)])

    # ===== PRIVATE HELPERS =====

    @staticmethod
    def _out(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if doc is None:
            return None
        doc["_id"] = str(doc["_id"])
        return doc

    @staticmethod
    def _build_filter(query: StoreQuery) -> Dict[str, Any]:
        mongo_filter: Dict[str, Any] = {"product_type": query.product_type}

        if query.kind is not None:
            mongo_filter["kind"] = query.kind.value

        if query.client_name:
            escaped = re.escape(query.client_name)
            pattern = f"^{escaped}$" if query.exact_client else escaped
            mongo_filter["client_name"] = {"$regex": pattern, "$options": "i"}

        lifecycle: Dict[str, Any] = {}
        if query.lifecycle_status is not None:
            lifecycle["$eq"] = query.lifecycle_status.value
        if query.exclude_cancelled:
            lifecycle["$ne"] = LifecycleStatus.CANCELLED.value
        if lifecycle:
            mongo_filter["lifecycle_status"] = lifecycle

        created: Dict[str, Any] = {}
        if query.created_from is not None:
            created["$gte"] = query.created_from
        if query.created_to is not None:
            created["$lt"] = query.created_to
        if created:
            mongo_filter["created_at"] = created

        return mongo_filter
