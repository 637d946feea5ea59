"""
Product catalog adapters.

The ledger only needs resolve() and list_all(); catalog administration lives
elsewhere. Two implementations: a static list from configuration, and a
read-only view over the admin-managed ``product_catalog`` collection.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from factory_ledger.core.errors import CatalogViolation
from factory_ledger.models.product import ProductType
from factory_ledger.models.transaction import TransactionKind

logger = logging.getLogger(__name__)

# Literal path segments under /products that a product key would collide with
RESERVED_PRODUCT_KEYS = frozenset({"types", "stats", "clients"})

DEFAULT_PRODUCT_TYPES = [
    ProductType(key="white-oil", display_name="White Oil"),
    ProductType(key="yellow-oil", display_name="Yellow Oil"),
    ProductType(key="crude-oil", display_name="Crude Oil"),
    ProductType(key="diesel", display_name="Diesel"),
    ProductType(key="petrol", display_name="Petrol"),
    ProductType(key="kerosene", display_name="Kerosene"),
    ProductType(key="lpg", display_name="LPG"),
    ProductType(key="natural-gas", display_name="Natural Gas"),
]


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")


class ProductCatalog(ABC):

    @abstractmethod
    async def resolve(self, key: str) -> ProductType:
        """Return the product type or raise CatalogViolation."""

    @abstractmethod
    async def list_all(self) -> List[ProductType]:
        ...


class StaticProductCatalog(ProductCatalog):

    def __init__(self, products: Iterable[ProductType] = DEFAULT_PRODUCT_TYPES):
        self._products = {}
        for product in products:
            if product.key in RESERVED_PRODUCT_KEYS:
                raise ValueError(f"Product key '{product.key}' is reserved")
            self._products[product.key] = product

    async def resolve(self, key: str) -> ProductType:
        product = self._products.get(key)
        if product is None:
            raise CatalogViolation(f"Unknown product type '{key}'")
        return product

    async def list_all(self) -> List[ProductType]:
        return list(self._products.values())


class MongoProductCatalog(ProductCatalog):
    """Read-only view of catalog documents written by the admin screens."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["product_catalog"]

    async def resolve(self, key: str) -> ProductType:
        for product in await self.list_all():
            if product.key == key:
                return product
        raise CatalogViolation(f"Unknown product type '{key}'")

    async def list_all(self) -> List[ProductType]:
        cursor = self.collection.find({"is_deleted": {"$ne": True}}).sort("name", 1)
        docs = await cursor.to_list(None)
        products = []
        for doc in docs:
            product = self._to_product(doc)
            if product.key in RESERVED_PRODUCT_KEYS:
                logger.warning(
                    "Skipping catalog entry with reserved key",
                    extra={"product_type": product.key}
                )
                continue
            products.append(product)
        return products

    @staticmethod
    def _to_product(doc: Dict[str, Any]) -> ProductType:
        allowed = doc.get("allowedTransactions") or [kind.value for kind in TransactionKind]
        return ProductType(
            key=doc.get("value") or slugify(doc["name"]),
            display_name=doc["name"],
            unit=doc.get("unit") or "kg",
            allowed_kinds=[TransactionKind(kind) for kind in allowed],
            net_weight_mode=bool(doc.get("enableNugCalculation", False)),
            price_per_unit=doc.get("pricePerUnit"),
        )
