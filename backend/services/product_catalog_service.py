"""
Product Catalog Service
"""
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from pymongo.errors import DuplicateKeyError

from config import MAX_PAGE_SIZE
from utils.errors import ValidationFailedError, NotFoundError, ConflictError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "name", "description", "price", "currency", "category",
    "images", "specifications", "is_active", "rating",
}


def _page(skip: int, limit: int):
    return max(0, skip), max(1, min(limit, MAX_PAGE_SIZE))


class ProductCatalogService:

    def __init__(self, db):
        self.db = db

    async def create_product(self, data: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat()
        product = {
            "id": str(uuid.uuid4()),
            "name": data["name"],
            "description": data.get("description", ""),
            "sku": data["sku"],
            "price": data["price"],
            "currency": data.get("currency", "USD"),
            "category": data["category"],
            "stock": data.get("stock", 0),
            "images": data.get("images", []),
            "specifications": data.get("specifications", {}),
            "seller_id": data.get("seller_id"),
            "is_active": data.get("is_active", True),
            "rating": 0.0,
            "reviews": [],
            "created_at": now,
            "updated_at": now,
        }
        if await self.db.products.find_one({"sku": product["sku"]}, {"_id": 0, "id": 1}):
            raise ConflictError(f"SKU {product['sku']} already exists")
        try:
            await self.db.products.insert_one(product)
        except DuplicateKeyError:
            raise ConflictError(f"SKU {product['sku']} already exists")
        product.pop("_id", None)

        logger.info(f"Product {product['sku']} created")
        return product

    async def get_product(self, product_id: str) -> Dict[str, Any]:
        product = await self.db.products.find_one({"id": product_id}, {"_id": 0})
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def search_products(
        self,
        q: Optional[str] = None,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Dict[str, Any]:
        skip, limit = _page(skip, limit)
        query: Dict[str, Any] = {"is_active": True}
        if category:
            query["category"] = category
        if q:
            pattern = re.escape(q)
            query["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
            ]

        items = await self.db.products.find(
            query, {"_id": 0}
        ).sort("created_at", -1).skip(skip).limit(limit).to_list(limit)
        total = await self.db.products.count_documents(query)
        return {"items": items, "total": total, "skip": skip, "limit": limit}

    async def get_products_by_category(self, category: str, skip: int = 0, limit: int = 20) -> Dict[str, Any]:
        return await self.search_products(category=category, skip=skip, limit=limit)

    async def list_categories(self) -> List[str]:
        categories = await self.db.products.distinct("category", {"is_active": True})
        return sorted(categories)

    async def update_product(self, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        updates = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}
        if not updates:
            raise ValidationFailedError("No valid fields to update")
        updates["updated_at"] = datetime.now(timezone.utc).isoformat()

        product = await self.db.products.find_one_and_update(
            {"id": product_id},
            {"$set": updates},
            projection={"_id": 0},
            return_document=True
        )
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def delete_product(self, product_id: str) -> None:
        result = await self.db.products.delete_one({"id": product_id})
        if result.deleted_count == 0:
            raise NotFoundError("Product not found")
        logger.info(f"Product {product_id} deleted")

    async def update_stock(self, product_id: str, quantity: int) -> Dict[str, Any]:
        if quantity < 0:
            raise ValidationFailedError("Stock cannot be negative")
        product = await self.db.products.find_one_and_update(
            {"id": product_id},
            {"$set": {"stock": quantity, "updated_at": datetime.now(timezone.utc).isoformat()}},
            projection={"_id": 0},
            return_document=True
        )
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def reserve_stock(self, product_id: str, quantity: int) -> Dict[str, Any]:
        """Take quantity out of stock, only if enough is left."""
        product = await self.db.products.find_one_and_update(
            {"id": product_id, "is_active": True, "stock": {"$gte": quantity}},
            {
                "$inc": {"stock": -quantity},
                "$set": {"updated_at": datetime.now(timezone.utc).isoformat()}
            },
            projection={"_id": 0},
            return_document=True
        )
        if product:
            return product

        existing = await self.db.products.find_one({"id": product_id}, {"_id": 0, "name": 1, "is_active": 1})
        if not existing or not existing.get("is_active"):
            raise ValidationFailedError(f"Product {product_id} is not available")
        raise ValidationFailedError(f"Insufficient stock for {existing['name']}")

    async def release_stock(self, product_id: str, quantity: int) -> None:
        await self.db.products.update_one(
            {"id": product_id},
            {
                "$inc": {"stock": quantity},
                "$set": {"updated_at": datetime.now(timezone.utc).isoformat()}
            }
        )
