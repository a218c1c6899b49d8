"""
Marketplace Service

User-to-user listings. Listings expire LISTING_TTL_DAYS after creation;
expire_old_listings() is run hourly by the scheduler.
"""
import logging
import re
import uuid
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, Optional

from config import LISTING_TTL_DAYS, MAX_PAGE_SIZE
from utils.errors import ValidationFailedError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

# seller_id, sales, rating and expires_at are owned by the service
UPDATABLE_FIELDS = {
    "title", "description", "category", "condition", "price", "currency",
    "quantity", "images", "tags", "location", "ships_to", "shipping_cost",
    "accepts_offers", "status",
}


class MarketplaceService:

    def __init__(self, db):
        self.db = db

    async def create_listing(self, seller_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        listing = {
            "id": str(uuid.uuid4()),
            "seller_id": seller_id,
            "title": data["title"],
            "description": data.get("description", ""),
            "category": data["category"],
            "condition": data.get("condition", "new"),
            "price": data["price"],
            "currency": data.get("currency", "USD"),
            "quantity": data.get("quantity", 1),
            "images": data.get("images", []),
            "status": "active",
            "rating": 0.0,
            "sales": 0,
            "tags": data.get("tags", []),
            "location": data.get("location"),
            "ships_to": data.get("ships_to", []),
            "shipping_cost": data.get("shipping_cost", 0),
            "accepts_offers": data.get("accepts_offers", False),
            "expires_at": (now + timedelta(days=LISTING_TTL_DAYS)).isoformat(),
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }
        await self.db.marketplace_listings.insert_one(listing)
        listing.pop("_id", None)

        logger.info(f"Listing {listing['id']} created by seller {seller_id}")
        return listing

    async def get_listing(self, listing_id: str) -> Dict[str, Any]:
        listing = await self.db.marketplace_listings.find_one({"id": listing_id}, {"_id": 0})
        if not listing:
            raise NotFoundError("Listing not found")
        return listing

    async def _page(self, query: Dict[str, Any], skip: int, limit: int) -> Dict[str, Any]:
        skip = max(0, skip)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        items = await self.db.marketplace_listings.find(
            query, {"_id": 0}
        ).sort("created_at", -1).skip(skip).limit(limit).to_list(limit)
        total = await self.db.marketplace_listings.count_documents(query)
        return {"items": items, "total": total, "skip": skip, "limit": limit}

    async def search_listings(
        self,
        q: Optional[str] = None,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"status": "active"}
        if category:
            query["category"] = category
        if q:
            pattern = re.escape(q)
            query["$or"] = [
                {"title": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
                {"tags": {"$regex": pattern, "$options": "i"}},
            ]
        return await self._page(query, skip, limit)

    async def get_seller_listings(self, seller_id: str, skip: int = 0, limit: int = 20) -> Dict[str, Any]:
        return await self._page({"seller_id": seller_id}, skip, limit)

    async def _get_owned(self, listing_id: str, actor: Dict[str, Any]) -> Dict[str, Any]:
        listing = await self.get_listing(listing_id)
        if listing["seller_id"] != actor["id"] and not actor.get("is_admin"):
            raise PermissionDeniedError("Only the seller can modify this listing")
        return listing

    async def update_listing(self, listing_id: str, data: Dict[str, Any], actor: Dict[str, Any]) -> Dict[str, Any]:
        await self._get_owned(listing_id, actor)
        updates = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}
        if not updates:
            raise ValidationFailedError("No valid fields to update")
        updates["updated_at"] = datetime.now(timezone.utc).isoformat()

        return await self.db.marketplace_listings.find_one_and_update(
            {"id": listing_id},
            {"$set": updates},
            projection={"_id": 0},
            return_document=True
        )

    async def delete_listing(self, listing_id: str, actor: Dict[str, Any]) -> None:
        await self._get_owned(listing_id, actor)
        await self.db.marketplace_listings.delete_one({"id": listing_id})
        logger.info(f"Listing {listing_id} deleted by {actor['id']}")

    async def mark_as_sold(self, listing_id: str, actor: Dict[str, Any]) -> Dict[str, Any]:
        await self._get_owned(listing_id, actor)
        return await self.db.marketplace_listings.find_one_and_update(
            {"id": listing_id},
            {"$set": {"status": "sold", "updated_at": datetime.now(timezone.utc).isoformat()}},
            projection={"_id": 0},
            return_document=True
        )

    async def increment_sales(self, listing_id: str) -> Dict[str, Any]:
        listing = await self.db.marketplace_listings.find_one_and_update(
            {"id": listing_id},
            {
                "$inc": {"sales": 1},
                "$set": {"updated_at": datetime.now(timezone.utc).isoformat()}
            },
            projection={"_id": 0},
            return_document=True
        )
        if not listing:
            raise NotFoundError("Listing not found")
        return listing

    async def expire_old_listings(self) -> int:
        now = datetime.now(timezone.utc).isoformat()
        result = await self.db.marketplace_listings.update_many(
            {"status": "active", "expires_at": {"$lt": now}},
            {"$set": {"status": "expired", "updated_at": now}}
        )
        if result.modified_count:
            logger.info(f"Expired {result.modified_count} marketplace listings")
        return result.modified_count
