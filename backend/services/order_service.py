"""
Order Service

Orders against the product catalog. Prices, names and totals are taken
from the catalog at order time; stock is reserved per item and released
again if the order cannot be completed or is cancelled.
"""
import logging
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from config import MAX_PAGE_SIZE
from utils.errors import ValidationFailedError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

FINAL_STATUSES = {"cancelled", "delivered"}
CANCELLABLE_STATUSES = {"pending", "confirmed", "processing"}
_ORDER_SUFFIX_CHARS = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """ORD-<epoch ms>-<9 upper alphanumerics>"""
    suffix = "".join(secrets.choice(_ORDER_SUFFIX_CHARS) for _ in range(9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


class OrderService:

    def __init__(self, db, catalog_service):
        self.db = db
        self.catalog_service = catalog_service

    async def create_order(
        self,
        user_id: str,
        items: List[Dict[str, Any]],
        payment_method: str,
        shipping_address: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None
    ) -> Dict[str, Any]:
        if not items:
            raise ValidationFailedError("Order must contain at least one item")

        reserved = []
        order_items = []
        currency = None
        try:
            for item in items:
                quantity = item["quantity"]
                if quantity < 1:
                    raise ValidationFailedError("Quantity must be at least 1")
                product = await self.catalog_service.reserve_stock(item["product_id"], quantity)
                reserved.append((item["product_id"], quantity))

                if currency is None:
                    currency = product.get("currency", "USD")
                elif product.get("currency", "USD") != currency:
                    raise ValidationFailedError("All items in an order must share a currency")

                order_items.append({
                    "product_id": product["id"],
                    "product_name": product["name"],
                    "quantity": quantity,
                    "price": product["price"],
                    "total_price": round(product["price"] * quantity, 2),
                })

            now = datetime.now(timezone.utc).isoformat()
            order = {
                "id": str(uuid.uuid4()),
                "order_number": generate_order_number(),
                "user_id": user_id,
                "items": order_items,
                "total_amount": round(sum(i["total_price"] for i in order_items), 2),
                "currency": currency,
                "status": "pending",
                "payment_status": "pending",
                "payment_method": payment_method,
                "shipping_address": shipping_address,
                "tracking_number": None,
                "notes": notes,
                "completed_at": None,
                "created_at": now,
                "updated_at": now,
            }
            await self.db.orders.insert_one(order)
        except Exception:
            # Reserved stock goes back whenever the order is not persisted
            for product_id, quantity in reserved:
                await self.catalog_service.release_stock(product_id, quantity)
            raise
        order.pop("_id", None)

        logger.info(f"Order {order['order_number']} created for user {user_id}: {order['total_amount']} {currency}")
        return order

    async def _get(self, order_id: str) -> Dict[str, Any]:
        order = await self.db.orders.find_one({"id": order_id}, {"_id": 0})
        if not order:
            raise NotFoundError("Order not found")
        return order

    async def get_order(self, order_id: str, actor: Dict[str, Any]) -> Dict[str, Any]:
        order = await self._get(order_id)
        if order["user_id"] != actor["id"] and not actor.get("is_admin"):
            raise NotFoundError("Order not found")
        return order

    async def get_user_orders(self, user_id: str, skip: int = 0, limit: int = 20) -> Dict[str, Any]:
        skip = max(0, skip)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        query = {"user_id": user_id}
        items = await self.db.orders.find(
            query, {"_id": 0}
        ).sort("created_at", -1).skip(skip).limit(limit).to_list(limit)
        total = await self.db.orders.count_documents(query)
        return {"items": items, "total": total, "skip": skip, "limit": limit}

    async def _set(self, order_id: str, query_extra: Dict[str, Any], updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        updates["updated_at"] = datetime.now(timezone.utc).isoformat()
        return await self.db.orders.find_one_and_update(
            {"id": order_id, **query_extra},
            {"$set": updates},
            projection={"_id": 0},
            return_document=True
        )

    async def update_order_status(self, order_id: str, status: str) -> Dict[str, Any]:
        order = await self._get(order_id)
        if order["status"] in FINAL_STATUSES:
            raise ValidationFailedError(f"Order is already {order['status']}")
        if status == "cancelled":
            return await self._cancel(order)

        updates = {"status": status}
        if status == "delivered":
            updates["completed_at"] = datetime.now(timezone.utc).isoformat()
        updated = await self._set(order_id, {"status": order["status"]}, updates)
        if not updated:
            raise ValidationFailedError("Order was modified concurrently, retry")
        logger.info(f"Order {order['order_number']} -> {status}")
        return updated

    async def update_payment_status(self, order_id: str, payment_status: str) -> Dict[str, Any]:
        await self._get(order_id)
        return await self._set(order_id, {}, {"payment_status": payment_status})

    async def add_shipping_info(
        self,
        order_id: str,
        shipping_address: Dict[str, Any],
        tracking_number: str
    ) -> Dict[str, Any]:
        order = await self._get(order_id)
        if order["status"] in FINAL_STATUSES:
            raise ValidationFailedError(f"Cannot ship a {order['status']} order")
        updated = await self._set(
            order_id,
            {"status": {"$nin": list(FINAL_STATUSES)}},
            {"shipping_address": shipping_address, "tracking_number": tracking_number, "status": "shipped"}
        )
        if not updated:
            raise ValidationFailedError("Order was modified concurrently, retry")
        return updated

    async def cancel_order(self, order_id: str, actor: Dict[str, Any]) -> Dict[str, Any]:
        order = await self._get(order_id)
        if order["user_id"] != actor["id"] and not actor.get("is_admin"):
            raise PermissionDeniedError("Not your order")
        return await self._cancel(order)

    async def _cancel(self, order: Dict[str, Any]) -> Dict[str, Any]:
        if order["status"] not in CANCELLABLE_STATUSES:
            raise ValidationFailedError(f"Cannot cancel a {order['status']} order")
        updated = await self._set(
            order["id"],
            {"status": {"$in": list(CANCELLABLE_STATUSES)}},
            {"status": "cancelled"}
        )
        if not updated:
            raise ValidationFailedError("Order can no longer be cancelled")

        for item in order["items"]:
            await self.catalog_service.release_stock(item["product_id"], item["quantity"])

        logger.info(f"Order {order['order_number']} cancelled")
        return updated
