"""
Order routes
"""
from fastapi import APIRouter, Depends, Query

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import OrderCreate, OrderStatusUpdate, PaymentStatusUpdate, ShippingUpdate
from services.product_catalog_service import ProductCatalogService
from services.order_service import OrderService
from utils.auth import get_current_user, get_admin_user

orders_router = APIRouter(prefix="/orders", tags=["Orders"])


def _service() -> OrderService:
    return OrderService(db, ProductCatalogService(db))


@orders_router.post("", status_code=201)
async def create_order(data: OrderCreate, user: dict = Depends(get_current_user)):
    return await _service().create_order(
        user["id"],
        [item.model_dump() for item in data.items],
        data.payment_method,
        data.shipping_address.model_dump() if data.shipping_address else None,
        data.notes,
    )


@orders_router.get("/mine")
async def get_my_orders(skip: int = Query(0, ge=0), limit: int = Query(20, ge=1, le=100), user: dict = Depends(get_current_user)):
    return await _service().get_user_orders(user["id"], skip, limit)


@orders_router.get("/user/{user_id}")
async def get_user_orders(user_id: str, skip: int = Query(0, ge=0), limit: int = Query(20, ge=1, le=100), admin: dict = Depends(get_admin_user)):
    return await _service().get_user_orders(user_id, skip, limit)


@orders_router.get("/{order_id}")
async def get_order(order_id: str, user: dict = Depends(get_current_user)):
    return await _service().get_order(order_id, user)


@orders_router.delete("/{order_id}")
async def cancel_order(order_id: str, user: dict = Depends(get_current_user)):
    return await _service().cancel_order(order_id, user)


@orders_router.put("/{order_id}/status")
async def update_status(order_id: str, data: OrderStatusUpdate, admin: dict = Depends(get_admin_user)):
    return await _service().update_order_status(order_id, data.status)


@orders_router.put("/{order_id}/payment-status")
async def update_payment_status(order_id: str, data: PaymentStatusUpdate, admin: dict = Depends(get_admin_user)):
    return await _service().update_payment_status(order_id, data.payment_status)


@orders_router.put("/{order_id}/shipping")
async def add_shipping(order_id: str, data: ShippingUpdate, admin: dict = Depends(get_admin_user)):
    return await _service().add_shipping_info(order_id, data.shipping_address.model_dump(), data.tracking_number)
