"""
Product catalog routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import ProductCreate, ProductUpdate, StockUpdate
from services.product_catalog_service import ProductCatalogService
from utils.auth import get_admin_user

catalog_router = APIRouter(prefix="/catalog", tags=["Catalog"])


@catalog_router.get("")
async def search_products(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100)
):
    return await ProductCatalogService(db).search_products(q, category, skip, limit)


@catalog_router.get("/categories")
async def list_categories():
    return {"categories": await ProductCatalogService(db).list_categories()}


@catalog_router.get("/category/{category}")
async def get_by_category(category: str, skip: int = Query(0, ge=0), limit: int = Query(20, ge=1, le=100)):
    return await ProductCatalogService(db).get_products_by_category(category, skip, limit)


@catalog_router.get("/{product_id}")
async def get_product(product_id: str):
    return await ProductCatalogService(db).get_product(product_id)


@catalog_router.post("", status_code=201)
async def create_product(data: ProductCreate, admin: dict = Depends(get_admin_user)):
    payload = data.model_dump()
    payload["seller_id"] = payload.get("seller_id") or admin["id"]
    return await ProductCatalogService(db).create_product(payload)


@catalog_router.put("/{product_id}")
async def update_product(product_id: str, data: ProductUpdate, admin: dict = Depends(get_admin_user)):
    return await ProductCatalogService(db).update_product(product_id, data.model_dump())


@catalog_router.delete("/{product_id}")
async def delete_product(product_id: str, admin: dict = Depends(get_admin_user)):
    await ProductCatalogService(db).delete_product(product_id)
    return {"message": "Product deleted"}


@catalog_router.put("/{product_id}/stock")
async def update_stock(product_id: str, data: StockUpdate, admin: dict = Depends(get_admin_user)):
    return await ProductCatalogService(db).update_stock(product_id, data.quantity)
