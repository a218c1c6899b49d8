"""
Marketplace routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import ListingCreate, ListingUpdate
from services.marketplace_service import MarketplaceService
from utils.auth import get_current_user, get_admin_user

marketplace_router = APIRouter(prefix="/marketplace", tags=["Marketplace"])


@marketplace_router.get("")
async def search_listings(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100)
):
    return await MarketplaceService(db).search_listings(q, category, skip, limit)


@marketplace_router.get("/seller/{seller_id}")
async def get_seller_listings(seller_id: str, skip: int = Query(0, ge=0), limit: int = Query(20, ge=1, le=100)):
    return await MarketplaceService(db).get_seller_listings(seller_id, skip, limit)


@marketplace_router.post("/expire-old")
async def expire_old_listings(admin: dict = Depends(get_admin_user)):
    expired = await MarketplaceService(db).expire_old_listings()
    return {"expired": expired}


@marketplace_router.get("/{listing_id}")
async def get_listing(listing_id: str):
    return await MarketplaceService(db).get_listing(listing_id)


@marketplace_router.post("", status_code=201)
async def create_listing(data: ListingCreate, user: dict = Depends(get_current_user)):
    return await MarketplaceService(db).create_listing(user["id"], data.model_dump())


@marketplace_router.put("/{listing_id}")
async def update_listing(listing_id: str, data: ListingUpdate, user: dict = Depends(get_current_user)):
    return await MarketplaceService(db).update_listing(listing_id, data.model_dump(), user)


@marketplace_router.delete("/{listing_id}")
async def delete_listing(listing_id: str, user: dict = Depends(get_current_user)):
    await MarketplaceService(db).delete_listing(listing_id, user)
    return {"message": "Listing deleted"}


@marketplace_router.put("/{listing_id}/sold")
async def mark_sold(listing_id: str, user: dict = Depends(get_current_user)):
    return await MarketplaceService(db).mark_as_sold(listing_id, user)


@marketplace_router.put("/{listing_id}/increment-sales")
async def increment_sales(listing_id: str, user: dict = Depends(get_current_user)):
    return await MarketplaceService(db).increment_sales(listing_id)
