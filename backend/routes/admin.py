"""
Admin Routes - Administrative endpoints for managing users and reviewing transactions
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import AdminUserUpdate
from services.crypto_service import CryptoService
from services.user_wallet_service import UserWalletService
from services.blockchain_service import BlockchainService
from services.admin_service import AdminService
from utils.auth import get_admin_user

admin_router = APIRouter(prefix="/admin", tags=["Admin"])


def _service() -> AdminService:
    return AdminService(db, BlockchainService(db, CryptoService(db), UserWalletService(db)))


@admin_router.get("/stats")
async def get_stats(admin: dict = Depends(get_admin_user)):
    return await _service().get_stats()


@admin_router.get("/users")
async def get_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    admin: dict = Depends(get_admin_user)
):
    """Get paginated list of users"""
    result = await _service().get_all_users((page - 1) * limit, limit, search)
    total = result["total"]
    return {
        "users": result["items"],
        "total": total,
        "page": page,
        "pages": (total + limit - 1) // limit
    }


@admin_router.get("/users/{user_id}")
async def get_user(user_id: str, admin: dict = Depends(get_admin_user)):
    return await _service().get_user(user_id)


@admin_router.patch("/users/{user_id}/make-admin")
async def make_admin(user_id: str, admin: dict = Depends(get_admin_user)):
    return await _service().make_user_admin(user_id, admin)


@admin_router.patch("/users/{user_id}")
async def update_user(user_id: str, data: AdminUserUpdate, admin: dict = Depends(get_admin_user)):
    return await _service().update_user_details(user_id, data.model_dump(), admin)


@admin_router.delete("/users/{user_id}")
async def delete_user(user_id: str, admin: dict = Depends(get_admin_user)):
    return await _service().delete_user(user_id, admin)


@admin_router.get("/transactions")
async def get_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: Optional[str] = Query(None),
    admin: dict = Depends(get_admin_user)
):
    result = await _service().get_all_transactions((page - 1) * limit, limit, status)
    total = result["total"]
    return {
        "transactions": result["items"],
        "total": total,
        "page": page,
        "pages": (total + limit - 1) // limit
    }
