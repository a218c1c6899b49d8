"""
Wallet routes

User wallets (assigned by admins) and wallet requests.
"""
from fastapi import APIRouter, Depends

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import (
    WalletAssign,
    BalanceUpdate,
    WalletRequestCreate,
    WalletRequestApprove,
    WalletRequestReject,
)
from services.user_wallet_service import UserWalletService
from services.wallet_request_service import WalletRequestService
from utils.auth import get_current_user, get_admin_user

wallets_router = APIRouter(prefix="/wallets", tags=["Wallets"])
wallet_requests_router = APIRouter(prefix="/wallet-requests", tags=["Wallet Requests"])


def _request_service() -> WalletRequestService:
    return WalletRequestService(db, UserWalletService(db))


# ==================== USER WALLETS ====================

@wallets_router.get("")
async def get_my_wallets(user: dict = Depends(get_current_user)):
    wallets = await UserWalletService(db).get_user_wallets(user["id"])
    return {"wallets": wallets}


@wallets_router.post("/assign", status_code=201)
async def assign_wallet(data: WalletAssign, admin: dict = Depends(get_admin_user)):
    return await UserWalletService(db).assign_wallet(
        data.user_id, data.wallet_address, data.wallet_type, data.public_key
    )


@wallets_router.get("/user/{user_id}")
async def get_user_wallets(user_id: str, admin: dict = Depends(get_admin_user)):
    wallets = await UserWalletService(db).get_user_wallets(user_id)
    return {"wallets": wallets}


@wallets_router.put("/balance/{user_id}/{wallet_type}")
async def update_balance(user_id: str, wallet_type: str, data: BalanceUpdate, admin: dict = Depends(get_admin_user)):
    return await UserWalletService(db).update_balance(user_id, wallet_type, data.balance)


@wallets_router.put("/deactivate/{user_id}/{wallet_type}")
async def deactivate_wallet(user_id: str, wallet_type: str, admin: dict = Depends(get_admin_user)):
    return await UserWalletService(db).deactivate_wallet(user_id, wallet_type)


@wallets_router.get("/{wallet_type}")
async def get_my_wallet(wallet_type: str, user: dict = Depends(get_current_user)):
    return await UserWalletService(db).get_wallet(user["id"], wallet_type)


# ==================== WALLET REQUESTS ====================

@wallet_requests_router.post("/request", status_code=201)
async def create_request(data: WalletRequestCreate, user: dict = Depends(get_current_user)):
    return await _request_service().create_wallet_request(
        user["id"], data.wallet_type, data.reference, data.proof_file, data.amount
    )


@wallet_requests_router.get("/mine")
async def get_my_requests(user: dict = Depends(get_current_user)):
    requests = await _request_service().get_user_wallet_requests(user["id"])
    return {"requests": requests}


@wallet_requests_router.get("/pending")
async def get_pending_requests(admin: dict = Depends(get_admin_user)):
    requests = await _request_service().get_pending_wallet_requests()
    return {"requests": requests, "count": len(requests)}


@wallet_requests_router.get("/user/{user_id}")
async def get_user_requests(user_id: str, admin: dict = Depends(get_admin_user)):
    requests = await _request_service().get_user_wallet_requests(user_id)
    return {"requests": requests}


@wallet_requests_router.post("/approve/{request_id}")
async def approve_request(request_id: str, data: WalletRequestApprove, admin: dict = Depends(get_admin_user)):
    return await _request_service().approve_wallet_request(request_id, data.wallet_address, data.approval_notes)


@wallet_requests_router.post("/reject/{request_id}")
async def reject_request(request_id: str, data: WalletRequestReject, admin: dict = Depends(get_admin_user)):
    return await _request_service().reject_wallet_request(request_id, data.rejection_reason)
