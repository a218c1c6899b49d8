"""
Deposit confirmation routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import DepositCreate, ConfirmationUpdate, DepositFailure
from services.user_wallet_service import UserWalletService
from services.deposit_confirmation_service import DepositConfirmationService
from utils.auth import get_current_user, get_admin_user

deposits_router = APIRouter(prefix="/deposits", tags=["Deposits"])


def _service() -> DepositConfirmationService:
    return DepositConfirmationService(db, UserWalletService(db))


@deposits_router.post("/create", status_code=201)
async def create_deposit(data: DepositCreate, user: dict = Depends(get_current_user)):
    return await _service().create_deposit_confirmation(
        user["id"],
        data.deposit_amount,
        data.currency,
        data.to_address,
        data.transaction_hash,
        data.from_address,
        data.notes,
    )


@deposits_router.get("/mine")
async def get_my_deposits(status: Optional[str] = Query(None), user: dict = Depends(get_current_user)):
    deposits = await _service().get_user_deposit_status(user["id"], status)
    return {"deposits": deposits}


@deposits_router.put("/cancel/{deposit_id}")
async def cancel_deposit(deposit_id: str, user: dict = Depends(get_current_user)):
    return await _service().cancel_deposit(deposit_id, user["id"])


@deposits_router.put("/confirm/{deposit_id}")
async def update_confirmations(deposit_id: str, data: ConfirmationUpdate, admin: dict = Depends(get_admin_user)):
    return await _service().update_confirmation_count(deposit_id, data.confirmations)


@deposits_router.put("/failed/{deposit_id}")
async def mark_failed(deposit_id: str, data: DepositFailure, admin: dict = Depends(get_admin_user)):
    return await _service().mark_deposit_failed(deposit_id, data.reason)


@deposits_router.get("/pending")
async def get_pending(admin: dict = Depends(get_admin_user)):
    deposits = await _service().get_pending_deposits()
    return {"deposits": deposits, "count": len(deposits)}


@deposits_router.get("/user/{user_id}")
async def get_user_deposits(user_id: str, status: Optional[str] = Query(None), admin: dict = Depends(get_admin_user)):
    deposits = await _service().get_user_deposit_status(user_id, status)
    return {"deposits": deposits}
