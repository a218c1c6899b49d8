"""
Blockchain routes

Prices, charts, simulated trades and transaction lookups.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import TradeRequest
from services.crypto_service import CryptoService
from services.user_wallet_service import UserWalletService
from services.blockchain_service import BlockchainService
from utils.auth import get_current_user
from utils.errors import NotFoundError

blockchain_router = APIRouter(prefix="/blockchain", tags=["Blockchain"])


def _service() -> BlockchainService:
    return BlockchainService(db, CryptoService(db), UserWalletService(db))


@blockchain_router.get("/prices")
async def get_prices():
    return await CryptoService(db).get_all_prices()


@blockchain_router.get("/chart/{currency}")
async def get_chart(currency: str, days: int = Query(7, ge=1, le=365)):
    points = await CryptoService(db).get_chart_data(currency, days)
    return {"currency": currency.upper(), "days": days, "prices": points}


@blockchain_router.post("/trade")
async def execute_trade(trade: TradeRequest, user: dict = Depends(get_current_user)):
    return await _service().execute_trade(
        user["id"],
        trade.from_currency,
        trade.to_currency,
        trade.amount,
        trade.from_address,
        trade.to_address,
    )


@blockchain_router.get("/transactions")
async def get_transactions(
    limit: int = Query(50, ge=1, le=200),
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    user: dict = Depends(get_current_user)
):
    transactions = await _service().get_user_transactions(user["id"], limit, status, type)
    return {"transactions": transactions, "count": len(transactions)}


async def _get_visible_transaction(service: BlockchainService, transaction_hash: str, user: dict) -> dict:
    """Owner or admin only; anyone else gets the same 404 as a missing hash"""
    tx = await service.get_transaction_by_hash(transaction_hash)
    if tx["user_id"] != user["id"] and not user.get("is_admin"):
        raise NotFoundError("Transaction not found")
    return tx


@blockchain_router.get("/transaction/{transaction_hash}")
async def get_transaction(transaction_hash: str, user: dict = Depends(get_current_user)):
    return await _get_visible_transaction(_service(), transaction_hash, user)


@blockchain_router.post("/verify/{transaction_hash}")
async def verify_transaction(transaction_hash: str, user: dict = Depends(get_current_user)):
    service = _service()
    await _get_visible_transaction(service, transaction_hash, user)
    tx = await service.verify_transaction(transaction_hash)
    return {"verified": tx["verified"], "status": tx["status"], "confirmations": tx["confirmations"]}


@blockchain_router.get("/stats")
async def get_stats(user: dict = Depends(get_current_user)):
    return await _service().get_trading_stats(user["id"])


@blockchain_router.get("/recent")
async def get_recent(limit: int = Query(10, ge=1, le=50)):
    return await _service().get_recent_transactions(limit)
