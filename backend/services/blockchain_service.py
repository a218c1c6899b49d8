"""
Blockchain Service

Simulated on-chain transactions and trades.

Nothing here talks to a real chain. Transactions are recorded as pending
with a random hash and confirmed by confirm_pending_transactions() once
they are older than CONFIRMATION_DELAY_SECONDS (run by the scheduler, and
on demand from verify_transaction()).
"""
import asyncio
import logging
import math
import secrets
import uuid
from collections import Counter
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, List, Optional

from config import (
    TRADING_FEE_RATE,
    CONFIRMED_BLOCK_CONFIRMATIONS,
    BLOCK_NUMBER_BASE,
    BLOCK_NUMBER_SPREAD,
    MAX_TRANSACTION_LIMIT,
)
from services.crypto_service import normalize_currency, simulate_transaction_hash
from utils.environment import CONFIRMATION_DELAY_SECONDS
from utils.errors import ValidationFailedError, NotFoundError

logger = logging.getLogger(__name__)


class BlockchainService:
    """Service for simulated transactions, trades and trading stats."""

    def __init__(self, db, crypto_service, wallet_service):
        self.db = db
        self.crypto_service = crypto_service
        self.wallet_service = wallet_service

    async def create_transaction(
        self,
        user_id: str,
        from_address: str,
        to_address: str,
        amount: float,
        currency: str,
        tx_type: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        if not math.isfinite(amount) or amount <= 0:
            raise ValidationFailedError("Amount must be greater than zero")
        currency = normalize_currency(currency)

        now = datetime.now(timezone.utc).isoformat()
        tx = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "transaction_hash": simulate_transaction_hash(currency, amount),
            "block_number": None,
            "from_address": from_address,
            "to_address": to_address,
            "amount": amount,
            "currency": currency,
            "type": tx_type,
            "status": "pending",
            "confirmations": 0,
            "gas_used": None,
            "gas_fee": None,
            "blockchain_network": "mainnet",
            "verified": False,
            "metadata": metadata or {},
            "created_at": now,
            "updated_at": now,
            "confirmed_at": None,
        }
        await self.db.blockchain_transactions.insert_one(tx)
        tx.pop("_id", None)
        return tx

    async def _default_address(self, user_id: str, currency: str) -> Optional[str]:
        wallet = await self.wallet_service.find_wallet(user_id, currency)
        return wallet.get("wallet_address") if wallet else None

    async def execute_trade(
        self,
        user_id: str,
        from_currency: str,
        to_currency: str,
        amount: float,
        from_address: Optional[str] = None,
        to_address: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Convert amount of from_currency into to_currency.

        received = amount * from_price / to_price, less the trading fee.
        When the user holds an active wallet in from_currency its balance is
        debited atomically before the trade is recorded; the debit is refunded
        and the transaction marked failed if recording or crediting fails.
        """
        from_currency = normalize_currency(from_currency)
        to_currency = normalize_currency(to_currency)
        if from_currency == to_currency:
            raise ValidationFailedError("Cannot trade a currency for itself")
        if not math.isfinite(amount) or amount <= 0:
            raise ValidationFailedError("Amount must be greater than zero")

        from_address = from_address or await self._default_address(user_id, from_currency)
        to_address = to_address or await self._default_address(user_id, to_currency)
        if not from_address or not to_address:
            raise ValidationFailedError(
                f"Wallet addresses required: request {from_currency} and {to_currency} wallets first"
            )

        from_price, to_price = await asyncio.gather(
            self.crypto_service.get_crypto_price(from_currency),
            self.crypto_service.get_crypto_price(to_currency),
        )
        fee = amount * TRADING_FEE_RATE
        received_amount = (amount - fee) * from_price / to_price

        from_wallet = await self.wallet_service.find_wallet(user_id, from_currency)
        if from_wallet:
            await self.wallet_service.adjust_balance(user_id, from_currency, -amount)

        metadata = {
            "trade_pair": f"{from_currency}/{to_currency}",
            "trade_price": from_price / to_price,
            "trade_type": "sell",
            "received_amount": received_amount,
            "received_currency": to_currency,
            "fee": fee,
        }
        tx = None
        try:
            tx = await self.create_transaction(
                user_id, from_address, to_address, amount, from_currency, "trade", metadata
            )
            if from_wallet and await self.wallet_service.find_wallet(user_id, to_currency):
                await self.wallet_service.adjust_balance(user_id, to_currency, received_amount)
        except Exception as e:
            logger.error(f"Trade failed for user {user_id}, rolling back: {e}")
            if from_wallet:
                await self.wallet_service.adjust_balance(user_id, from_currency, amount)
            if tx:
                await self.db.blockchain_transactions.update_one(
                    {"id": tx["id"], "status": "pending"},
                    {"$set": {"status": "failed", "updated_at": datetime.now(timezone.utc).isoformat()}}
                )
            raise

        logger.info(
            f"Trade executed for user {user_id}: {amount} {from_currency} -> "
            f"{received_amount:.8f} {to_currency} (fee {fee:.8f})"
        )
        return {
            "transaction": tx,
            "received_amount": received_amount,
            "message": f"Trade submitted: {amount} {from_currency} for {received_amount:.8f} {to_currency}",
        }

    async def get_user_transactions(
        self,
        user_id: str,
        limit: int = 50,
        status: Optional[str] = None,
        tx_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        limit = max(1, min(limit, MAX_TRANSACTION_LIMIT))
        query = {"user_id": user_id}
        if status:
            query["status"] = status
        if tx_type:
            query["type"] = tx_type
        return await self.db.blockchain_transactions.find(
            query, {"_id": 0}
        ).sort("created_at", -1).limit(limit).to_list(limit)

    async def get_transaction_by_hash(self, transaction_hash: str) -> Dict[str, Any]:
        tx = await self.db.blockchain_transactions.find_one(
            {"transaction_hash": transaction_hash}, {"_id": 0}
        )
        if not tx:
            raise NotFoundError("Transaction not found")
        return tx

    async def _confirm(self, tx_id: str) -> bool:
        """pending -> confirmed, only if still pending."""
        now = datetime.now(timezone.utc).isoformat()
        result = await self.db.blockchain_transactions.update_one(
            {"id": tx_id, "status": "pending"},
            {"$set": {
                "status": "confirmed",
                "confirmations": CONFIRMED_BLOCK_CONFIRMATIONS,
                "block_number": BLOCK_NUMBER_BASE + secrets.randbelow(BLOCK_NUMBER_SPREAD),
                "verified": True,
                "confirmed_at": now,
                "updated_at": now,
            }}
        )
        return result.modified_count > 0

    def _cutoff(self) -> str:
        return (datetime.now(timezone.utc) - timedelta(seconds=CONFIRMATION_DELAY_SECONDS)).isoformat()

    async def verify_transaction(self, transaction_hash: str) -> Dict[str, Any]:
        tx = await self.get_transaction_by_hash(transaction_hash)
        if tx["status"] == "pending" and tx["created_at"] <= self._cutoff():
            if await self._confirm(tx["id"]):
                logger.info(f"Transaction {transaction_hash} confirmed on verify")
            tx = await self.get_transaction_by_hash(transaction_hash)
        return tx

    async def confirm_pending_transactions(self) -> int:
        """Confirm every pending transaction older than the confirmation delay."""
        pending = await self.db.blockchain_transactions.find(
            {"status": "pending", "created_at": {"$lte": self._cutoff()}},
            {"_id": 0, "id": 1, "transaction_hash": 1}
        ).to_list(1000)

        confirmed = 0
        for tx in pending:
            if await self._confirm(tx["id"]):
                confirmed += 1
                logger.info(f"Transaction {tx['transaction_hash']} confirmed")
        return confirmed

    async def get_trading_stats(self, user_id: str) -> Dict[str, Any]:
        trades = await self.db.blockchain_transactions.find(
            {"user_id": user_id, "type": "trade", "status": {"$in": ["pending", "confirmed"]}},
            {"_id": 0, "amount": 1, "currency": 1, "metadata": 1}
        ).to_list(None)

        if not trades:
            return {
                "total_trades": 0,
                "total_volume_usd": 0.0,
                "total_fees_usd": 0.0,
                "most_traded_pair": "N/A",
            }

        prices = await self.crypto_service.get_all_prices()
        volume = 0.0
        fees = 0.0
        pairs = Counter()
        for trade in trades:
            price = prices.get(trade["currency"], {}).get("price_usd", 0.0)
            meta = trade.get("metadata") or {}
            volume += trade["amount"] * price
            fees += (meta.get("fee") or 0.0) * price
            if meta.get("trade_pair"):
                pairs[meta["trade_pair"]] += 1

        return {
            "total_trades": len(trades),
            "total_volume_usd": round(volume, 2),
            "total_fees_usd": round(fees, 2),
            "most_traded_pair": pairs.most_common(1)[0][0] if pairs else "N/A",
        }

    async def get_recent_transactions(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Public feed: verified transactions without owner ids."""
        limit = max(1, min(limit, 50))
        return await self.db.blockchain_transactions.find(
            {"verified": True},
            {"_id": 0, "user_id": 0}
        ).sort("confirmed_at", -1).limit(limit).to_list(limit)

    async def get_all_transactions(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[str] = None
    ) -> Dict[str, Any]:
        query = {"status": status} if status else {}
        items = await self.db.blockchain_transactions.find(
            query, {"_id": 0}
        ).sort("created_at", -1).skip(skip).limit(limit).to_list(limit)
        total = await self.db.blockchain_transactions.count_documents(query)
        return {"items": items, "total": total, "skip": skip, "limit": limit}

    async def get_volume_usd(self) -> float:
        """Total confirmed volume at current prices."""
        rows = await self.db.blockchain_transactions.aggregate([
            {"$match": {"status": "confirmed"}},
            {"$group": {"_id": "$currency", "amount": {"$sum": "$amount"}}},
        ]).to_list(None)
        if not rows:
            return 0.0
        prices = await self.crypto_service.get_all_prices()
        total = sum(row["amount"] * prices.get(row["_id"], {}).get("price_usd", 0.0) for row in rows)
        return round(total, 2)
