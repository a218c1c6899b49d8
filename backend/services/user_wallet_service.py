"""
User Wallet Service

Per-user wallet records (BTC/ETH/USDT/PAYPAL) with a cached balance.
One active wallet per (user, type). Balance adjustments use conditional
updates so a debit can never drive a balance negative.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from pymongo.errors import DuplicateKeyError

from config import WALLET_TYPES
from services.crypto_service import validate_address
from utils.errors import ValidationFailedError, NotFoundError

logger = logging.getLogger(__name__)


def _normalize_wallet_type(wallet_type: str) -> str:
    wallet_type = (wallet_type or "").upper()
    if wallet_type not in WALLET_TYPES:
        raise ValidationFailedError("Invalid wallet type")
    return wallet_type


class UserWalletService:
    """Service for assigning and maintaining user wallets."""

    def __init__(self, db):
        self.db = db

    async def assign_wallet(
        self,
        user_id: str,
        wallet_address: str,
        wallet_type: str,
        public_key: Optional[str] = None
    ) -> Dict[str, Any]:
        wallet_type = _normalize_wallet_type(wallet_type)

        existing = await self.db.user_wallets.find_one(
            {"user_id": user_id, "wallet_type": wallet_type, "is_active": True},
            {"_id": 0}
        )
        if existing:
            raise ValidationFailedError(f"User already has an active {wallet_type} wallet")

        if not validate_address(wallet_type, wallet_address):
            raise ValidationFailedError(f"Invalid {wallet_type} address")

        now = datetime.now(timezone.utc).isoformat()
        wallet = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "wallet_address": wallet_address,
            "wallet_type": wallet_type,
            "balance": 0.0,
            "is_active": True,
            "is_verified": False,
            "public_key": public_key,
            "derivation_path": None,
            "assigned_at": now,
            "last_synced_at": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.db.user_wallets.insert_one(wallet)
        except DuplicateKeyError:
            raise ValidationFailedError(f"User already has an active {wallet_type} wallet")
        wallet.pop("_id", None)

        logger.info(f"Assigned {wallet_type} wallet {wallet_address} to user {user_id}")
        return wallet

    async def get_user_wallets(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.db.user_wallets.find(
            {"user_id": user_id, "is_active": True},
            {"_id": 0}
        ).sort("wallet_type", 1).to_list(len(WALLET_TYPES))

    async def find_wallet(self, user_id: str, wallet_type: str) -> Optional[Dict[str, Any]]:
        """Active wallet of a type, or None."""
        return await self.db.user_wallets.find_one(
            {"user_id": user_id, "wallet_type": _normalize_wallet_type(wallet_type), "is_active": True},
            {"_id": 0}
        )

    async def get_wallet(self, user_id: str, wallet_type: str) -> Dict[str, Any]:
        wallet = await self.find_wallet(user_id, wallet_type)
        if not wallet:
            raise NotFoundError(f"{wallet_type.upper()} wallet not found")
        return wallet

    async def update_balance(self, user_id: str, wallet_type: str, amount: float) -> Dict[str, Any]:
        """Overwrite the cached balance (admin sync)."""
        if amount < 0:
            raise ValidationFailedError("Balance cannot be negative")
        wallet_type = _normalize_wallet_type(wallet_type)
        now = datetime.now(timezone.utc).isoformat()

        wallet = await self.db.user_wallets.find_one_and_update(
            {"user_id": user_id, "wallet_type": wallet_type, "is_active": True},
            {"$set": {"balance": amount, "last_synced_at": now, "updated_at": now}},
            projection={"_id": 0},
            return_document=True
        )
        if not wallet:
            raise NotFoundError(f"{wallet_type} wallet not found")
        return wallet

    async def adjust_balance(self, user_id: str, wallet_type: str, delta: float) -> Dict[str, Any]:
        """
        Atomically add delta to the balance.

        A negative delta only applies when balance >= -delta, so two
        concurrent debits cannot overdraw the wallet.
        """
        wallet_type = _normalize_wallet_type(wallet_type)
        query = {"user_id": user_id, "wallet_type": wallet_type, "is_active": True}
        if delta < 0:
            query["balance"] = {"$gte": -delta}

        wallet = await self.db.user_wallets.find_one_and_update(
            query,
            {
                "$inc": {"balance": delta},
                "$set": {"updated_at": datetime.now(timezone.utc).isoformat()}
            },
            projection={"_id": 0},
            return_document=True
        )
        if wallet:
            return wallet

        if delta < 0 and await self.find_wallet(user_id, wallet_type):
            raise ValidationFailedError("Insufficient balance")
        raise NotFoundError(f"{wallet_type} wallet not found")

    async def deactivate_wallet(self, user_id: str, wallet_type: str) -> Dict[str, Any]:
        wallet_type = _normalize_wallet_type(wallet_type)
        wallet = await self.db.user_wallets.find_one_and_update(
            {"user_id": user_id, "wallet_type": wallet_type, "is_active": True},
            {"$set": {"is_active": False, "updated_at": datetime.now(timezone.utc).isoformat()}},
            projection={"_id": 0},
            return_document=True
        )
        if not wallet:
            raise NotFoundError(f"{wallet_type} wallet not found")
        logger.info(f"Deactivated {wallet_type} wallet for user {user_id}")
        return wallet
