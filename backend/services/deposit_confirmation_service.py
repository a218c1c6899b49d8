"""
Deposit Confirmation Service

Tracks a claimed inbound transfer until its confirmation count reaches
required_confirmations. Counts are pushed by an admin (no chain watcher).
The pending -> confirmed transition is conditional so the wallet credit
happens exactly once.
"""
import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from config import DEFAULT_REQUIRED_CONFIRMATIONS, DEPOSIT_WALLET_TYPES
from utils.errors import ValidationFailedError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)


class DepositConfirmationService:

    def __init__(self, db, wallet_service):
        self.db = db
        self.wallet_service = wallet_service

    async def create_deposit_confirmation(
        self,
        user_id: str,
        deposit_amount: float,
        currency: str,
        to_address: str,
        transaction_hash: Optional[str] = None,
        from_address: Optional[str] = None,
        notes: Optional[str] = None,
        required_confirmations: int = DEFAULT_REQUIRED_CONFIRMATIONS
    ) -> Dict[str, Any]:
        if not math.isfinite(deposit_amount) or deposit_amount <= 0:
            raise ValidationFailedError("Deposit amount must be greater than zero")
        currency = currency.upper()
        if currency not in DEPOSIT_WALLET_TYPES:
            raise ValidationFailedError("Invalid currency")

        now = datetime.now(timezone.utc).isoformat()
        deposit = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "deposit_amount": deposit_amount,
            "currency": currency,
            "transaction_hash": transaction_hash,
            "from_address": from_address,
            "to_address": to_address,
            "status": "pending",
            "confirmations": 0,
            "required_confirmations": required_confirmations,
            "deposit_date": now,
            "confirmed_at": None,
            "failure_reason": None,
            "notes": notes,
            "created_at": now,
            "updated_at": now,
        }
        await self.db.deposit_confirmations.insert_one(deposit)
        deposit.pop("_id", None)

        logger.info(f"Deposit {deposit['id']} of {deposit_amount} {currency} recorded for user {user_id}")
        return deposit

    async def _get(self, deposit_id: str) -> Dict[str, Any]:
        deposit = await self.db.deposit_confirmations.find_one({"id": deposit_id}, {"_id": 0})
        if not deposit:
            raise NotFoundError("Deposit not found")
        return deposit

    async def update_confirmation_count(self, deposit_id: str, confirmations: int) -> Dict[str, Any]:
        if confirmations < 0:
            raise ValidationFailedError("Confirmations cannot be negative")

        deposit = await self._get(deposit_id)
        if deposit["status"] != "pending":
            raise ValidationFailedError(f"Deposit is already {deposit['status']}")

        now = datetime.now(timezone.utc).isoformat()
        updates = {"confirmations": confirmations, "updated_at": now}
        reached = confirmations >= deposit["required_confirmations"]
        if reached:
            updates["status"] = "confirmed"
            updates["confirmed_at"] = now

        updated = await self.db.deposit_confirmations.find_one_and_update(
            {"id": deposit_id, "status": "pending"},
            {"$set": updates},
            projection={"_id": 0},
            return_document=True
        )
        if not updated:
            raise ValidationFailedError("Deposit is no longer pending")

        if reached:
            logger.info(f"Deposit {deposit_id} confirmed with {confirmations} confirmations")
            await self._credit_wallet(updated)
        return updated

    async def _credit_wallet(self, deposit: Dict[str, Any]) -> None:
        wallet_type = DEPOSIT_WALLET_TYPES[deposit["currency"]]
        wallet = await self.wallet_service.find_wallet(deposit["user_id"], wallet_type)
        if not wallet:
            logger.warning(
                f"Deposit {deposit['id']} confirmed but user {deposit['user_id']} has no active {wallet_type} wallet"
            )
            return
        await self.wallet_service.adjust_balance(deposit["user_id"], wallet_type, deposit["deposit_amount"])

    async def mark_deposit_failed(self, deposit_id: str, reason: str) -> Dict[str, Any]:
        await self._get(deposit_id)
        now = datetime.now(timezone.utc).isoformat()
        updated = await self.db.deposit_confirmations.find_one_and_update(
            {"id": deposit_id, "status": "pending"},
            {"$set": {"status": "failed", "failure_reason": reason, "updated_at": now}},
            projection={"_id": 0},
            return_document=True
        )
        if not updated:
            raise ValidationFailedError("Only pending deposits can be marked failed")
        logger.info(f"Deposit {deposit_id} marked failed: {reason}")
        return updated

    async def cancel_deposit(self, deposit_id: str, user_id: str) -> Dict[str, Any]:
        deposit = await self._get(deposit_id)
        if deposit["user_id"] != user_id:
            raise PermissionDeniedError("Not your deposit")

        now = datetime.now(timezone.utc).isoformat()
        updated = await self.db.deposit_confirmations.find_one_and_update(
            {"id": deposit_id, "status": "pending"},
            {"$set": {"status": "cancelled", "updated_at": now}},
            projection={"_id": 0},
            return_document=True
        )
        if not updated:
            raise ValidationFailedError("Only pending deposits can be cancelled")
        return updated

    async def get_user_deposit_status(self, user_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = {"user_id": user_id}
        if status:
            query["status"] = status
        return await self.db.deposit_confirmations.find(
            query, {"_id": 0}
        ).sort("deposit_date", -1).to_list(200)

    async def get_pending_deposits(self) -> List[Dict[str, Any]]:
        return await self.db.deposit_confirmations.find(
            {"status": "pending"}, {"_id": 0}
        ).sort("deposit_date", 1).to_list(500)
