"""
Wallet Request Service

Users ask for a crypto wallet (or file a manual deposit/withdrawal), an
admin approves or rejects. Approving a crypto request assigns the wallet.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from pymongo.errors import DuplicateKeyError

from config import MANUAL_REQUEST_TYPES
from services.crypto_service import generate_address
from utils.errors import ValidationFailedError, NotFoundError

logger = logging.getLogger(__name__)


class WalletRequestService:

    def __init__(self, db, wallet_service):
        self.db = db
        self.wallet_service = wallet_service

    async def create_wallet_request(
        self,
        user_id: str,
        wallet_type: str,
        reference: Optional[str] = None,
        proof_file: Optional[str] = None,
        amount: Optional[float] = None
    ) -> Dict[str, Any]:
        is_manual = wallet_type in MANUAL_REQUEST_TYPES
        if not is_manual:
            wallet_type = wallet_type.upper()
            pending = await self.db.wallet_requests.find_one(
                {"user_id": user_id, "wallet_type": wallet_type, "status": "pending"},
                {"_id": 0, "id": 1}
            )
            if pending:
                raise ValidationFailedError(f"Pending {wallet_type} wallet request already exists")

        now = datetime.now(timezone.utc).isoformat()
        request = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "wallet_type": wallet_type,
            "status": "pending",
            "is_manual": is_manual,
            "wallet_address": None,
            "amount": amount,
            "reference": reference,
            "proof_file": proof_file,
            "requested_at": now,
            "approved_at": None,
            "rejected_at": None,
            "approval_notes": None,
            "rejection_reason": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.db.wallet_requests.insert_one(request)
        except DuplicateKeyError:
            raise ValidationFailedError(f"Pending {wallet_type} wallet request already exists")
        request.pop("_id", None)

        logger.info(f"Wallet request {request['id']} ({wallet_type}) created by user {user_id}")
        return request

    async def _get_pending(self, request_id: str) -> Dict[str, Any]:
        request = await self.db.wallet_requests.find_one({"id": request_id}, {"_id": 0})
        if not request:
            raise NotFoundError("Wallet request not found")
        if request["status"] != "pending":
            raise ValidationFailedError(f"Wallet request is already {request['status']}")
        return request

    async def approve_wallet_request(
        self,
        request_id: str,
        wallet_address: Optional[str] = None,
        approval_notes: Optional[str] = None
    ) -> Dict[str, Any]:
        request = await self._get_pending(request_id)
        is_crypto = request["wallet_type"] not in MANUAL_REQUEST_TYPES

        if is_crypto:
            wallet_address = wallet_address or generate_address(request["wallet_type"])
            # Assign first so a rejected address leaves the request pending
            await self.wallet_service.assign_wallet(
                request["user_id"], wallet_address, request["wallet_type"]
            )

        now = datetime.now(timezone.utc).isoformat()
        updated = await self.db.wallet_requests.find_one_and_update(
            {"id": request_id, "status": "pending"},
            {"$set": {
                "status": "approved",
                "wallet_address": wallet_address,
                "approval_notes": approval_notes,
                "approved_at": now,
                "updated_at": now,
            }},
            projection={"_id": 0},
            return_document=True
        )
        if not updated:
            raise ValidationFailedError("Wallet request is no longer pending")

        logger.info(f"Wallet request {request_id} approved")
        return updated

    async def reject_wallet_request(self, request_id: str, rejection_reason: str) -> Dict[str, Any]:
        if not rejection_reason:
            raise ValidationFailedError("Rejection reason is required")
        await self._get_pending(request_id)

        now = datetime.now(timezone.utc).isoformat()
        updated = await self.db.wallet_requests.find_one_and_update(
            {"id": request_id, "status": "pending"},
            {"$set": {
                "status": "rejected",
                "rejection_reason": rejection_reason,
                "rejected_at": now,
                "updated_at": now,
            }},
            projection={"_id": 0},
            return_document=True
        )
        if not updated:
            raise ValidationFailedError("Wallet request is no longer pending")

        logger.info(f"Wallet request {request_id} rejected: {rejection_reason}")
        return updated

    async def get_user_wallet_requests(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.db.wallet_requests.find(
            {"user_id": user_id}, {"_id": 0}
        ).sort("requested_at", -1).to_list(100)

    async def get_pending_wallet_requests(self) -> List[Dict[str, Any]]:
        return await self.db.wallet_requests.find(
            {"status": "pending"}, {"_id": 0}
        ).sort("requested_at", 1).to_list(500)
