"""
Login Approval Service

Second-device confirmation for sign-ins. A login creates a pending approval
with a secret token (sent by email); the token holder approves or rejects
it; the device that started the login polls the approval by its public id
and exchanges an approved one for a JWT exactly once.
"""
import logging
import secrets
import uuid
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, List, Optional

from config import LOGIN_APPROVAL_TTL_HOURS
from utils.auth import create_token, USER_PUBLIC_PROJECTION
from utils.errors import ValidationFailedError, NotFoundError

logger = logging.getLogger(__name__)

# What the polling device may see
STATUS_PROJECTION = {
    "_id": 0,
    "id": 1,
    "status": 1,
    "expires_at": 1,
    "approved_at": 1,
    "rejected_at": 1,
    "rejection_reason": 1,
}


class LoginApprovalService:

    def __init__(self, db):
        self.db = db

    async def create_login_approval(
        self,
        user_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        device_name: Optional[str] = None
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        approval = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "device_name": device_name,
            "status": "pending",
            "approval_token": secrets.token_hex(32),
            "expires_at": (now + timedelta(hours=LOGIN_APPROVAL_TTL_HOURS)).isoformat(),
            "approved_at": None,
            "rejected_at": None,
            "rejection_reason": None,
            "consumed_at": None,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }
        await self.db.login_approvals.insert_one(approval)
        approval.pop("_id", None)

        logger.info(f"Login approval {approval['id']} created for user {user_id}")
        return approval

    async def _get_by_token(self, approval_token: str) -> Dict[str, Any]:
        approval = await self.db.login_approvals.find_one({"approval_token": approval_token}, {"_id": 0})
        if not approval:
            raise NotFoundError("Invalid approval token")
        return approval

    async def approve_login(self, approval_token: str) -> Dict[str, Any]:
        approval = await self._get_by_token(approval_token)
        if approval["status"] != "pending":
            raise ValidationFailedError("Approval request is no longer pending")

        now = datetime.now(timezone.utc).isoformat()
        if approval["expires_at"] < now:
            await self.db.login_approvals.update_one(
                {"id": approval["id"], "status": "pending"},
                {"$set": {"status": "expired", "updated_at": now}}
            )
            raise ValidationFailedError("Approval token has expired")

        result = await self.db.login_approvals.update_one(
            {"id": approval["id"], "status": "pending"},
            {"$set": {"status": "approved", "approved_at": now, "updated_at": now}}
        )
        if result.modified_count == 0:
            raise ValidationFailedError("Approval request is no longer pending")

        logger.info(f"Login approval {approval['id']} approved")
        return {"user_id": approval["user_id"], "status": "approved"}

    async def reject_login(self, approval_token: str, rejection_reason: str) -> Dict[str, Any]:
        if not rejection_reason:
            raise ValidationFailedError("Rejection reason is required")
        approval = await self._get_by_token(approval_token)

        now = datetime.now(timezone.utc).isoformat()
        result = await self.db.login_approvals.update_one(
            {"id": approval["id"], "status": "pending"},
            {"$set": {
                "status": "rejected",
                "rejected_at": now,
                "rejection_reason": rejection_reason,
                "updated_at": now,
            }}
        )
        if result.modified_count == 0:
            raise ValidationFailedError("Approval request is no longer pending")

        logger.info(f"Login approval {approval['id']} rejected: {rejection_reason}")
        return {"user_id": approval["user_id"], "status": "rejected"}

    async def get_pending_approvals(self, user_id: str) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc).isoformat()
        return await self.db.login_approvals.find(
            {"user_id": user_id, "status": "pending", "expires_at": {"$gt": now}},
            {"_id": 0, "approval_token": 0}
        ).sort("created_at", -1).to_list(50)

    async def get_status(self, approval_id: str) -> Dict[str, Any]:
        approval = await self.db.login_approvals.find_one({"id": approval_id}, STATUS_PROJECTION)
        if not approval:
            raise NotFoundError("Login approval not found")
        return approval

    async def complete_login(self, approval_id: str) -> Dict[str, Any]:
        """Exchange an approved, unconsumed approval for an access token."""
        now = datetime.now(timezone.utc).isoformat()
        approval = await self.db.login_approvals.find_one_and_update(
            {"id": approval_id, "status": "approved", "consumed_at": None},
            {"$set": {"consumed_at": now, "updated_at": now}},
            projection={"_id": 0},
            return_document=True
        )
        if not approval:
            raise ValidationFailedError("Login has not been approved or was already completed")

        user = await self.db.users.find_one({"id": approval["user_id"]}, USER_PUBLIC_PROJECTION)
        if not user:
            raise NotFoundError("User not found")

        await self.db.users.update_one({"id": user["id"]}, {"$set": {"last_login": now}})
        token = create_token(user["id"], user["email"], user.get("is_admin", False))
        logger.info(f"Login approval {approval_id} completed for user {user['id']}")
        return {"access_token": token, "token_type": "bearer", "user": user}

    async def expire_stale_approvals(self) -> int:
        now = datetime.now(timezone.utc).isoformat()
        result = await self.db.login_approvals.update_many(
            {"status": "pending", "expires_at": {"$lt": now}},
            {"$set": {"status": "expired", "updated_at": now}}
        )
        if result.modified_count:
            logger.info(f"Expired {result.modified_count} login approvals")
        return result.modified_count
