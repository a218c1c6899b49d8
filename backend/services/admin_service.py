"""
Admin Service

User management and platform statistics. Every mutating action is
recorded in audit_logs.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from config import MAX_PAGE_SIZE
from utils.auth import USER_PUBLIC_PROJECTION
from utils.errors import ValidationFailedError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

ADMIN_EDITABLE_FIELDS = ("first_name", "last_name", "phone")


class AdminService:

    def __init__(self, db, blockchain_service):
        self.db = db
        self.blockchain_service = blockchain_service

    async def _audit(self, action: str, admin: Dict[str, Any], user_id: str, details: Dict[str, Any] = None):
        await self.db.audit_logs.insert_one({
            "action": action,
            "admin_id": admin["id"],
            "admin_email": admin.get("email"),
            "user_id": user_id,
            "details": details or {},
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    async def get_stats(self) -> Dict[str, Any]:
        total_users = await self.db.users.count_documents({})
        total_admins = await self.db.users.count_documents({"is_admin": True})
        total_transactions = await self.db.blockchain_transactions.count_documents({})
        volume = await self.blockchain_service.get_volume_usd()
        return {
            "total_users": total_users,
            "total_admins": total_admins,
            "total_transactions": total_transactions,
            "total_transaction_volume": volume,
        }

    async def get_all_users(self, skip: int = 0, limit: int = 20, search: Optional[str] = None) -> Dict[str, Any]:
        skip = max(0, skip)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        query: Dict[str, Any] = {}
        if search:
            pattern = re.escape(search)
            query["$or"] = [
                {"email": {"$regex": pattern, "$options": "i"}},
                {"first_name": {"$regex": pattern, "$options": "i"}},
                {"last_name": {"$regex": pattern, "$options": "i"}},
            ]

        users = await self.db.users.find(
            query, USER_PUBLIC_PROJECTION
        ).sort("created_at", -1).skip(skip).limit(limit).to_list(limit)
        total = await self.db.users.count_documents(query)
        return {"items": users, "total": total, "skip": skip, "limit": limit}

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        user = await self.db.users.find_one({"id": user_id}, USER_PUBLIC_PROJECTION)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def make_user_admin(self, user_id: str, admin: Dict[str, Any]) -> Dict[str, Any]:
        user = await self.db.users.find_one_and_update(
            {"id": user_id},
            {"$set": {"is_admin": True, "updated_at": datetime.now(timezone.utc).isoformat()}},
            projection=USER_PUBLIC_PROJECTION,
            return_document=True
        )
        if not user:
            raise NotFoundError("User not found")

        await self._audit("make_admin", admin, user_id, {"email": user["email"]})
        logger.info(f"Admin {admin['email']} promoted {user['email']} to admin")
        return user

    async def update_user_details(self, user_id: str, updates: Dict[str, Any], admin: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: v for k, v in updates.items() if k in ADMIN_EDITABLE_FIELDS and v is not None}
        if not fields:
            raise ValidationFailedError("No valid fields to update")
        fields["updated_at"] = datetime.now(timezone.utc).isoformat()

        user = await self.db.users.find_one_and_update(
            {"id": user_id},
            {"$set": fields},
            projection=USER_PUBLIC_PROJECTION,
            return_document=True
        )
        if not user:
            raise NotFoundError("User not found")

        await self._audit("update_user", admin, user_id, {k: v for k, v in fields.items() if k != "updated_at"})
        return user

    async def delete_user(self, user_id: str, admin: Dict[str, Any]) -> Dict[str, Any]:
        if user_id == admin["id"]:
            raise ValidationFailedError("Cannot delete your own account")

        user = await self.get_user(user_id)
        if user.get("is_admin"):
            raise PermissionDeniedError("Cannot delete admin users")

        await self.db.users.delete_one({"id": user_id})
        await self._audit("delete_user", admin, user_id, {"email": user["email"]})
        logger.info(f"Admin {admin['email']} deleted user {user['email']}")
        return {"message": f"User {user['email']} deleted successfully", "deleted_user_id": user_id}

    async def get_all_transactions(self, skip: int = 0, limit: int = 50, status: Optional[str] = None) -> Dict[str, Any]:
        return await self.blockchain_service.get_all_transactions(
            max(0, skip), max(1, min(limit, MAX_PAGE_SIZE)), status
        )
