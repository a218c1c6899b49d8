"""
Friend Request Service
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List

from utils.errors import ValidationFailedError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)


class FriendRequestService:

    def __init__(self, db):
        self.db = db

    async def _are_friends(self, user_a: str, user_b: str) -> bool:
        existing = await self.db.friend_requests.find_one(
            {
                "status": "accepted",
                "$or": [
                    {"from_user_id": user_a, "to_user_id": user_b},
                    {"from_user_id": user_b, "to_user_id": user_a},
                ],
            },
            {"_id": 0, "id": 1}
        )
        return existing is not None

    async def send_request(self, from_user_id: str, to_user_id: str) -> Dict[str, Any]:
        if from_user_id == to_user_id:
            raise ValidationFailedError("You cannot send a friend request to yourself")

        target = await self.db.users.find_one({"id": to_user_id}, {"_id": 0, "id": 1})
        if not target:
            raise NotFoundError("User not found")

        if await self._are_friends(from_user_id, to_user_id):
            raise ValidationFailedError("You are already friends")

        pending = await self.db.friend_requests.find_one(
            {
                "status": "pending",
                "$or": [
                    {"from_user_id": from_user_id, "to_user_id": to_user_id},
                    {"from_user_id": to_user_id, "to_user_id": from_user_id},
                ],
            },
            {"_id": 0, "id": 1}
        )
        if pending:
            raise ValidationFailedError("Request already sent")

        now = datetime.now(timezone.utc).isoformat()
        request = {
            "id": str(uuid.uuid4()),
            "from_user_id": from_user_id,
            "to_user_id": to_user_id,
            "status": "pending",
            "created_at": now,
            "updated_at": now,
        }
        await self.db.friend_requests.insert_one(request)
        request.pop("_id", None)
        return request

    async def get_requests(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        incoming = await self.db.friend_requests.find(
            {"to_user_id": user_id, "status": "pending"}, {"_id": 0}
        ).sort("created_at", -1).to_list(100)
        outgoing = await self.db.friend_requests.find(
            {"from_user_id": user_id, "status": "pending"}, {"_id": 0}
        ).sort("created_at", -1).to_list(100)
        return {"incoming": incoming, "outgoing": outgoing}

    async def respond_request(self, request_id: str, user_id: str, accept: bool) -> Dict[str, Any]:
        request = await self.db.friend_requests.find_one({"id": request_id}, {"_id": 0})
        if not request:
            raise NotFoundError("Friend request not found")
        if request["to_user_id"] != user_id:
            raise PermissionDeniedError("Only the recipient can respond to this request")

        updated = await self.db.friend_requests.find_one_and_update(
            {"id": request_id, "status": "pending"},
            {"$set": {
                "status": "accepted" if accept else "declined",
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }},
            projection={"_id": 0},
            return_document=True
        )
        if not updated:
            raise ValidationFailedError("Friend request is no longer pending")
        return updated

    async def list_friends(self, user_id: str) -> List[str]:
        accepted = await self.db.friend_requests.find(
            {"status": "accepted", "$or": [{"from_user_id": user_id}, {"to_user_id": user_id}]},
            {"_id": 0, "from_user_id": 1, "to_user_id": 1}
        ).to_list(1000)
        return [
            r["to_user_id"] if r["from_user_id"] == user_id else r["from_user_id"]
            for r in accepted
        ]
