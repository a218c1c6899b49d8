"""
Membership Service

Tiered monthly memberships (basic/premium/gold/platinum). Fees and benefits
come from MEMBERSHIP_TIERS. Payment is not collected here; renewal only
advances the billing dates.
"""
import calendar
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from config import MEMBERSHIP_TIERS
from utils.errors import ValidationFailedError, NotFoundError

logger = logging.getLogger(__name__)


def add_month(dt: datetime) -> datetime:
    """Same day next month, clamped to the last day (Jan 31 -> Feb 28/29)."""
    year = dt.year + (1 if dt.month == 12 else 0)
    month = 1 if dt.month == 12 else dt.month + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def get_benefits_by_tier(tier: str) -> List[str]:
    return list(MEMBERSHIP_TIERS.get(tier, MEMBERSHIP_TIERS["basic"])["benefits"])


def get_fee_by_tier(tier: str) -> float:
    return MEMBERSHIP_TIERS.get(tier, MEMBERSHIP_TIERS["basic"])["monthly_fee"]


class MembershipService:

    def __init__(self, db):
        self.db = db

    async def create_membership(
        self,
        user_id: str,
        tier: str = "basic",
        payment_method: Optional[str] = None
    ) -> Dict[str, Any]:
        if tier not in MEMBERSHIP_TIERS:
            raise ValidationFailedError("Invalid membership tier")

        existing = await self.db.memberships.find_one({"user_id": user_id}, {"_id": 0})
        if existing and existing["status"] != "cancelled":
            raise ValidationFailedError("User already has an active membership")

        now = datetime.now(timezone.utc)
        fields = {
            "membership_tier": tier,
            "status": "active",
            "start_date": now.isoformat(),
            "end_date": None,
            "renewal_date": None,
            "auto_renew": True,
            "monthly_fee": get_fee_by_tier(tier),
            "currency": "USD",
            "benefits": get_benefits_by_tier(tier),
            "payment_method": payment_method,
            "last_payment_date": now.isoformat(),
            "next_payment_date": add_month(now).isoformat(),
            "updated_at": now.isoformat(),
        }

        if existing:
            # Reactivate in place; user_id is unique
            membership = await self.db.memberships.find_one_and_update(
                {"user_id": user_id, "status": "cancelled"},
                {"$set": fields},
                projection={"_id": 0},
                return_document=True
            )
            if not membership:
                raise ValidationFailedError("User already has an active membership")
            logger.info(f"Membership reactivated for user {user_id} at {tier}")
            return membership

        membership = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "notes": None,
            "created_at": now.isoformat(),
            **fields,
        }
        await self.db.memberships.insert_one(membership)
        membership.pop("_id", None)

        logger.info(f"Membership created for user {user_id} at {tier}")
        return membership

    async def get_user_membership(self, user_id: str) -> Dict[str, Any]:
        membership = await self.db.memberships.find_one({"user_id": user_id}, {"_id": 0})
        if not membership:
            raise NotFoundError("Membership not found")
        return membership

    async def upgrade_membership(self, user_id: str, tier: str) -> Dict[str, Any]:
        if tier not in MEMBERSHIP_TIERS:
            raise ValidationFailedError("Invalid membership tier")
        await self.get_user_membership(user_id)

        membership = await self.db.memberships.find_one_and_update(
            {"user_id": user_id, "status": "active"},
            {"$set": {
                "membership_tier": tier,
                "monthly_fee": get_fee_by_tier(tier),
                "benefits": get_benefits_by_tier(tier),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }},
            projection={"_id": 0},
            return_document=True
        )
        if not membership:
            raise ValidationFailedError("Only active memberships can be changed")
        logger.info(f"Membership for user {user_id} changed to {tier}")
        return membership

    async def cancel_membership(self, user_id: str) -> Dict[str, Any]:
        await self.get_user_membership(user_id)
        now = datetime.now(timezone.utc).isoformat()
        membership = await self.db.memberships.find_one_and_update(
            {"user_id": user_id, "status": {"$ne": "cancelled"}},
            {"$set": {"status": "cancelled", "end_date": now, "auto_renew": False, "updated_at": now}},
            projection={"_id": 0},
            return_document=True
        )
        if not membership:
            raise ValidationFailedError("Membership is already cancelled")
        logger.info(f"Membership cancelled for user {user_id}")
        return membership

    async def process_auto_renewal(self) -> List[Dict[str, Any]]:
        """Advance billing dates of every due, auto-renewing active membership."""
        now = datetime.now(timezone.utc)
        due = await self.db.memberships.find(
            {"status": "active", "auto_renew": True, "next_payment_date": {"$lte": now.isoformat()}},
            {"_id": 0}
        ).to_list(1000)

        renewed = []
        for membership in due:
            updated = await self.db.memberships.find_one_and_update(
                # Guard on the old date so a concurrent run renews once
                {"id": membership["id"], "next_payment_date": membership["next_payment_date"]},
                {"$set": {
                    "last_payment_date": now.isoformat(),
                    "renewal_date": now.isoformat(),
                    "next_payment_date": add_month(now).isoformat(),
                    "updated_at": now.isoformat(),
                }},
                projection={"_id": 0},
                return_document=True
            )
            if updated:
                renewed.append(updated)
                logger.info(f"Membership renewed for user {membership['user_id']}")
        return renewed
