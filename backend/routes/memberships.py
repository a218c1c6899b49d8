"""
Membership routes
"""
from fastapi import APIRouter, Depends

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from config import MEMBERSHIP_TIERS
from models.schemas import MembershipCreate, MembershipUpgrade
from services.membership_service import MembershipService
from utils.auth import get_current_user, get_admin_user

memberships_router = APIRouter(prefix="/memberships", tags=["Memberships"])


@memberships_router.get("/tiers")
async def get_tiers():
    return {"tiers": MEMBERSHIP_TIERS}


@memberships_router.post("", status_code=201)
async def create_membership(data: MembershipCreate, user: dict = Depends(get_current_user)):
    return await MembershipService(db).create_membership(user["id"], data.membership_tier, data.payment_method)


@memberships_router.get("/mine")
async def get_my_membership(user: dict = Depends(get_current_user)):
    return await MembershipService(db).get_user_membership(user["id"])


@memberships_router.put("/mine/upgrade")
async def upgrade_membership(data: MembershipUpgrade, user: dict = Depends(get_current_user)):
    return await MembershipService(db).upgrade_membership(user["id"], data.membership_tier)


@memberships_router.put("/mine/cancel")
async def cancel_membership(user: dict = Depends(get_current_user)):
    return await MembershipService(db).cancel_membership(user["id"])


@memberships_router.get("/user/{user_id}")
async def get_user_membership(user_id: str, admin: dict = Depends(get_admin_user)):
    return await MembershipService(db).get_user_membership(user_id)


@memberships_router.post("/process-renewal")
async def process_renewal(admin: dict = Depends(get_admin_user)):
    renewed = await MembershipService(db).process_auto_renewal()
    return {"renewed": len(renewed), "memberships": renewed}
