"""
Friend request routes
"""
from fastapi import APIRouter, Depends

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import FriendRespond
from services.friend_request_service import FriendRequestService
from utils.auth import get_current_user

friends_router = APIRouter(prefix="/friends", tags=["Friends"])


@friends_router.get("")
async def list_friends(user: dict = Depends(get_current_user)):
    return {"friends": await FriendRequestService(db).list_friends(user["id"])}


@friends_router.post("/request/{to_user_id}", status_code=201)
async def send_request(to_user_id: str, user: dict = Depends(get_current_user)):
    return await FriendRequestService(db).send_request(user["id"], to_user_id)


@friends_router.get("/requests")
async def get_requests(user: dict = Depends(get_current_user)):
    return await FriendRequestService(db).get_requests(user["id"])


@friends_router.post("/respond/{request_id}")
async def respond_request(request_id: str, data: FriendRespond, user: dict = Depends(get_current_user)):
    return await FriendRequestService(db).respond_request(request_id, user["id"], data.accept)
