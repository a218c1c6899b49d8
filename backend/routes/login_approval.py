"""
Login approval routes

Endpoints:
- POST /api/login-approval/approve/{token} - Approve a pending sign-in
- POST /api/login-approval/reject/{token} - Reject a pending sign-in
- GET /api/login-approval/pending - Pending approvals for the current user
- GET /api/login-approval/{approval_id}/status - Poll from the signing-in device
- POST /api/login-approval/{approval_id}/complete - Exchange an approval for a token
"""
from fastapi import APIRouter, Depends

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import LoginRejectRequest
from services.login_approval_service import LoginApprovalService
from utils.auth import get_current_user

login_approval_router = APIRouter(prefix="/login-approval", tags=["Login Approval"])


@login_approval_router.post("/approve/{approval_token}")
async def approve_login(approval_token: str):
    return await LoginApprovalService(db).approve_login(approval_token)


@login_approval_router.post("/reject/{approval_token}")
async def reject_login(approval_token: str, data: LoginRejectRequest):
    return await LoginApprovalService(db).reject_login(approval_token, data.rejection_reason)


@login_approval_router.get("/pending")
async def get_pending(user: dict = Depends(get_current_user)):
    approvals = await LoginApprovalService(db).get_pending_approvals(user["id"])
    return {"approvals": approvals, "count": len(approvals)}


@login_approval_router.get("/{approval_id}/status")
async def get_status(approval_id: str):
    return await LoginApprovalService(db).get_status(approval_id)


@login_approval_router.post("/{approval_id}/complete")
async def complete_login(approval_id: str):
    return await LoginApprovalService(db).complete_login(approval_id)
