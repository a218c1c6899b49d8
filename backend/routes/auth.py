"""
Authentication routes

Signup/login, two-factor authentication, password management, profile.
"""
from fastapi import APIRouter, Depends, Request

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import db
from models.schemas import (
    UserCreate,
    UserLogin,
    ProfileUpdate,
    TwoFactorToken,
    PasswordConfirm,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    PrivacyUpdate,
)
from services.auth_service import AuthService
from services.email_service import EmailService
from services.login_approval_service import LoginApprovalService
from utils.auth import get_current_user

auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
privacy_router = APIRouter(prefix="/privacy", tags=["Privacy"])


def _service() -> AuthService:
    return AuthService(db, EmailService(db), LoginApprovalService(db))


@auth_router.post("/signup", status_code=201)
async def signup(user_data: UserCreate):
    """Register a new user"""
    return await _service().signup(
        user_data.email, user_data.password, user_data.first_name, user_data.last_name
    )


@auth_router.post("/login")
async def login(credentials: UserLogin, request: Request):
    """
    Login with email and password.

    Returns a token, or {two_factor_required} when a TOTP code is needed,
    or {approval_required, approval_id} when login approval is enabled.
    """
    return await _service().login(
        credentials.email,
        credentials.password,
        totp_token=credentials.totp_token,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        device_name=credentials.device_name,
    )


@auth_router.get("/verify")
async def verify_token(user: dict = Depends(get_current_user)):
    return {"valid": True, "user": user}


@auth_router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    return user


@auth_router.put("/profile")
async def update_profile(data: ProfileUpdate, user: dict = Depends(get_current_user)):
    return await _service().update_profile(user["id"], data.model_dump())


@auth_router.post("/2fa/setup")
async def setup_two_factor(user: dict = Depends(get_current_user)):
    """Start 2FA setup: returns the secret and an otpauth:// URL for the QR code"""
    return await _service().setup_two_factor(user["id"])


@auth_router.post("/2fa/verify")
async def verify_two_factor(data: TwoFactorToken, user: dict = Depends(get_current_user)):
    """Confirm 2FA setup with a code; returns one-time backup codes"""
    return await _service().verify_and_enable_two_factor(user["id"], data.totp_token)


@auth_router.post("/2fa/disable")
async def disable_two_factor(data: PasswordConfirm, user: dict = Depends(get_current_user)):
    return await _service().disable_two_factor(user["id"], data.password)


@auth_router.post("/2fa/backup-codes")
async def regenerate_backup_codes(data: PasswordConfirm, user: dict = Depends(get_current_user)):
    return await _service().regenerate_backup_codes(user["id"], data.password)


@auth_router.post("/change-password")
async def change_password(data: ChangePasswordRequest, user: dict = Depends(get_current_user)):
    return await _service().change_password(user["id"], data.old_password, data.new_password)


@auth_router.post("/forgot-password")
async def forgot_password(data: ForgotPasswordRequest):
    return await _service().request_password_reset(data.email)


@auth_router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest):
    return await _service().reset_password(data.token, data.new_password)


# ==================== PRIVACY ====================

@privacy_router.get("")
async def get_privacy(user: dict = Depends(get_current_user)):
    return await _service().get_privacy(user["id"])


@privacy_router.post("/update")
async def update_privacy(data: PrivacyUpdate, user: dict = Depends(get_current_user)):
    return await _service().update_privacy(user["id"], data.model_dump())
