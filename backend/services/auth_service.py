"""
Auth Service

Signup, login (with optional TOTP 2FA and login approval), password
management, profile and privacy settings.

2FA uses pyotp TOTP secrets. Backup codes are stored as sha256 hashes and
removed atomically when used.
"""
import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, List, Optional

import pyotp
from pymongo.errors import DuplicateKeyError

from config import MIN_PASSWORD_LENGTH, BACKUP_CODE_COUNT, PASSWORD_RESET_TTL_HOURS, TOTP_ISSUER
from utils.auth import hash_password, verify_password, create_token, USER_PUBLIC_PROJECTION
from utils.errors import ServiceError, ValidationFailedError, NotFoundError

logger = logging.getLogger(__name__)

PRIVATE_FIELDS = [k for k, v in USER_PUBLIC_PROJECTION.items() if v == 0]
PROFILE_FIELDS = ("first_name", "last_name", "phone")
PRIVACY_FIELDS = ("show_online_status", "show_profile_picture", "login_approval_enabled")


class AuthenticationError(ServiceError):
    status_code = 401


def _public(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k not in PRIVATE_FIELDS}


def _hash_code(code: str) -> str:
    return hashlib.sha256(code.strip().lower().encode("utf-8")).hexdigest()


def _generate_backup_codes() -> List[str]:
    return [secrets.token_hex(4) for _ in range(BACKUP_CODE_COUNT)]


def _check_password_strength(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationFailedError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


class AuthService:

    def __init__(self, db, email_service, login_approval_service):
        self.db = db
        self.email_service = email_service
        self.login_approval_service = login_approval_service

    def _token_response(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "access_token": create_token(user["id"], user["email"], user.get("is_admin", False)),
            "token_type": "bearer",
            "user": _public(user),
        }

    async def _get_full_user(self, user_id: str) -> Dict[str, Any]:
        user = await self.db.users.find_one({"id": user_id}, {"_id": 0})
        if not user:
            raise NotFoundError("User not found")
        return user

    # ==================== SIGNUP / LOGIN ====================

    async def signup(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> Dict[str, Any]:
        email = email.strip().lower()
        _check_password_strength(password)

        if await self.db.users.find_one({"email": email}, {"_id": 0, "id": 1}):
            raise ValidationFailedError("Email already registered")

        now = datetime.now(timezone.utc).isoformat()
        user = {
            "id": str(uuid.uuid4()),
            "email": email,
            "password": hash_password(password),
            "first_name": first_name,
            "last_name": last_name,
            "phone": None,
            "is_admin": False,
            "two_factor_enabled": False,
            "two_factor_secret": None,
            "two_factor_pending_secret": None,
            "backup_codes": [],
            "login_approval_enabled": False,
            "show_online_status": True,
            "show_profile_picture": True,
            "last_login": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.db.users.insert_one(user)
        except DuplicateKeyError:
            raise ValidationFailedError("Email already registered")
        user.pop("_id", None)

        logger.info(f"User {user['id']} signed up")
        await self.email_service.send_welcome_email(user)
        return self._token_response(user)

    async def _check_second_factor(self, user: Dict[str, Any], totp_token: str) -> bool:
        """Current TOTP code (±1 step) or an unused backup code, consumed on use."""
        code = (totp_token or "").strip().replace(" ", "")
        secret = user.get("two_factor_secret")
        if secret and code.isdigit() and pyotp.TOTP(secret).verify(code, valid_window=1):
            return True

        hashed = _hash_code(code)
        if hashed in (user.get("backup_codes") or []):
            result = await self.db.users.update_one(
                {"id": user["id"], "backup_codes": hashed},
                {"$pull": {"backup_codes": hashed}}
            )
            if result.modified_count > 0:
                logger.info(f"Backup code used by user {user['id']}")
                return True
        return False

    async def login(
        self,
        email: str,
        password: str,
        totp_token: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        device_name: Optional[str] = None
    ) -> Dict[str, Any]:
        user = await self.db.users.find_one({"email": email.strip().lower()}, {"_id": 0})
        if not user or not verify_password(password, user.get("password")):
            raise AuthenticationError("Invalid email or password")

        if user.get("two_factor_enabled"):
            if not totp_token:
                return {"two_factor_required": True}
            if not await self._check_second_factor(user, totp_token):
                raise AuthenticationError("Invalid two-factor code")

        if user.get("login_approval_enabled"):
            approval = await self.login_approval_service.create_login_approval(
                user["id"], ip_address, user_agent, device_name
            )
            await self.email_service.send_login_approval_email(user, approval)
            return {"approval_required": True, "approval_id": approval["id"]}

        now = datetime.now(timezone.utc).isoformat()
        await self.db.users.update_one({"id": user["id"]}, {"$set": {"last_login": now}})
        user["last_login"] = now

        await self.email_service.send_login_notification_email(user, ip_address, user_agent)
        return self._token_response(user)

    # ==================== TWO FACTOR ====================

    async def setup_two_factor(self, user_id: str) -> Dict[str, Any]:
        user = await self._get_full_user(user_id)
        if user.get("two_factor_enabled"):
            raise ValidationFailedError("Two-factor authentication is already enabled")

        secret = pyotp.random_base32()
        await self.db.users.update_one(
            {"id": user_id},
            {"$set": {
                "two_factor_pending_secret": secret,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }}
        )
        otpauth_url = pyotp.TOTP(secret).provisioning_uri(name=user["email"], issuer_name=TOTP_ISSUER)
        return {"secret": secret, "otpauth_url": otpauth_url}

    async def verify_and_enable_two_factor(self, user_id: str, totp_token: str) -> Dict[str, Any]:
        user = await self._get_full_user(user_id)
        secret = user.get("two_factor_pending_secret")
        if not secret:
            raise ValidationFailedError("Two-factor setup has not been started")
        if not pyotp.TOTP(secret).verify((totp_token or "").strip(), valid_window=1):
            raise ValidationFailedError("Invalid two-factor code")

        codes = _generate_backup_codes()
        await self.db.users.update_one(
            {"id": user_id},
            {"$set": {
                "two_factor_enabled": True,
                "two_factor_secret": secret,
                "two_factor_pending_secret": None,
                "backup_codes": [_hash_code(c) for c in codes],
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }}
        )
        logger.info(f"Two-factor enabled for user {user_id}")
        await self.email_service.send_two_factor_enabled_email(user)
        return {"enabled": True, "backup_codes": codes}

    async def disable_two_factor(self, user_id: str, password: str) -> Dict[str, Any]:
        user = await self._get_full_user(user_id)
        if not verify_password(password, user.get("password")):
            raise AuthenticationError("Invalid password")
        if not user.get("two_factor_enabled"):
            raise ValidationFailedError("Two-factor authentication is not enabled")

        await self.db.users.update_one(
            {"id": user_id},
            {"$set": {
                "two_factor_enabled": False,
                "two_factor_secret": None,
                "two_factor_pending_secret": None,
                "backup_codes": [],
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }}
        )
        logger.info(f"Two-factor disabled for user {user_id}")
        await self.email_service.send_two_factor_disabled_email(user)
        return {"enabled": False}

    async def regenerate_backup_codes(self, user_id: str, password: str) -> Dict[str, Any]:
        user = await self._get_full_user(user_id)
        if not verify_password(password, user.get("password")):
            raise AuthenticationError("Invalid password")
        if not user.get("two_factor_enabled"):
            raise ValidationFailedError("Two-factor authentication is not enabled")

        codes = _generate_backup_codes()
        await self.db.users.update_one(
            {"id": user_id},
            {"$set": {
                "backup_codes": [_hash_code(c) for c in codes],
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }}
        )
        return {"backup_codes": codes}

    # ==================== PASSWORDS ====================

    async def change_password(self, user_id: str, old_password: str, new_password: str) -> Dict[str, Any]:
        user = await self._get_full_user(user_id)
        if not verify_password(old_password, user.get("password")):
            raise AuthenticationError("Current password is incorrect")
        _check_password_strength(new_password)
        if old_password == new_password:
            raise ValidationFailedError("New password must be different from the current password")

        await self.db.users.update_one(
            {"id": user_id},
            {"$set": {
                "password": hash_password(new_password),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }}
        )
        logger.info(f"Password changed for user {user_id}")
        await self.email_service.send_password_changed_email(user)
        return {"message": "Password changed successfully"}

    async def request_password_reset(self, email: str) -> Dict[str, Any]:
        generic = {"message": "If an account exists for this email, a reset link has been sent"}
        user = await self.db.users.find_one({"email": email.strip().lower()}, USER_PUBLIC_PROJECTION)
        if not user:
            return generic

        now = datetime.now(timezone.utc)
        token = secrets.token_urlsafe(32)
        await self.db.password_reset_tokens.insert_one({
            "id": str(uuid.uuid4()),
            "user_id": user["id"],
            "token": token,
            "used": False,
            "expires_at": (now + timedelta(hours=PASSWORD_RESET_TTL_HOURS)).isoformat(),
            "created_at": now.isoformat(),
        })
        await self.email_service.send_password_reset_email(user, token)
        return generic

    async def reset_password(self, token: str, new_password: str) -> Dict[str, Any]:
        _check_password_strength(new_password)
        now = datetime.now(timezone.utc).isoformat()

        reset = await self.db.password_reset_tokens.find_one_and_update(
            {"token": token, "used": False, "expires_at": {"$gt": now}},
            {"$set": {"used": True, "used_at": now}},
            projection={"_id": 0},
            return_document=True
        )
        if not reset:
            raise ValidationFailedError("Invalid or expired reset token")

        await self.db.users.update_one(
            {"id": reset["user_id"]},
            {"$set": {"password": hash_password(new_password), "updated_at": now}}
        )
        logger.info(f"Password reset for user {reset['user_id']}")
        return {"message": "Password has been reset"}

    # ==================== PROFILE / PRIVACY ====================

    async def get_profile(self, user_id: str) -> Dict[str, Any]:
        user = await self.db.users.find_one({"id": user_id}, USER_PUBLIC_PROJECTION)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def update_profile(self, user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: v for k, v in updates.items() if k in PROFILE_FIELDS and v is not None}
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
        return user

    async def get_privacy(self, user_id: str) -> Dict[str, Any]:
        user = await self.get_profile(user_id)
        return {
            "show_online_status": user.get("show_online_status", True),
            "show_profile_picture": user.get("show_profile_picture", True),
            "login_approval_enabled": user.get("login_approval_enabled", False),
        }

    async def update_privacy(self, user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: v for k, v in updates.items() if k in PRIVACY_FIELDS and isinstance(v, bool)}
        if fields:
            fields["updated_at"] = datetime.now(timezone.utc).isoformat()
            await self.db.users.update_one({"id": user_id}, {"$set": fields})
        return await self.get_privacy(user_id)
