"""
Unit Tests for Auth and Login Approval Services
===============================================

Tests:
1. Signup validation and token issue
2. Login with 2FA (TOTP and backup codes) and login approval
3. 2FA enable/disable, password change and reset
4. Login approval lifecycle: approve, reject, expiry, completion
"""

import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock, MagicMock

import jwt
import pyotp

from services.auth_service import AuthService, AuthenticationError, _hash_code
from services.login_approval_service import LoginApprovalService
from utils.auth import hash_password, verify_password, JWT_SECRET, JWT_ALGORITHM
from utils.errors import ValidationFailedError, NotFoundError

PASSWORD = "correct-horse"
HASHED = hash_password(PASSWORD)


@pytest.fixture
def email_service():
    return AsyncMock()


@pytest.fixture
def approval_service():
    return AsyncMock()


@pytest.fixture
def service(mock_db, email_service, approval_service):
    return AuthService(mock_db, email_service, approval_service)


def _user(**overrides):
    user = {
        "id": "user-1",
        "email": "user@example.com",
        "password": HASHED,
        "is_admin": False,
        "two_factor_enabled": False,
        "two_factor_secret": None,
        "backup_codes": [],
        "login_approval_enabled": False,
    }
    user.update(overrides)
    return user


class TestSignup:

    @pytest.mark.asyncio
    async def test_signup_returns_token_without_secrets(self, service, mock_db, email_service):
        mock_db.users.find_one.return_value = None

        result = await service.signup("  New@Example.com ", PASSWORD, "Ada", "Lovelace")

        assert result["token_type"] == "bearer"
        assert result["user"]["email"] == "new@example.com"
        assert "password" not in result["user"]
        assert "backup_codes" not in result["user"]
        payload = jwt.decode(result["access_token"], JWT_SECRET, algorithms=[JWT_ALGORITHM])
        assert payload["sub"] == result["user"]["id"]
        email_service.send_welcome_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_email(self, service, mock_db):
        mock_db.users.find_one.return_value = {"id": "existing"}

        with pytest.raises(ValidationFailedError, match="Email already registered"):
            await service.signup("user@example.com", PASSWORD)

    @pytest.mark.asyncio
    async def test_short_password(self, service):
        with pytest.raises(ValidationFailedError, match="at least 8"):
            await service.signup("user@example.com", "short")


class TestLogin:

    @pytest.mark.asyncio
    async def test_wrong_password(self, service, mock_db):
        mock_db.users.find_one.return_value = _user()

        with pytest.raises(AuthenticationError) as exc:
            await service.login("user@example.com", "nope")
        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_plain_login_stamps_last_login(self, service, mock_db, email_service):
        mock_db.users.find_one.return_value = _user()

        result = await service.login("user@example.com", PASSWORD, ip_address="10.0.0.1")

        assert "access_token" in result
        mock_db.users.update_one.assert_awaited_once()
        email_service.send_login_notification_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_two_factor_required(self, service, mock_db):
        mock_db.users.find_one.return_value = _user(two_factor_enabled=True, two_factor_secret=pyotp.random_base32())

        result = await service.login("user@example.com", PASSWORD)

        assert result == {"two_factor_required": True}

    @pytest.mark.asyncio
    async def test_valid_totp(self, service, mock_db):
        secret = pyotp.random_base32()
        mock_db.users.find_one.return_value = _user(two_factor_enabled=True, two_factor_secret=secret)

        result = await service.login("user@example.com", PASSWORD, totp_token=pyotp.TOTP(secret).now())

        assert "access_token" in result

    @pytest.mark.asyncio
    async def test_backup_code_consumed(self, service, mock_db):
        mock_db.users.find_one.return_value = _user(
            two_factor_enabled=True,
            two_factor_secret=pyotp.random_base32(),
            backup_codes=[_hash_code("deadbeef")],
        )
        mock_db.users.update_one.return_value = MagicMock(modified_count=1)

        result = await service.login("user@example.com", PASSWORD, totp_token="deadbeef")

        assert "access_token" in result
        query, update = mock_db.users.update_one.await_args_list[0].args
        assert update == {"$pull": {"backup_codes": _hash_code("deadbeef")}}

    @pytest.mark.asyncio
    async def test_invalid_second_factor(self, service, mock_db):
        mock_db.users.find_one.return_value = _user(two_factor_enabled=True, two_factor_secret=pyotp.random_base32())

        with pytest.raises(AuthenticationError, match="Invalid two-factor code"):
            await service.login("user@example.com", PASSWORD, totp_token="not-a-code")

    @pytest.mark.asyncio
    async def test_login_approval_withholds_token(self, service, mock_db, approval_service, email_service):
        mock_db.users.find_one.return_value = _user(login_approval_enabled=True)
        approval_service.create_login_approval.return_value = {"id": "appr-1", "approval_token": "t" * 64}

        result = await service.login("user@example.com", PASSWORD, device_name="Laptop")

        assert result == {"approval_required": True, "approval_id": "appr-1"}
        email_service.send_login_approval_email.assert_awaited_once()


class TestTwoFactorAndPasswords:

    @pytest.mark.asyncio
    async def test_setup_stores_pending_secret(self, service, mock_db):
        mock_db.users.find_one.return_value = _user()

        result = await service.setup_two_factor("user-1")

        assert result["otpauth_url"].startswith("otpauth://totp/")
        _, update = mock_db.users.update_one.await_args.args
        assert update["$set"]["two_factor_pending_secret"] == result["secret"]

    @pytest.mark.asyncio
    async def test_enable_returns_backup_codes(self, service, mock_db, email_service):
        secret = pyotp.random_base32()
        mock_db.users.find_one.return_value = _user(two_factor_pending_secret=secret)

        result = await service.verify_and_enable_two_factor("user-1", pyotp.TOTP(secret).now())

        assert len(result["backup_codes"]) == 10
        _, update = mock_db.users.update_one.await_args.args
        assert update["$set"]["two_factor_secret"] == secret
        assert update["$set"]["backup_codes"][0] == _hash_code(result["backup_codes"][0])
        email_service.send_two_factor_enabled_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_enable_without_setup(self, service, mock_db):
        mock_db.users.find_one.return_value = _user()

        with pytest.raises(ValidationFailedError, match="not been started"):
            await service.verify_and_enable_two_factor("user-1", "123456")

    @pytest.mark.asyncio
    async def test_disable_requires_password(self, service, mock_db):
        mock_db.users.find_one.return_value = _user(two_factor_enabled=True)

        with pytest.raises(AuthenticationError):
            await service.disable_two_factor("user-1", "wrong")

    @pytest.mark.asyncio
    async def test_change_password_must_differ(self, service, mock_db):
        mock_db.users.find_one.return_value = _user()

        with pytest.raises(ValidationFailedError, match="different"):
            await service.change_password("user-1", PASSWORD, PASSWORD)

    @pytest.mark.asyncio
    async def test_reset_request_is_generic_for_unknown_email(self, service, mock_db, email_service):
        mock_db.users.find_one.return_value = None

        result = await service.request_password_reset("ghost@example.com")

        assert "If an account exists" in result["message"]
        email_service.send_password_reset_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_reset_with_bad_token(self, service, mock_db):
        mock_db.password_reset_tokens.find_one_and_update.return_value = None

        with pytest.raises(ValidationFailedError, match="Invalid or expired"):
            await service.reset_password("bad", "new-password-1")

    @pytest.mark.asyncio
    async def test_reset_consumes_token_and_rehashes(self, service, mock_db):
        mock_db.password_reset_tokens.find_one_and_update.return_value = {"user_id": "user-1", "token": "tok"}

        result = await service.reset_password("tok", "new-password-1")

        assert result == {"message": "Password has been reset"}
        query, update = mock_db.password_reset_tokens.find_one_and_update.await_args.args
        assert query["token"] == "tok"
        assert query["used"] is False
        assert "$gt" in query["expires_at"]
        assert update["$set"]["used"] is True
        user_query, user_update = mock_db.users.update_one.await_args.args
        assert user_query == {"id": "user-1"}
        new_hash = user_update["$set"]["password"]
        assert verify_password("new-password-1", new_hash)
        assert not verify_password(PASSWORD, new_hash)

    @pytest.mark.asyncio
    async def test_privacy_only_applies_booleans(self, service, mock_db):
        mock_db.users.find_one.return_value = _user(show_online_status=False)

        await service.update_privacy("user-1", {"show_online_status": False, "show_profile_picture": None})

        _, update = mock_db.users.update_one.await_args.args
        assert update["$set"]["show_online_status"] is False
        assert "show_profile_picture" not in update["$set"]


class TestLoginApproval:

    @pytest.fixture
    def approvals(self, mock_db):
        return LoginApprovalService(mock_db)

    def _approval(self, **overrides):
        approval = {
            "id": "appr-1",
            "user_id": "user-1",
            "status": "pending",
            "approval_token": "a" * 64,
            "expires_at": (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat(),
        }
        approval.update(overrides)
        return approval

    @pytest.mark.asyncio
    async def test_create_token_and_expiry(self, approvals):
        approval = await approvals.create_login_approval("user-1", "10.0.0.1", "UA", "Laptop")

        assert len(approval["approval_token"]) == 64
        expires = datetime.fromisoformat(approval["expires_at"])
        created = datetime.fromisoformat(approval["created_at"])
        assert expires - created == timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_approve(self, approvals, mock_db):
        mock_db.login_approvals.find_one.return_value = self._approval()
        mock_db.login_approvals.update_one.return_value = MagicMock(modified_count=1)

        result = await approvals.approve_login("a" * 64)

        assert result == {"user_id": "user-1", "status": "approved"}

    @pytest.mark.asyncio
    async def test_approve_unknown_token(self, approvals, mock_db):
        mock_db.login_approvals.find_one.return_value = None

        with pytest.raises(NotFoundError, match="Invalid approval token"):
            await approvals.approve_login("nope")

    @pytest.mark.asyncio
    async def test_approve_non_pending(self, approvals, mock_db):
        mock_db.login_approvals.find_one.return_value = self._approval(status="rejected")

        with pytest.raises(ValidationFailedError, match="no longer pending"):
            await approvals.approve_login("a" * 64)

    @pytest.mark.asyncio
    async def test_approve_expired_marks_expired(self, approvals, mock_db):
        past = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
        mock_db.login_approvals.find_one.return_value = self._approval(expires_at=past)
        mock_db.login_approvals.update_one.return_value = MagicMock(modified_count=1)

        with pytest.raises(ValidationFailedError, match="expired"):
            await approvals.approve_login("a" * 64)

        _, update = mock_db.login_approvals.update_one.await_args.args
        assert update["$set"]["status"] == "expired"

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, approvals):
        with pytest.raises(ValidationFailedError):
            await approvals.reject_login("a" * 64, "")

    @pytest.mark.asyncio
    async def test_status_never_exposes_token(self, approvals, mock_db):
        mock_db.login_approvals.find_one.return_value = {"id": "appr-1", "status": "pending"}

        await approvals.get_status("appr-1")

        query, projection = mock_db.login_approvals.find_one.await_args.args
        assert query == {"id": "appr-1"}
        assert "approval_token" not in projection
        assert projection["_id"] == 0

    @pytest.mark.asyncio
    async def test_status_unknown_id(self, approvals, mock_db):
        mock_db.login_approvals.find_one.return_value = None

        with pytest.raises(NotFoundError):
            await approvals.get_status("ghost")

    @pytest.mark.asyncio
    async def test_pending_list_excludes_expired_and_hides_token(self, approvals, mock_db, make_cursor):
        mock_db.login_approvals.find = MagicMock(return_value=make_cursor([]))
        before = datetime.now(timezone.utc).isoformat()

        await approvals.get_pending_approvals("user-1")

        query, projection = mock_db.login_approvals.find.call_args.args
        assert query["user_id"] == "user-1"
        assert query["status"] == "pending"
        assert query["expires_at"]["$gt"] >= before
        assert projection["approval_token"] == 0

    @pytest.mark.asyncio
    async def test_complete_issues_token_once(self, approvals, mock_db):
        mock_db.login_approvals.find_one_and_update.return_value = self._approval(status="approved")
        mock_db.users.find_one.return_value = {"id": "user-1", "email": "user@example.com", "is_admin": False}

        result = await approvals.complete_login("appr-1")

        assert result["token_type"] == "bearer"
        query, _ = mock_db.login_approvals.find_one_and_update.await_args.args
        assert query == {"id": "appr-1", "status": "approved", "consumed_at": None}

    @pytest.mark.asyncio
    async def test_complete_unapproved(self, approvals, mock_db):
        mock_db.login_approvals.find_one_and_update.return_value = None

        with pytest.raises(ValidationFailedError):
            await approvals.complete_login("appr-1")

    @pytest.mark.asyncio
    async def test_expire_stale(self, approvals, mock_db):
        mock_db.login_approvals.update_many.return_value = MagicMock(modified_count=2)

        assert await approvals.expire_stale_approvals() == 2
