"""
Unit Tests for friends, admin, indexes, scheduler wiring, set_admin and email templates
"""

import re
import pytest
from unittest.mock import AsyncMock, MagicMock

from services.friend_request_service import FriendRequestService
from services.admin_service import AdminService
from services.db_indexes import create_all_indexes, INDEXES
from services.scheduler_setup import setup_scheduler
from scripts.set_admin import set_admin
from utils.errors import ValidationFailedError, NotFoundError, PermissionDeniedError


class TestFriendRequests:

    @pytest.fixture
    def service(self, mock_db):
        return FriendRequestService(mock_db)

    @pytest.mark.asyncio
    async def test_cannot_befriend_self(self, service):
        with pytest.raises(ValidationFailedError, match="yourself"):
            await service.send_request("user-1", "user-1")

    @pytest.mark.asyncio
    async def test_unknown_target(self, service, mock_db):
        mock_db.users.find_one.return_value = None

        with pytest.raises(NotFoundError):
            await service.send_request("user-1", "ghost")

    @pytest.mark.asyncio
    async def test_duplicate_pending_in_either_direction(self, service, mock_db):
        mock_db.users.find_one.return_value = {"id": "user-2"}
        mock_db.friend_requests.find_one.side_effect = [None, {"id": "fr-1"}]

        with pytest.raises(ValidationFailedError, match="Request already sent"):
            await service.send_request("user-1", "user-2")

        pending_query = mock_db.friend_requests.find_one.await_args_list[1].args[0]
        assert {"from_user_id": "user-2", "to_user_id": "user-1"} in pending_query["$or"]

    @pytest.mark.asyncio
    async def test_send(self, service, mock_db):
        mock_db.users.find_one.return_value = {"id": "user-2"}
        mock_db.friend_requests.find_one.return_value = None

        request = await service.send_request("user-1", "user-2")

        assert request["status"] == "pending"
        mock_db.friend_requests.insert_one.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_only_recipient_responds(self, service, mock_db):
        mock_db.friend_requests.find_one.return_value = {"id": "fr-1", "from_user_id": "user-1", "to_user_id": "user-2"}

        with pytest.raises(PermissionDeniedError):
            await service.respond_request("fr-1", "user-1", True)

    @pytest.mark.asyncio
    async def test_accept(self, service, mock_db):
        mock_db.friend_requests.find_one.return_value = {"id": "fr-1", "from_user_id": "user-1", "to_user_id": "user-2"}
        mock_db.friend_requests.find_one_and_update.return_value = {"id": "fr-1", "status": "accepted"}

        result = await service.respond_request("fr-1", "user-2", True)

        assert result["status"] == "accepted"
        _, update = mock_db.friend_requests.find_one_and_update.await_args.args
        assert update["$set"]["status"] == "accepted"

    @pytest.mark.asyncio
    async def test_list_friends_returns_other_side(self, service, mock_db, make_cursor):
        mock_db.friend_requests.find = MagicMock(return_value=make_cursor([
            {"from_user_id": "user-1", "to_user_id": "user-2"},
            {"from_user_id": "user-3", "to_user_id": "user-1"},
        ]))

        assert await service.list_friends("user-1") == ["user-2", "user-3"]


class TestAdminService:

    @pytest.fixture
    def blockchain(self):
        return AsyncMock()

    @pytest.fixture
    def service(self, mock_db, blockchain):
        return AdminService(mock_db, blockchain)

    @pytest.mark.asyncio
    async def test_stats(self, service, mock_db, blockchain):
        mock_db.users.count_documents.side_effect = [10, 2]
        mock_db.blockchain_transactions.count_documents.return_value = 30
        blockchain.get_volume_usd.return_value = 1234.5

        stats = await service.get_stats()

        assert stats == {
            "total_users": 10,
            "total_admins": 2,
            "total_transactions": 30,
            "total_transaction_volume": 1234.5,
        }

    @pytest.mark.asyncio
    async def test_user_search_is_escaped(self, service, mock_db, make_cursor):
        mock_db.users.find = MagicMock(return_value=make_cursor([]))
        mock_db.users.count_documents.return_value = 0

        await service.get_all_users(search="a.b*")

        query, projection = mock_db.users.find.call_args.args
        assert query["$or"][0]["email"]["$regex"] == re.escape("a.b*")
        assert projection["password"] == 0

    @pytest.mark.asyncio
    async def test_cannot_delete_self(self, service, admin):
        with pytest.raises(ValidationFailedError):
            await service.delete_user("admin-1", admin)

    @pytest.mark.asyncio
    async def test_cannot_delete_admin(self, service, mock_db, admin):
        mock_db.users.find_one.return_value = {"id": "admin-2", "email": "x@example.com", "is_admin": True}

        with pytest.raises(PermissionDeniedError):
            await service.delete_user("admin-2", admin)
        mock_db.users.delete_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_writes_audit_log(self, service, mock_db, admin):
        mock_db.users.find_one.return_value = {"id": "user-1", "email": "user@example.com", "is_admin": False}

        result = await service.delete_user("user-1", admin)

        assert result["deleted_user_id"] == "user-1"
        entry = mock_db.audit_logs.insert_one.await_args.args[0]
        assert entry["action"] == "delete_user"
        assert entry["admin_id"] == "admin-1"

    @pytest.mark.asyncio
    async def test_make_admin_missing_user(self, service, mock_db, admin):
        mock_db.users.find_one_and_update.return_value = None

        with pytest.raises(NotFoundError):
            await service.make_user_admin("ghost", admin)


class TestIndexesAndScheduler:

    @pytest.mark.asyncio
    async def test_one_collection_failure_does_not_stop_others(self):
        collections = {}

        def get_collection(name):
            coll = collections.setdefault(name, MagicMock())
            coll.create_index = AsyncMock(side_effect=RuntimeError("boom") if name == "orders" else None)
            return coll

        db = MagicMock()
        db.__getitem__.side_effect = get_collection

        results = await create_all_indexes(db)

        assert results["orders"].startswith("ERROR")
        assert results["users"] == "OK"
        assert set(results) == set(INDEXES)

    def test_single_active_wallet_and_pending_request_are_unique(self):
        wallet_opts = next(o for k, o in INDEXES["user_wallets"] if o.get("name") == "one_active_wallet_per_type")
        request_opts = next(o for k, o in INDEXES["wallet_requests"] if o.get("name") == "one_pending_wallet_request_per_type")

        assert wallet_opts["unique"] is True
        assert wallet_opts["partialFilterExpression"] == {"is_active": True}
        assert request_opts["unique"] is True
        assert request_opts["partialFilterExpression"] == {"status": "pending", "is_manual": False}

    def test_scheduler_registers_sweeps(self):
        scheduler = MagicMock()

        setup_scheduler(scheduler, MagicMock())

        ids = {c.kwargs["id"] for c in scheduler.add_job.call_args_list}
        assert ids == {
            "blockchain_confirmations",
            "login_approval_expiry",
            "marketplace_listing_expiry",
            "membership_auto_renewal",
        }
        confirmations = next(c for c in scheduler.add_job.call_args_list if c.kwargs["id"] == "blockchain_confirmations")
        assert confirmations.kwargs["seconds"] == 5


class TestSetAdmin:

    @pytest.mark.asyncio
    async def test_unknown_email(self, mock_db):
        mock_db.users.find_one.return_value = None

        result = await set_admin(mock_db, "ghost@example.com")

        assert result["matched"] == 0

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, mock_db):
        mock_db.users.find_one.return_value = {"id": "user-1", "is_admin": False}

        result = await set_admin(mock_db, "User@Example.com", dry_run=True)

        assert "DRY-RUN" in result["message"]
        mock_db.users.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_promotes(self, mock_db):
        mock_db.users.find_one.return_value = {"id": "user-1", "is_admin": False}
        mock_db.users.update_one.return_value = MagicMock(matched_count=1, modified_count=1)

        result = await set_admin(mock_db, "user@example.com")

        assert result["modified"] == 1
        query, _ = mock_db.users.update_one.await_args.args
        assert query == {"email": "user@example.com"}


class TestEmailService:

    @pytest.mark.asyncio
    async def test_skipped_when_not_configured(self, mock_db, monkeypatch):
        from services.email_service import EmailService

        monkeypatch.delenv("RESEND_API_KEY", raising=False)
        mock_db.admin_settings.find_one.return_value = None

        result = await EmailService(mock_db).send_welcome_email({"email": "user@example.com"})

        assert result["status"] == "skipped"
        mock_db.email_logs.insert_one.assert_not_called()

    def test_templates_render_variables(self, mock_db):
        from services.email_service import EmailService, EMAIL_TEMPLATES

        html = EmailService(mock_db)._replace_variables(
            EMAIL_TEMPLATES["login_approval"]["html"],
            {"name": "Ada", "device_name": "Laptop", "ip_address": "10.0.0.1",
             "expires_at": "soon", "approve_url": "https://x/approve", "reject_url": "https://x/reject"},
        )

        assert "Hi Ada" in html
        assert 'href="https://x/approve"' in html
        assert "{{" not in html

    @pytest.mark.asyncio
    async def test_settings_lookup_failure_falls_back_to_env(self, mock_db, monkeypatch):
        from services.email_service import EmailService

        monkeypatch.setenv("RESEND_API_KEY", "re_test")
        mock_db.admin_settings.find_one.side_effect = RuntimeError("mongo down")

        service = EmailService(mock_db)

        assert await service.initialize() is True
        assert service.api_key == "re_test"

    @pytest.mark.asyncio
    async def test_send_failure_with_broken_log_still_returns_error(self, mock_db, monkeypatch):
        from services import email_service
        from services.email_service import EmailService

        monkeypatch.setenv("RESEND_API_KEY", "re_test")
        mock_db.admin_settings.find_one.return_value = None
        mock_db.email_logs.insert_one.side_effect = RuntimeError("mongo down")
        monkeypatch.setattr(email_service.resend.Emails, "send", MagicMock(side_effect=RuntimeError("rejected")))

        result = await EmailService(mock_db).send_welcome_email({"email": "user@example.com"})

        assert result == {"status": "error", "reason": "rejected"}
        entry = mock_db.email_logs.insert_one.await_args.args[0]
        assert entry["status"] == "failed"

    @pytest.mark.asyncio
    async def test_sent_email_survives_log_failure(self, mock_db, monkeypatch):
        from services import email_service
        from services.email_service import EmailService

        monkeypatch.setenv("RESEND_API_KEY", "re_test")
        mock_db.admin_settings.find_one.return_value = None
        mock_db.email_logs.insert_one.side_effect = RuntimeError("mongo down")
        monkeypatch.setattr(email_service.resend.Emails, "send", MagicMock(return_value={"id": "em-1"}))

        result = await EmailService(mock_db).send_welcome_email({"email": "user@example.com"})

        assert result == {"status": "success", "email_id": "em-1"}
