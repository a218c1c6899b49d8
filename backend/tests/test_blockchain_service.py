"""
Unit Tests for Blockchain Service
=================================

Tests:
1. Trade execution: validation, pricing, fee, wallet debits/credits
2. Simulated confirmation sweep and on-demand verification
3. Trading stats and the public recent feed
"""

import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock, MagicMock

from services.blockchain_service import BlockchainService
from utils.errors import ValidationFailedError, NotFoundError

BTC_ADDR = "1BoatSLRHtKNngkdXEeobR76b53LETtpyT"
ETH_ADDR = "0x" + "a" * 40


@pytest.fixture
def crypto_service():
    crypto = AsyncMock()
    prices = {"BTC": 40000.0, "ETH": 2000.0, "USDT": 1.0}
    crypto.get_crypto_price.side_effect = lambda c: prices[c]
    crypto.get_all_prices.return_value = {c: {"currency": c, "price_usd": p} for c, p in prices.items()}
    return crypto


@pytest.fixture
def wallet_service():
    return AsyncMock()


@pytest.fixture
def service(mock_db, crypto_service, wallet_service):
    return BlockchainService(mock_db, crypto_service, wallet_service)


def _wallets(mapping):
    async def find_wallet(user_id, currency):
        return mapping.get(currency)
    return find_wallet


class TestExecuteTrade:

    @pytest.mark.asyncio
    async def test_same_currency_rejected(self, service):
        with pytest.raises(ValidationFailedError, match="itself"):
            await service.execute_trade("user-1", "BTC", "BTC", 1.0, BTC_ADDR, BTC_ADDR)

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, service):
        with pytest.raises(ValidationFailedError, match="greater than zero"):
            await service.execute_trade("user-1", "BTC", "ETH", 0, BTC_ADDR, ETH_ADDR)

    @pytest.mark.asyncio
    async def test_missing_addresses_rejected(self, service, wallet_service):
        wallet_service.find_wallet.side_effect = _wallets({})

        with pytest.raises(ValidationFailedError, match="Wallet addresses required"):
            await service.execute_trade("user-1", "BTC", "ETH", 1.0)

    @pytest.mark.asyncio
    async def test_trade_without_wallets_records_transaction(self, service, mock_db, wallet_service):
        """Explicit addresses and no wallets: priced, fee applied, no balance changes."""
        wallet_service.find_wallet.side_effect = _wallets({})

        result = await service.execute_trade("user-1", "BTC", "ETH", 1.0, BTC_ADDR, ETH_ADDR)

        # 1 BTC = 20 ETH, less 0.5%
        assert result["received_amount"] == pytest.approx(19.9)
        tx = result["transaction"]
        assert tx["type"] == "trade"
        assert tx["status"] == "pending"
        assert tx["metadata"]["trade_pair"] == "BTC/ETH"
        assert tx["metadata"]["fee"] == pytest.approx(0.005)
        mock_db.blockchain_transactions.insert_one.assert_awaited_once()
        wallet_service.adjust_balance.assert_not_called()

    @pytest.mark.asyncio
    async def test_trade_moves_wallet_balances(self, service, wallet_service):
        wallet_service.find_wallet.side_effect = _wallets({
            "BTC": {"wallet_address": BTC_ADDR, "balance": 2.0},
            "ETH": {"wallet_address": ETH_ADDR, "balance": 0.0},
        })

        result = await service.execute_trade("user-1", "BTC", "ETH", 1.0)

        assert result["transaction"]["from_address"] == BTC_ADDR
        assert result["transaction"]["to_address"] == ETH_ADDR
        wallet_service.adjust_balance.assert_any_await("user-1", "BTC", -1.0)
        credit = wallet_service.adjust_balance.await_args_list[-1]
        assert credit.args[:2] == ("user-1", "ETH")
        assert credit.args[2] == pytest.approx(19.9)

    @pytest.mark.asyncio
    async def test_insufficient_balance_aborts_before_recording(self, service, mock_db, wallet_service):
        wallet_service.find_wallet.side_effect = _wallets({
            "BTC": {"wallet_address": BTC_ADDR, "balance": 0.1},
            "ETH": {"wallet_address": ETH_ADDR, "balance": 0.0},
        })
        wallet_service.adjust_balance.side_effect = ValidationFailedError("Insufficient balance")

        with pytest.raises(ValidationFailedError, match="Insufficient balance"):
            await service.execute_trade("user-1", "BTC", "ETH", 1.0)

        mock_db.blockchain_transactions.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_finite_amount_rejected(self, service, wallet_service):
        for amount in (float("nan"), float("inf")):
            with pytest.raises(ValidationFailedError, match="greater than zero"):
                await service.execute_trade("user-1", "BTC", "ETH", amount, BTC_ADDR, ETH_ADDR)
        wallet_service.adjust_balance.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_recording_refunds_debit(self, service, mock_db, wallet_service):
        wallet_service.find_wallet.side_effect = _wallets({
            "BTC": {"wallet_address": BTC_ADDR, "balance": 2.0},
            "ETH": {"wallet_address": ETH_ADDR, "balance": 0.0},
        })
        mock_db.blockchain_transactions.insert_one.side_effect = RuntimeError("write failed")

        with pytest.raises(RuntimeError):
            await service.execute_trade("user-1", "BTC", "ETH", 1.0)

        calls = [c.args for c in wallet_service.adjust_balance.await_args_list]
        assert calls == [("user-1", "BTC", -1.0), ("user-1", "BTC", 1.0)]
        mock_db.blockchain_transactions.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_credit_refunds_and_marks_transaction_failed(self, service, mock_db, wallet_service):
        wallet_service.find_wallet.side_effect = _wallets({
            "BTC": {"wallet_address": BTC_ADDR, "balance": 2.0},
            "ETH": {"wallet_address": ETH_ADDR, "balance": 0.0},
        })

        async def adjust(user_id, currency, delta):
            if currency == "ETH":
                raise RuntimeError("credit failed")

        wallet_service.adjust_balance.side_effect = adjust

        with pytest.raises(RuntimeError, match="credit failed"):
            await service.execute_trade("user-1", "BTC", "ETH", 1.0)

        assert wallet_service.adjust_balance.await_args_list[-1].args == ("user-1", "BTC", 1.0)
        query, update = mock_db.blockchain_transactions.update_one.await_args.args
        assert query["status"] == "pending"
        assert update["$set"]["status"] == "failed"

class TestConfirmation:

    @pytest.mark.asyncio
    async def test_sweep_confirms_old_pending(self, service, mock_db, make_cursor):
        mock_db.blockchain_transactions.find = MagicMock(return_value=make_cursor([
            {"id": "tx-1", "transaction_hash": "0x1"},
            {"id": "tx-2", "transaction_hash": "0x2"},
        ]))
        mock_db.blockchain_transactions.update_one.side_effect = [
            MagicMock(modified_count=1),
            MagicMock(modified_count=0),  # confirmed concurrently
        ]

        confirmed = await service.confirm_pending_transactions()

        assert confirmed == 1
        query, update = mock_db.blockchain_transactions.update_one.await_args_list[0].args
        assert query == {"id": "tx-1", "status": "pending"}
        fields = update["$set"]
        assert fields["status"] == "confirmed"
        assert fields["confirmations"] == 12
        assert fields["verified"] is True
        assert 15_000_000 <= fields["block_number"] < 16_000_000

    @pytest.mark.asyncio
    async def test_verify_confirms_due_transaction(self, service, mock_db):
        old = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
        pending = {"id": "tx-1", "transaction_hash": "0xabc", "status": "pending",
                   "created_at": old, "verified": False, "confirmations": 0}
        confirmed = {**pending, "status": "confirmed", "verified": True, "confirmations": 12}
        mock_db.blockchain_transactions.find_one.side_effect = [pending, confirmed]
        mock_db.blockchain_transactions.update_one.return_value = MagicMock(modified_count=1)

        tx = await service.verify_transaction("0xabc")

        assert tx["verified"] is True
        mock_db.blockchain_transactions.update_one.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_verify_leaves_fresh_transaction_pending(self, service, mock_db):
        fresh = {"id": "tx-1", "transaction_hash": "0xabc", "status": "pending",
                 "created_at": datetime.now(timezone.utc).isoformat(), "verified": False}
        mock_db.blockchain_transactions.find_one.return_value = fresh

        tx = await service.verify_transaction("0xabc")

        assert tx["status"] == "pending"
        mock_db.blockchain_transactions.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_verify_unknown_hash(self, service, mock_db):
        mock_db.blockchain_transactions.find_one.return_value = None

        with pytest.raises(NotFoundError):
            await service.verify_transaction("0xnope")


class TestStats:

    @pytest.mark.asyncio
    async def test_stats_empty(self, service, mock_db, make_cursor):
        mock_db.blockchain_transactions.find = MagicMock(return_value=make_cursor([]))

        stats = await service.get_trading_stats("user-1")

        assert stats == {
            "total_trades": 0,
            "total_volume_usd": 0.0,
            "total_fees_usd": 0.0,
            "most_traded_pair": "N/A",
        }

    @pytest.mark.asyncio
    async def test_stats_volume_and_pair(self, service, mock_db, make_cursor):
        mock_db.blockchain_transactions.find = MagicMock(return_value=make_cursor([
            {"amount": 1.0, "currency": "BTC", "metadata": {"trade_pair": "BTC/ETH", "fee": 0.005}},
            {"amount": 0.5, "currency": "BTC", "metadata": {"trade_pair": "BTC/ETH", "fee": 0.0025}},
            {"amount": 10.0, "currency": "ETH", "metadata": {"trade_pair": "ETH/USDT", "fee": 0.05}},
        ]))

        stats = await service.get_trading_stats("user-1")

        assert stats["total_trades"] == 3
        assert stats["total_volume_usd"] == pytest.approx(80000.0)
        assert stats["total_fees_usd"] == pytest.approx(400.0)
        assert stats["most_traded_pair"] == "BTC/ETH"

    @pytest.mark.asyncio
    async def test_recent_feed_hides_owner(self, service, mock_db, make_cursor):
        mock_db.blockchain_transactions.find = MagicMock(return_value=make_cursor([]))

        await service.get_recent_transactions(5)

        query, projection = mock_db.blockchain_transactions.find.call_args.args
        assert query == {"verified": True}
        assert projection["user_id"] == 0
