"""
Unit Tests for Crypto Service
=============================

Tests:
1. Price lookup: cache hit, live feed, mock fallback, production block
2. Chart data clamping and deterministic fallback
3. Conversion
4. Address generation and validation
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from services.crypto_service import (
    CryptoService,
    generate_bitcoin_address,
    generate_ethereum_address,
    generate_address,
    validate_bitcoin_address,
    validate_ethereum_address,
    validate_address,
    simulate_transaction_hash,
    normalize_currency,
)
from utils.errors import ValidationFailedError, PriceUnavailableError


@pytest.fixture
def service(mock_db):
    mock_db.api_cache.find_one.return_value = None
    return CryptoService(mock_db)


def _live(currency, price):
    return {
        "currency": currency,
        "price_usd": price,
        "change_24h": 1.5,
        "market_cap": None,
        "volume_24h": None,
        "last_updated": datetime.now(timezone.utc).isoformat(),
        "source": "coingecko",
    }


class TestPriceLookup:

    @pytest.mark.asyncio
    async def test_cache_hit_skips_feed(self, service, mock_db):
        """A fresh cache entry is returned without calling the feed."""
        mock_db.api_cache.find_one.return_value = {
            "cache_key": "crypto_price_BTC",
            "data": _live("BTC", 61000.0),
            "cached_at": datetime.now(timezone.utc).isoformat(),
        }
        service._fetch_market_data = AsyncMock()

        data = await service.get_crypto_data("btc")

        assert data["price_usd"] == 61000.0
        service._fetch_market_data.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_cache_refetches(self, service, mock_db):
        mock_db.api_cache.find_one.return_value = {
            "cache_key": "crypto_price_ETH",
            "data": _live("ETH", 1.0),
            "cached_at": "2020-01-01T00:00:00+00:00",
        }
        service._fetch_market_data = AsyncMock(return_value=_live("ETH", 3100.0))

        price = await service.get_crypto_price("ETH")

        assert price == 3100.0
        mock_db.api_cache.update_one.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_feed_failure_uses_mock_outside_production(self, service):
        service._fetch_market_data = AsyncMock(side_effect=RuntimeError("timeout"))

        with patch("services.crypto_service.allow_mock_data", return_value=True):
            data = await service.get_crypto_data("BTC")

        assert data["price_usd"] == 45000.0
        assert data["source"] == "mock"

    @pytest.mark.asyncio
    async def test_feed_failure_raises_in_production(self, service):
        service._fetch_market_data = AsyncMock(side_effect=RuntimeError("timeout"))

        with patch("services.crypto_service.allow_mock_data", return_value=False):
            with pytest.raises(PriceUnavailableError) as exc:
                await service.get_crypto_data("ETH")

        assert exc.value.status_code == 503
        assert exc.value.currency == "ETH"

    @pytest.mark.asyncio
    async def test_invalid_currency(self, service):
        with pytest.raises(ValidationFailedError, match="Invalid currency"):
            await service.get_crypto_data("DOGE")

    @pytest.mark.asyncio
    async def test_get_all_prices_keys(self, service):
        service._fetch_market_data = AsyncMock(side_effect=lambda c: _live(c, 2.0))

        prices = await service.get_all_prices()

        assert set(prices) == {"BTC", "ETH", "USDT"}


class TestChartsAndConversion:

    @pytest.mark.asyncio
    async def test_chart_days_clamped(self, service):
        service._fetch_chart = AsyncMock(return_value=[{"timestamp": 1, "price": 2.0}])

        await service.get_chart_data("BTC", 1000)

        service._fetch_chart.assert_awaited_once_with("BTC", 365)

    @pytest.mark.asyncio
    async def test_mock_chart_is_deterministic(self, service):
        service._fetch_chart = AsyncMock(side_effect=RuntimeError("down"))

        with patch("services.crypto_service.allow_mock_data", return_value=True):
            first = await service.get_chart_data("ETH", 7)
            second = await service.get_chart_data("ETH", 7)

        assert len(first) == 8
        assert [p["price"] for p in first] == [p["price"] for p in second]

    @pytest.mark.asyncio
    async def test_convert_same_currency(self, service):
        service._fetch_market_data = AsyncMock()
        assert await service.convert_crypto(1.5, "BTC", "BTC") == 1.5
        service._fetch_market_data.assert_not_called()

    @pytest.mark.asyncio
    async def test_convert_uses_price_ratio(self, service):
        prices = {"BTC": 40000.0, "ETH": 2000.0}
        service._fetch_market_data = AsyncMock(side_effect=lambda c: _live(c, prices[c]))

        assert await service.convert_crypto(1, "BTC", "ETH") == pytest.approx(20.0)


class TestAddresses:

    def test_generated_bitcoin_address_validates(self):
        address = generate_bitcoin_address()
        assert address.startswith("1")
        assert len(address) == 34
        assert validate_bitcoin_address(address)

    def test_generated_ethereum_address_validates(self):
        address = generate_ethereum_address()
        assert len(address) == 42
        assert validate_ethereum_address(address)

    def test_usdt_uses_ethereum_format(self):
        assert validate_ethereum_address(generate_address("USDT"))

    def test_cannot_generate_paypal(self):
        with pytest.raises(ValidationFailedError):
            generate_address("PAYPAL")

    def test_invalid_addresses(self):
        assert not validate_bitcoin_address("0OIl" * 8)
        assert not validate_bitcoin_address("1short")
        assert not validate_ethereum_address("0x123")
        assert not validate_address("ETH", "")

    def test_paypal_address_is_email(self):
        assert validate_address("PAYPAL", "buyer@example.com")
        assert not validate_address("PAYPAL", "not-an-email")

    def test_transaction_hash_format(self):
        tx_hash = simulate_transaction_hash("BTC", 1.0)
        assert tx_hash.startswith("0x")
        assert len(tx_hash) == 66

    def test_normalize_currency(self):
        assert normalize_currency("usdt") == "USDT"
