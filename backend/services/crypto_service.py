"""
Crypto Service

Price lookups (CoinGecko pass-through with api_cache), conversion,
address generation/validation and simulated transaction hashes.

Price policy:
- CoinGecko is the only live source
- Results are cached in api_cache for PRICE_CACHE_SECONDS
- On feed failure, dev/test fall back to MOCK_PRICES; production raises
  PriceUnavailableError
"""
import asyncio
import logging
import math
import re
import secrets
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, List, Optional

import httpx

from config import SUPPORTED_CRYPTO, COINGECKO_IDS, MOCK_PRICES
from utils.environment import allow_mock_data, COINGECKO_API_URL, PRICE_CACHE_SECONDS
from utils.errors import ValidationFailedError, PriceUnavailableError

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = httpx.Timeout(10.0, connect=5.0)

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BTC_ADDRESS_RE = re.compile(r"^[13][a-km-zA-HJ-NP-Z1-9]{25,34}$")
ETH_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_currency(currency: str) -> str:
    """Upper-case and check a currency code against SUPPORTED_CRYPTO."""
    code = (currency or "").upper()
    if code not in SUPPORTED_CRYPTO:
        raise ValidationFailedError("Invalid currency")
    return code


def generate_bitcoin_address() -> str:
    """Random legacy-format (P2PKH-looking) address: '1' + 33 base58 chars."""
    return "1" + "".join(secrets.choice(BASE58_ALPHABET) for _ in range(33))


def generate_ethereum_address() -> str:
    return "0x" + secrets.token_hex(20)


def generate_address(wallet_type: str) -> str:
    """Generate a simulated deposit address for a crypto wallet type."""
    wallet_type = (wallet_type or "").upper()
    if wallet_type == "BTC":
        return generate_bitcoin_address()
    if wallet_type in ("ETH", "USDT"):
        # USDT is modelled as an ERC-20 token
        return generate_ethereum_address()
    raise ValidationFailedError(f"Cannot generate an address for {wallet_type}")


def validate_bitcoin_address(address: str) -> bool:
    return bool(address) and 26 <= len(address) <= 35 and bool(BTC_ADDRESS_RE.match(address))


def validate_ethereum_address(address: str) -> bool:
    return bool(address) and bool(ETH_ADDRESS_RE.match(address))


def validate_address(wallet_type: str, address: str) -> bool:
    wallet_type = (wallet_type or "").upper()
    if wallet_type == "BTC":
        return validate_bitcoin_address(address)
    if wallet_type in ("ETH", "USDT"):
        return validate_ethereum_address(address)
    if wallet_type == "PAYPAL":
        return bool(address) and bool(EMAIL_RE.match(address))
    return False


def simulate_transaction_hash(currency: str, amount: float) -> str:
    tx_hash = "0x" + secrets.token_hex(32)
    logger.info(f"Simulated {currency} transaction of {amount}: {tx_hash}")
    return tx_hash


class CryptoService:
    """Price feed access with cache and mock fallback."""

    def __init__(self, db):
        self.db = db

    # ==================== CACHE ====================

    async def _get_cached(self, cache_key: str) -> Optional[Any]:
        try:
            cached = await self.db.api_cache.find_one({"cache_key": cache_key}, {"_id": 0})
            if cached:
                cached_at = datetime.fromisoformat(cached["cached_at"].replace('Z', '+00:00'))
                age = (datetime.now(timezone.utc) - cached_at).total_seconds()
                if age < PRICE_CACHE_SECONDS:
                    return cached.get("data")
        except Exception as e:
            logger.error(f"Cache retrieval error: {e}")
        return None

    async def _set_cached(self, cache_key: str, data: Any) -> None:
        try:
            await self.db.api_cache.update_one(
                {"cache_key": cache_key},
                {"$set": {
                    "cache_key": cache_key,
                    "data": data,
                    "cached_at": datetime.now(timezone.utc).isoformat()
                }},
                upsert=True
            )
        except Exception as e:
            logger.error(f"Cache storage error: {e}")

    # ==================== FEED ====================

    async def _fetch_market_data(self, currency: str) -> Dict[str, Any]:
        coin_id = COINGECKO_IDS[currency]
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
            r = await client.get(
                f"{COINGECKO_API_URL}/simple/price",
                params={
                    "ids": coin_id,
                    "vs_currencies": "usd",
                    "include_24hr_change": "true",
                    "include_market_cap": "true",
                    "include_24hr_vol": "true",
                },
            )
            r.raise_for_status()
            row = r.json().get(coin_id)
        if not row or not row.get("usd"):
            raise ValueError(f"No price for {coin_id} in response")
        return {
            "currency": currency,
            "price_usd": float(row["usd"]),
            "change_24h": row.get("usd_24h_change"),
            "market_cap": row.get("usd_market_cap"),
            "volume_24h": row.get("usd_24h_vol"),
            "last_updated": datetime.now(timezone.utc).isoformat(),
            "source": "coingecko",
        }

    async def _fetch_chart(self, currency: str, days: int) -> List[Dict[str, Any]]:
        coin_id = COINGECKO_IDS[currency]
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
            r = await client.get(
                f"{COINGECKO_API_URL}/coins/{coin_id}/market_chart",
                params={"vs_currency": "usd", "days": days},
            )
            r.raise_for_status()
            prices = r.json().get("prices") or []
        return [{"timestamp": int(ts), "price": float(price)} for ts, price in prices]

    def _mock_fallback(self, currency: str, reason: str) -> None:
        """Raise in production, log and allow in dev/test."""
        if not allow_mock_data():
            logger.warning(
                f"MOCK_PRICE_FALLBACK_BLOCKED_PRODUCTION | currency={currency} | reason={reason}"
            )
            raise PriceUnavailableError(currency, reason)
        logger.warning(f"MOCK_PRICE_FALLBACK_USED | currency={currency} | reason={reason}")

    # ==================== PUBLIC API ====================

    async def get_crypto_data(self, currency: str) -> Dict[str, Any]:
        currency = normalize_currency(currency)
        cache_key = f"crypto_price_{currency}"

        cached = await self._get_cached(cache_key)
        if cached:
            return cached

        try:
            data = await self._fetch_market_data(currency)
        except Exception as e:
            self._mock_fallback(currency, str(e))
            return {
                "currency": currency,
                "price_usd": MOCK_PRICES[currency],
                "change_24h": 0.0,
                "market_cap": None,
                "volume_24h": None,
                "last_updated": datetime.now(timezone.utc).isoformat(),
                "source": "mock",
            }

        await self._set_cached(cache_key, data)
        return data

    async def get_crypto_price(self, currency: str) -> float:
        data = await self.get_crypto_data(currency)
        return data["price_usd"]

    async def get_all_prices(self) -> Dict[str, Dict[str, Any]]:
        results = await asyncio.gather(*[self.get_crypto_data(c) for c in SUPPORTED_CRYPTO])
        return {row["currency"]: row for row in results}

    async def get_chart_data(self, currency: str, days: int = 7) -> List[Dict[str, Any]]:
        currency = normalize_currency(currency)
        days = max(1, min(int(days), 365))
        cache_key = f"crypto_chart_{currency}_{days}"

        cached = await self._get_cached(cache_key)
        if cached:
            return cached

        try:
            points = await self._fetch_chart(currency, days)
            if not points:
                raise ValueError("Empty chart response")
        except Exception as e:
            self._mock_fallback(currency, str(e))
            return self._mock_chart(currency, days)

        await self._set_cached(cache_key, points)
        return points

    def _mock_chart(self, currency: str, days: int) -> List[Dict[str, Any]]:
        """Deterministic walk around the mock price, hourly for 1 day, daily otherwise."""
        base = MOCK_PRICES[currency]
        step = timedelta(hours=1) if days == 1 else timedelta(days=1)
        count = 24 if days == 1 else days
        end = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
        points = []
        for i in range(count + 1):
            ts = end - step * (count - i)
            price = base * (1 + 0.02 * math.sin(i / 3.0))
            points.append({"timestamp": int(ts.timestamp() * 1000), "price": round(price, 6)})
        return points

    async def convert_crypto(self, amount: float, from_currency: str, to_currency: str) -> float:
        from_currency = normalize_currency(from_currency)
        to_currency = normalize_currency(to_currency)
        if from_currency == to_currency:
            return amount
        from_price, to_price = await asyncio.gather(
            self.get_crypto_price(from_currency),
            self.get_crypto_price(to_currency),
        )
        return amount * from_price / to_price
