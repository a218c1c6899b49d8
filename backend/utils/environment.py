"""
Environment Configuration Utility

Provides environment detection, mock data policy enforcement and the
tunable settings read from the environment.

ENVIRONMENT values:
- production: No mock prices allowed, fail explicitly when the price feed is down
- development: Mock prices allowed as fallback
- test: Mock prices allowed for automated testing
"""
import os
import logging

# Valid environment values
VALID_ENVIRONMENTS = {"production", "development", "test"}

# Get current environment (default to development for safety)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "development").lower()

if ENVIRONMENT not in VALID_ENVIRONMENTS:
    logging.warning(f"Invalid ENVIRONMENT '{ENVIRONMENT}', defaulting to 'development'")
    ENVIRONMENT = "development"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logging.warning(f"Invalid {name} '{raw}', defaulting to {default}")
        return default


# Price feed
COINGECKO_API_URL = os.environ.get("COINGECKO_API_URL", "https://api.coingecko.com/api/v3").rstrip("/")
PRICE_CACHE_SECONDS = _int_env("PRICE_CACHE_SECONDS", 60)

# Simulated chain: pending transactions older than this are confirmed
CONFIRMATION_DELAY_SECONDS = _int_env("CONFIRMATION_DELAY_SECONDS", 5)

# Auth
JWT_EXPIRE_DAYS = _int_env("JWT_EXPIRE_DAYS", 7)


def is_production() -> bool:
    """Check if running in production environment."""
    return ENVIRONMENT == "production"


def allow_mock_data() -> bool:
    """
    Check if mock data fallback is allowed.

    Returns True only in development or test environments.
    Production must never return fabricated prices.
    """
    return ENVIRONMENT in {"development", "test"}


# Log environment on module load
logging.info(f"Environment: {ENVIRONMENT} | Mock data allowed: {allow_mock_data()}")
