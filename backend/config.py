"""
Domain Configuration and Constants

Currencies, fees, tier tables and expiry windows used across services.
All monetary values are in USD.
"""

# ==================== CURRENCIES ====================
SUPPORTED_CRYPTO = ["BTC", "ETH", "USDT"]

# CoinGecko coin ids for the supported currencies
COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
}

# Dev/test fallback when the price feed is unavailable
MOCK_PRICES = {
    "BTC": 45000.0,
    "ETH": 2500.0,
    "USDT": 1.0,
}

WALLET_TYPES = ["BTC", "ETH", "USDT", "PAYPAL"]

# Deposit currency -> wallet type credited on confirmation
DEPOSIT_WALLET_TYPES = {
    "BTC": "BTC",
    "ETH": "ETH",
    "USDT": "USDT",
    "USD": "PAYPAL",
}

# ==================== TRADING ====================
TRADING_FEE_RATE = 0.005

# Simulated chain
CONFIRMED_BLOCK_CONFIRMATIONS = 12
BLOCK_NUMBER_BASE = 15_000_000
BLOCK_NUMBER_SPREAD = 1_000_000

# ==================== DEPOSITS ====================
DEFAULT_REQUIRED_CONFIRMATIONS = 3

# ==================== WALLET REQUESTS ====================
MANUAL_REQUEST_TYPES = {"manual-deposit", "manual-withdraw"}

# ==================== LOGIN APPROVAL ====================
LOGIN_APPROVAL_TTL_HOURS = 24

# ==================== AUTH ====================
MIN_PASSWORD_LENGTH = 8
BACKUP_CODE_COUNT = 10
PASSWORD_RESET_TTL_HOURS = 24
TOTP_ISSUER = "TCW1"

# ==================== MARKETPLACE ====================
LISTING_TTL_DAYS = 60

# ==================== MEMBERSHIPS ====================
MEMBERSHIP_TIERS = {
    "basic": {
        "monthly_fee": 0.0,
        "benefits": [
            "Access to platform",
            "Standard support",
        ],
    },
    "premium": {
        "monthly_fee": 9.99,
        "benefits": [
            "Access to platform",
            "Priority support",
            "Advanced features",
            "Monthly webinars",
        ],
    },
    "gold": {
        "monthly_fee": 29.99,
        "benefits": [
            "Access to platform",
            "Priority 24/7 support",
            "All advanced features",
            "Weekly webinars",
            "Personal account manager",
        ],
    },
    "platinum": {
        "monthly_fee": 99.99,
        "benefits": [
            "Everything in Gold",
            "Dedicated account manager",
            "Custom integrations",
            "Priority API access",
            "VIP events",
        ],
    },
}

# ==================== PAGINATION ====================
MAX_PAGE_SIZE = 100
MAX_TRANSACTION_LIMIT = 200
