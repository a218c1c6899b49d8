"""
MongoDB Index Definitions
=========================
Creates all required indexes for the application collections.
Run once during application startup.
"""
import logging
from typing import Dict, Any, List, Tuple

logger = logging.getLogger(__name__)

# collection -> [(keys, options)]
INDEXES: Dict[str, List[Tuple[Any, Dict[str, Any]]]] = {
    "users": [
        ("id", {"unique": True}),
        ("email", {"unique": True}),
    ],
    "password_reset_tokens": [
        ("token", {"unique": True}),
    ],
    "blockchain_transactions": [
        ("id", {"unique": True}),
        ("transaction_hash", {"unique": True}),
        ([("user_id", 1), ("created_at", -1)], {}),
        ([("status", 1), ("created_at", 1)], {}),
        ([("verified", 1), ("confirmed_at", -1)], {}),
    ],
    "user_wallets": [
        ("id", {"unique": True}),
        ([("user_id", 1), ("wallet_type", 1), ("is_active", 1)], {}),
        # One active wallet per (user, type)
        ([("user_id", 1), ("wallet_type", 1)], {
            "unique": True,
            "partialFilterExpression": {"is_active": True},
            "name": "one_active_wallet_per_type",
        }),
    ],
    "wallet_requests": [
        ("id", {"unique": True}),
        ([("user_id", 1), ("wallet_type", 1), ("status", 1)], {}),
        # One pending crypto wallet request per (user, type); manual requests repeat
        ([("user_id", 1), ("wallet_type", 1)], {
            "unique": True,
            "partialFilterExpression": {"status": "pending", "is_manual": False},
            "name": "one_pending_wallet_request_per_type",
        }),
        ([("status", 1), ("requested_at", 1)], {}),
    ],
    "deposit_confirmations": [
        ("id", {"unique": True}),
        ([("user_id", 1), ("deposit_date", -1)], {}),
        ("status", {}),
    ],
    "login_approvals": [
        ("id", {"unique": True}),
        ("approval_token", {"unique": True}),
        ([("user_id", 1), ("status", 1)], {}),
        ([("status", 1), ("expires_at", 1)], {}),
    ],
    "products": [
        ("id", {"unique": True}),
        ("sku", {"unique": True}),
        ([("category", 1), ("is_active", 1)], {}),
    ],
    "marketplace_listings": [
        ("id", {"unique": True}),
        ([("seller_id", 1), ("created_at", -1)], {}),
        ([("status", 1), ("expires_at", 1)], {}),
        ([("category", 1), ("status", 1)], {}),
    ],
    "orders": [
        ("id", {"unique": True}),
        ("order_number", {"unique": True}),
        ([("user_id", 1), ("created_at", -1)], {}),
    ],
    "memberships": [
        ("id", {"unique": True}),
        ("user_id", {"unique": True}),
        ([("status", 1), ("auto_renew", 1), ("next_payment_date", 1)], {}),
    ],
    "friend_requests": [
        ("id", {"unique": True}),
        ([("from_user_id", 1), ("to_user_id", 1), ("status", 1)], {}),
        ([("to_user_id", 1), ("status", 1)], {}),
    ],
    "api_cache": [
        ("cache_key", {"unique": True}),
    ],
    "audit_logs": [
        ([("timestamp", -1)], {}),
    ],
}


async def create_all_indexes(db) -> Dict[str, Any]:
    """
    Create all required indexes.

    Each collection is handled independently so one failure does not
    block the rest.

    Returns:
        Summary of indexes created, "OK" or "ERROR: ..." per collection
    """
    results = {}

    for collection, indexes in INDEXES.items():
        try:
            for keys, options in indexes:
                await db[collection].create_index(keys, **options)
            results[collection] = "OK"
        except Exception as e:
            results[collection] = f"ERROR: {e}"
            logger.error(f"Index creation failed for {collection}: {e}")

    logger.info(f"Index creation complete: {results}")
    return results
