"""
Promote an existing user to admin.

Usage:
    python scripts/set_admin.py user@example.com
    python scripts/set_admin.py user@example.com --dry-run
"""

import os
import sys
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def set_admin(db, email: str, dry_run: bool = False) -> Dict[str, Any]:
    """Set is_admin on the user with this email; returns matched/modified counts."""
    email = email.strip().lower()
    user = await db.users.find_one({"email": email}, {"_id": 0, "id": 1, "is_admin": 1})
    if not user:
        return {"matched": 0, "modified": 0, "message": f"No user with email {email}"}
    if user.get("is_admin"):
        return {"matched": 1, "modified": 0, "message": f"{email} is already an admin"}
    if dry_run:
        return {"matched": 1, "modified": 0, "message": f"[DRY-RUN] Would promote {email} to admin"}

    result = await db.users.update_one(
        {"email": email},
        {"$set": {"is_admin": True, "updated_at": datetime.now(timezone.utc).isoformat()}}
    )
    return {
        "matched": result.matched_count,
        "modified": result.modified_count,
        "message": f"{email} promoted to admin",
    }


async def run(email: str, dry_run: bool = False):
    from dotenv import load_dotenv

    load_dotenv(Path(__file__).parent.parent / '.env')

    mongo_url = os.environ.get('MONGO_URL')
    db_name = os.environ.get('DB_NAME')
    if not mongo_url or not db_name:
        logger.error("Missing MONGO_URL or DB_NAME environment variables")
        sys.exit(1)

    client = AsyncIOMotorClient(mongo_url)
    try:
        await client.admin.command('ping')
    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")
        sys.exit(1)

    result = await set_admin(client[db_name], email, dry_run)
    client.close()

    logger.info(result["message"])
    logger.info(f"Matched: {result['matched']} | Modified: {result['modified']}")
    if result["matched"] == 0:
        sys.exit(1)


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Promote a user to admin")
    parser.add_argument('email', help='Email of the user to promote')
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print what would be done without making changes'
    )
    args = parser.parse_args()

    asyncio.run(run(args.email, dry_run=args.dry_run))


if __name__ == "__main__":
    main()
