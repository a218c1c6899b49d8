"""
MongoDB connection for TCW1

Loads backend/.env, refuses to start without MONGO_URL and DB_NAME, and
exposes the shared Motor client and database handle used by every route.
"""
from motor.motor_asyncio import AsyncIOMotorClient
import os
import logging
from pathlib import Path
from typing import List, Mapping, Optional, Tuple
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

REQUIRED_ENV_VARS = {
    "MONGO_URL": "MongoDB connection string (e.g., mongodb://localhost:27017)",
    "DB_NAME": "Database name (e.g., tcw1)",
}

DEFAULT_MAX_POOL_SIZE = 50
DEFAULT_MIN_POOL_SIZE = 5


def find_missing_env_vars(environ: Mapping[str, str]) -> List[str]:
    return [name for name in REQUIRED_ENV_VARS if not environ.get(name)]


def validate_required_env_vars(environ: Optional[Mapping[str, str]] = None):
    """
    Raise ValueError listing every missing connection variable.

    Checked at import so the server never starts against an unnamed database.
    """
    environ = os.environ if environ is None else environ
    missing = find_missing_env_vars(environ)
    if not missing:
        return

    lines = "\n".join(f"  - {name}: {REQUIRED_ENV_VARS[name]}" for name in missing)
    raise ValueError(
        "\n" + "=" * 60 + "\n"
        "TCW1 cannot start: missing database settings\n"
        + "=" * 60 + "\n"
        + lines + "\n\n"
        "Set them in backend/.env (see .env.example).\n"
        + "=" * 60
    )


def _pool_size(name: str, default: int) -> int:
    raw = os.environ.get(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}', defaulting to {default}")
        return default


def create_client(mongo_url: str) -> AsyncIOMotorClient:
    """Pooled client; Motor connects lazily on first operation."""
    try:
        return AsyncIOMotorClient(
            mongo_url,
            maxPoolSize=_pool_size("MONGO_MAX_POOL_SIZE", DEFAULT_MAX_POOL_SIZE),
            minPoolSize=_pool_size("MONGO_MIN_POOL_SIZE", DEFAULT_MIN_POOL_SIZE),
            connectTimeoutMS=5000,
            serverSelectionTimeoutMS=5000,
            retryWrites=True,
            appname="tcw1-backend",
        )
    except Exception as e:
        raise ValueError(f"Failed to create MongoDB client: {e}")


validate_required_env_vars()

DB_NAME = os.environ['DB_NAME']
client = create_client(os.environ['MONGO_URL'])
db = client[DB_NAME]


async def check_db_connection(mongo_client=None, database=None) -> Tuple[bool, Optional[str]]:
    """
    Ping the server and list collections.

    Returns (True, None) when both succeed, otherwise (False, error message).
    Defaults to the module client and database.
    """
    mongo_client = mongo_client if mongo_client is not None else client
    database = database if database is not None else db
    try:
        await mongo_client.admin.command('ping')
        collections = await database.list_collection_names()
    except Exception as e:
        error_msg = f"Database connection failed: {e}"
        logger.error(error_msg)
        return False, error_msg

    logger.info(f"Database connected: {database.name} ({len(collections)} collections)")
    return True, None
