"""
Shared test setup.

database.py validates MONGO_URL/DB_NAME at import, so defaults are set
before any application module is imported. No MongoDB server is needed:
the Motor client does not connect until first use and every test swaps
the database for a mock.
"""
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock, AsyncMock

import pytest

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "tcw1_test")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ENVIRONMENT", "test")

sys.path.insert(0, str(Path(__file__).parent.parent))


def _cursor(docs):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(docs))
    return cursor


@pytest.fixture
def make_cursor():
    """Build a Motor-like cursor whose to_list() returns docs."""
    return _cursor


@pytest.fixture
def mock_db():
    return AsyncMock()


@pytest.fixture
def user():
    return {"id": "user-1", "email": "user@example.com", "is_admin": False}


@pytest.fixture
def admin():
    return {"id": "admin-1", "email": "admin@example.com", "is_admin": True}
