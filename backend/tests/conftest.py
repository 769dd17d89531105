"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="eco_pulse_logs_"))
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("MONGO_URI", None)
os.environ.pop("SMTP_HOST", None)
os.environ.pop("OTP_HASH_KEY", None)

import pytest
from datetime import datetime
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient
from faker import Faker

from main import app
from db import mongodb
from core.security import get_password_hash
from services.user_service import issue_token

# Initialize Faker for test data generation
fake = Faker()

DEFAULT_PASSWORD = "testpassword123"


@pytest.fixture(autouse=True)
async def mongo_db():
    """In-memory Motor database injected in place of the real client."""
    mdb = AsyncMongoMockClient()["eco_pulse_test"]
    await mdb.users.create_index("email", unique=True)
    await mdb.bins.create_index("qr_code", unique=True)
    mongodb._mongo_db = mdb
    yield mdb
    mongodb._mongo_db = None


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(mongo_db):
    """Factory inserting a user document directly; returns the stored document."""
    async def _make(role: str = "user", email: str = None, password: str = DEFAULT_PASSWORD, status: str = "active"):
        now = datetime.utcnow()
        doc = {
            "name": fake.name(),
            "email": (email or fake.unique.email()).lower(),
            "hashed_password": get_password_hash(password),
            "role": role,
            "status": status,
            "household_members": 3,
            "address": fake.street_address(),
            "city": fake.city(),
            "created_at": now,
            "updated_at": now,
        }
        result = await mongo_db.users.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc
    return _make


def auth_headers(user_doc: dict) -> dict:
    return {"Authorization": f"Bearer {issue_token(user_doc)}"}


@pytest.fixture
async def user(make_user):
    return await make_user()


@pytest.fixture
async def manager(make_user):
    return await make_user(role="manager")


@pytest.fixture
async def collector(make_user):
    return await make_user(role="collector")


@pytest.fixture
def sample_location():
    return {
        "address": fake.street_address(),
        "latitude": float(fake.latitude()),
        "longitude": float(fake.longitude()),
    }
