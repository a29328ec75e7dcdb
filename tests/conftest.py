"""
Shared pytest fixtures: an in-memory Mongo, user factories and an API client
wired to that database.
"""
import asyncio
import os

# Settings are cached on first use, so the test environment goes in before any app import.
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("GEMINI_API_KEY", "")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from bson import ObjectId  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from mongomock_motor import AsyncMongoMockClient  # noqa: E402

from core.config import get_settings  # noqa: E402
from core.roles import UserRole  # noqa: E402
from db.collections import ensure_indexes, get_user_collection  # noqa: E402
from db.connection import get_db  # noqa: E402
from models.user_schema import UserAccount  # noqa: E402
from services.subscription import trial_fields  # noqa: E402
from utils.clock import utcnow  # noqa: E402


@pytest.fixture
async def db():
    database = AsyncMongoMockClient()["voiceoflaw_test"]
    await ensure_indexes(database)
    return database


@pytest.fixture
def uploads_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(get_settings(), "uploads_dir", str(tmp_path))
    return tmp_path


@pytest.fixture
def make_user(db):
    """Insert a user document and return its ``UserAccount``; keyword overrides win."""

    async def _make_user(role: UserRole = UserRole.user, now=None, **overrides) -> UserAccount:
        now = now or utcnow()
        doc = {
            "_id": ObjectId(),
            "email": f"{ObjectId()}@example.com",
            "password": "not-a-real-hash",
            "name": "Test User",
            "role": role.value,
            "created_at": now,
            **trial_fields(now),
        }
        doc.update(overrides)
        await get_user_collection(db).insert_one(doc)
        return UserAccount.from_document(doc)

    return _make_user


@pytest.fixture
def expired_trial():
    now = utcnow()
    return {
        "trial_start_date": now - timedelta(days=10),
        "trial_end_date": now - timedelta(days=3),
    }


@pytest.fixture
def client():
    from main import app

    database = AsyncMongoMockClient()["voiceoflaw_api_test"]
    app.dependency_overrides[get_db] = lambda: database
    # Lifespan is not entered: no index bootstrap, seed or scheduler.
    test_client = TestClient(app)
    test_client.db = database
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register through the API and return (auth headers, user payload)."""

    def _register(email: str = "lawyer@example.com", password: str = "s3cret-pass"):
        response = client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": "Test Lawyer"},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]

    return _register


@pytest.fixture
def run_sync():
    """Drive a database coroutine from a synchronous API test."""
    return asyncio.run


@pytest.fixture
def admin_headers(client, register, run_sync):
    """Register, promote to admin, then log in again so the token carries the role."""
    email, password = "admin@example.com", "admin-pass-123"
    _, user = register(email=email, password=password)
    run_sync(get_user_collection(client.db).update_one(
        {"_id": ObjectId(user["id"])}, {"$set": {"role": UserRole.admin.value}}
    ))
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
