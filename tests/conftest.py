from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from messbook.core.auth import create_access_token
from messbook.db.mongo import create_indexes, get_db
from messbook.main import app
from messbook.models.user import User, UserResponse

TEST_MONGODB_DB = "messbook_test"


@pytest_asyncio.fixture
async def test_db():
    """Fresh in-memory database with the production indexes."""
    client = AsyncMongoMockClient()
    db = client[TEST_MONGODB_DB]
    await create_indexes(db)
    yield db


@pytest_asyncio.fixture
async def make_user(test_db):
    """Factory adding users straight into the directory collection."""
    async def _make_user(name: str, role: str = "member", is_active: bool = True) -> User:
        now = datetime.now(timezone.utc)
        doc = {
            "name": name,
            "role": role,
            "is_active": is_active,
            "created_at": now,
            "updated_at": now
        }
        result = await test_db["users"].insert_one(doc)
        doc["_id"] = result.inserted_id
        return User.from_mongo(doc)

    return _make_user


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user("Manager", role="admin")


@pytest_asyncio.fixture
async def alice(make_user) -> User:
    return await make_user("Alice")


@pytest_asyncio.fixture
async def bob(make_user) -> User:
    return await make_user("Bob")


@pytest.fixture
def actor():
    """Convert a directory user into the authenticated caller shape."""
    def _actor(user: User) -> UserResponse:
        return UserResponse(id=user.id, name=user.name, role=user.role, is_active=user.is_active)

    return _actor


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest_asyncio.fixture
async def client(test_db):
    """HTTP client against the app, wired to the in-memory database."""
    app.dependency_overrides[get_db] = lambda: test_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api/v1") as http:
        yield http
    app.dependency_overrides.clear()
