from __future__ import annotations
import os
import tempfile
import uuid
from pathlib import Path

# must be in place before treasure_hunt.config is imported
_DB_PATH = Path(tempfile.mkdtemp()) / "treasure_hunt_test.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["QR_SECRET"] = "test-qr-secret"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ.pop("ADMIN_UID", None)
os.environ.pop("APP_ADMIN_UID", None)

import httpx
import pytest_asyncio
from httpx import AsyncClient
from treasure_hunt.db import Base, SessionLocal, engine
from treasure_hunt.main import app
from treasure_hunt.models.user import User
from treasure_hunt.security import make_access_token


@pytest_asyncio.fixture
async def db():
    """Fresh schema per test; pooled connections are dropped so the next loop opens its own."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(db):
    async with SessionLocal() as s:
        yield s


@pytest_asyncio.fixture
async def client(db):
    async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def make_user(session):
    """Factory: insert a user with an optional role claim and return (user, auth headers)."""
    async def _make(role: str | None = None, email: str | None = None, **extra_claims):
        claims = dict(extra_claims)
        if role:
            claims["role"] = role
        user = User(email=email or f"u-{uuid.uuid4().hex[:8]}@example.com", claims=claims)
        session.add(user)
        await session.commit()
        return user, {"Authorization": f"Bearer {make_access_token(user.id)}"}
    return _make
