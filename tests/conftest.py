import os
import tempfile
import time
import uuid
from pathlib import Path

# Settings are read at import time, so they must be in place before mapshare loads.
TEST_JWT_SECRET = "test-secret-do-not-use-in-prod"
_TMP = Path(tempfile.mkdtemp(prefix="mapshare-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'mapshare.db'}"
os.environ["AUTH_VERIFY_MODE"] = "hs256"
os.environ["SUPABASE_JWT_SECRET"] = TEST_JWT_SECRET
os.environ["LOG_FILE"] = ""
os.environ["LOG_LEVEL"] = "INFO"

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt

from mapshare.client.api import AccessTokenSession, MapShareClient
from mapshare.core.db import Base, SessionLocal, engine
from mapshare.main import app


def make_token(user_id: str | None = None, expires_in: int = 3600) -> str:
    claims = {
        "sub": user_id or str(uuid.uuid4()),
        "role": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
async def api(user_id):
    """Presence client talking to the real app in-process."""
    transport = httpx.ASGITransport(app=app)
    c = MapShareClient(
        "http://testserver",
        AccessTokenSession(make_token(user_id)),
        transport=transport,
    )
    try:
        yield c
    finally:
        await c.aclose()
