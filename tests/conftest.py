"""Shared fixtures and utilities for tests."""

import os
import tempfile

# Settings are read at import time, so the environment is fixed before any
# application module is imported.
_DB_DIR = tempfile.mkdtemp(prefix="ats-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-min-32-chars-long-for-security"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["REDIS_URL"] = "redis://localhost:6379/0"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["PUBLIC_CAPTCHA_REQUIRED"] = "false"
os.environ["PUBLIC_APPLICATIONS_ENABLED"] = "true"
os.environ["PUBLIC_LOG_APPLICATIONS"] = "true"
os.environ["PUBLIC_PORTAL_URL"] = "https://empleos.example.com"
os.environ["JSON_LOGS"] = "false"
os.environ.pop("SMTP_HOST", None)
os.environ.pop("RECAPTCHA_SECRET_KEY", None)

import httpx  # noqa: E402
import pytest  # noqa: E402

import database.models  # noqa: E402,F401  registers every table
from api.dependencies import get_abuse_control  # noqa: E402
from api.main import app  # noqa: E402
from api.services.abuse_control import AbuseControl  # noqa: E402
from core.middleware.rate_limiting import (  # noqa: E402
    InMemoryRateLimitStore,
    PublicApplyRateLimiter,
)
from database.engine import AsyncSessionLocal, Base, db_engine  # noqa: E402


@pytest.fixture
async def db():
    """Fresh schema for every test."""
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await db_engine.dispose()


@pytest.fixture
async def session(db):
    """Database session on the fresh schema."""
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def rate_limiter():
    """In-memory limiter with the production defaults."""
    return PublicApplyRateLimiter(InMemoryRateLimitStore(), max_requests=5, window_seconds=600)


@pytest.fixture
def abuse_control(rate_limiter):
    """Abuse control without captcha; tests needing captcha build their own."""
    return AbuseControl(rate_limiter, verifier=None, captcha_required=False)


@pytest.fixture
async def client(db, abuse_control):
    """HTTP client bound to the app, with the abuse control overridden."""
    app.dependency_overrides[get_abuse_control] = lambda: abuse_control
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
    app.dependency_overrides.clear()
