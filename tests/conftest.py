import asyncio
import inspect
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Settings are read at import time; configure before importing the package.
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret-do-not-use-in-production")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-do-not-use-in-production")
os.environ.setdefault("RESET_PASSWORD_TOKEN_SECRET", "test-reset-secret-do-not-use-in-production")
os.environ.setdefault("ENCRYPTION_KEY", "000102030405060708090a0b0c0d0e0f101112131415161718191a1b1c1d1e1f")
os.environ.setdefault("ENCRYPTION_IV", "a0a1a2a3a4a5a6a7a8a9aaabacadaeaf")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SESSION_CLEANUP_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DEBUG", "true")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from marketplace.core.database import get_db  # noqa: E402
from marketplace.main import create_app  # noqa: E402
from marketplace.models import Base  # noqa: E402
from marketplace.services import email_service  # noqa: E402


def _memory_engine():
    return create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@asynccontextmanager
async def _database():
    """Fresh in-memory schema and a session on it, for service-level tests."""
    engine = _memory_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with factory() as session:
            yield session
    finally:
        await engine.dispose()


@pytest.fixture
def database():
    return _database


@pytest.fixture
def outbox(monkeypatch):
    """Captures OTP emails instead of talking to SMTP."""
    sent: list[dict] = []

    async def fake_send_otp_email(to: str, name: str, otp: str) -> None:
        sent.append({"to": to, "name": name, "otp": otp})

    monkeypatch.setattr(email_service, "send_otp_email", fake_send_otp_email)
    return sent


@pytest.fixture
def engine():
    return _memory_engine()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def app(session_factory):
    application = create_app()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def client(app, engine, outbox):
    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    with TestClient(app) as test_client:
        # All database work must happen on the client's event loop.
        test_client.portal.call(create_schema)
        yield test_client
        test_client.portal.call(engine.dispose)


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
