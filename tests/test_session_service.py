import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from marketplace.core.security import hash_token
from marketplace.models import LinkedDevice, User, UserRole
from marketplace.services import scheduler, session_service


async def _make_user(db, email="asha@marketplace.io") -> User:
    user = User(
        name="Asha Rao",
        email=email,
        password_hash="x",
        phone_number="9876543210",
        role=UserRole.BUYER,
        linked_devices=[],
    )
    db.add(user)
    await db.flush()
    return user


async def _count_sessions(db) -> int:
    return (await db.execute(select(func.count()).select_from(LinkedDevice))).scalar_one()


async def test_create_session_issues_unique_ids(database):
    async with database() as db:
        user = await _make_user(db)
        first = await session_service.create_session(user, db)
        second = await session_service.create_session(user, db)

        assert first != second
        uuid.UUID(first)
        assert [d.session_id for d in user.linked_devices] == [first, second]
        assert all(d.authenticated for d in user.linked_devices)
        assert await _count_sessions(db) == 2


async def test_new_session_expires_after_ttl(database):
    async with database() as db:
        user = await _make_user(db)
        sid = await session_service.create_session(user, db)
        device = session_service.get_session(user, sid)

        lifetime = device.expires_at - device.authenticated_at
        assert timedelta(days=6, hours=23) < lifetime <= timedelta(days=7)


async def test_find_active_session(database):
    async with database() as db:
        user = await _make_user(db)
        sid = await session_service.create_session(user, db)

        assert await session_service.find_active_session(str(user.id), sid, db) is user
        assert await session_service.find_active_session(str(user.id), str(uuid.uuid4()), db) is None
        assert await session_service.find_active_session(str(uuid.uuid4()), sid, db) is None
        assert await session_service.find_active_session("not-a-uuid", sid, db) is None


async def test_find_ignores_sessions_of_other_users(database):
    async with database() as db:
        owner = await _make_user(db)
        other = await _make_user(db, email="ravi@marketplace.io")
        sid = await session_service.create_session(owner, db)

        assert await session_service.find_active_session(str(other.id), sid, db) is None


async def test_find_ignores_deauthenticated_session(database):
    async with database() as db:
        user = await _make_user(db)
        sid = await session_service.create_session(user, db)
        session_service.get_session(user, sid).authenticated = False
        await db.flush()

        assert await session_service.find_active_session(str(user.id), sid, db) is None


async def test_record_tokens_stores_digests(database):
    async with database() as db:
        user = await _make_user(db)
        sid = await session_service.create_session(user, db)
        await session_service.record_tokens(user, sid, "access-1", "refresh-1", db)

        device = session_service.get_session(user, sid)
        assert device.access_token_hash == hash_token("access-1")
        assert device.refresh_token_hash == hash_token("refresh-1")
        assert user.refresh_token_hash == hash_token("refresh-1")


async def test_keep_only_session_collapses_to_one(database):
    async with database() as db:
        user = await _make_user(db)
        sids = [await session_service.create_session(user, db) for _ in range(3)]

        await session_service.keep_only_session(user, sids[1], db)

        assert [d.session_id for d in user.linked_devices] == [sids[1]]
        assert await _count_sessions(db) == 1


async def test_remove_session_removes_exactly_one(database):
    async with database() as db:
        user = await _make_user(db)
        keep = await session_service.create_session(user, db)
        drop = await session_service.create_session(user, db)
        await session_service.record_tokens(user, keep, "a", "r", db)

        assert await session_service.remove_session(user, drop, db) is True
        assert [d.session_id for d in user.linked_devices] == [keep]
        assert user.refresh_token_hash == hash_token("r")

        # Idempotent.
        assert await session_service.remove_session(user, drop, db) is False
        assert await _count_sessions(db) == 1


async def test_removing_last_session_clears_refresh_digest(database):
    async with database() as db:
        user = await _make_user(db)
        sid = await session_service.create_session(user, db)
        await session_service.record_tokens(user, sid, "a", "r", db)

        await session_service.remove_session(user, sid, db)

        assert user.linked_devices == []
        assert user.refresh_token_hash is None


async def test_create_session_prunes_expired(database):
    async with database() as db:
        user = await _make_user(db)
        stale = await session_service.create_session(user, db)
        session_service.get_session(user, stale).expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        await db.flush()

        fresh = await session_service.create_session(user, db)

        assert [d.session_id for d in user.linked_devices] == [fresh]
        assert await _count_sessions(db) == 1


async def test_purge_expired_sessions(database):
    async with database() as db:
        user = await _make_user(db)
        other = await _make_user(db, email="ravi@marketplace.io")
        expired = await session_service.create_session(user, db)
        await session_service.create_session(user, db)
        await session_service.create_session(other, db)
        session_service.get_session(user, expired).expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        await db.flush()

        assert await session_service.purge_expired_sessions(db) == 1
        assert await _count_sessions(db) == 2

        later = datetime.now(timezone.utc) + timedelta(days=8)
        assert await session_service.purge_expired_sessions(db, now=later) == 2


async def test_cleanup_job_commits_purge(engine, monkeypatch):
    from sqlalchemy.ext.asyncio import async_sessionmaker

    from marketplace.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    monkeypatch.setattr(scheduler, "async_session_factory", factory)

    async with factory() as db:
        user = await _make_user(db)
        sid = await session_service.create_session(user, db)
        session_service.get_session(user, sid).expires_at = datetime.now(timezone.utc) - timedelta(hours=1)
        await db.commit()

    assert await scheduler.cleanup_sessions_job() == 1

    async with factory() as db:
        assert await _count_sessions(db) == 0
    await engine.dispose()
