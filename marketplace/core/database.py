"""
Async engine, session factory & the per-request unit of work.

`get_db` hands each request a single AsyncSession.  Handlers that
change state call `commit_unit_of_work` BEFORE building the response,
so no token or cookie leaves the server for state that failed to
persist.  Any exception rolls the whole request back, so the session
list and the token fields on a user are never observed half-written.
The commit on teardown only covers handlers that never commit
themselves.
"""

import logging
from collections.abc import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from marketplace.core.config import settings
from marketplace.core.errors import ServerError

logger = logging.getLogger(__name__)

engine = create_async_engine(settings.DATABASE_URL, echo=False, pool_pre_ping=True)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def commit_unit_of_work(db: AsyncSession) -> None:
    """Commit now; a failed commit becomes a 500 instead of a false success."""
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        logger.exception("Commit failed; request rolled back")
        await db.rollback()
        raise ServerError() from exc
