"""
User service — account creation & profile lookup.

Signup only ever creates vendor / buyer accounts; admins come from
`scripts/create_admin.py`.
"""

import logging
import uuid

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import EmailExists, UserNotFound
from marketplace.core.security import hash_password
from marketplace.models.user import User, UserRole
from marketplace.schemas import SignupRequest

logger = logging.getLogger(__name__)


async def create_user(data: SignupRequest, db: AsyncSession) -> User:
    stmt = select(User.id).where(User.email == data.email)
    if (await db.execute(stmt)).scalar_one_or_none() is not None:
        raise EmailExists(field="email")

    user = User(
        name=data.name,
        email=data.email,
        password_hash=await run_in_threadpool(hash_password, data.password),
        phone_number=data.phone_number,
        role=UserRole(data.role),
        linked_devices=[],
    )
    db.add(user)
    await db.flush()

    logger.info("Created %s account %s", user.role.value, user.id)
    return user


async def get_user_by_id(user_id: uuid.UUID | str, db: AsyncSession) -> User:
    user = await db.get(User, uuid.UUID(str(user_id)))
    if user is None:
        raise UserNotFound(field="userId")
    return user
