"""
Session service — the device session registry.

Single source of truth for which (user, session) pairs are live and
for the per-device token bookkeeping.  All mutations go through this
narrow API (create / find / record / keep-only / remove / purge) rather
than ad-hoc list surgery elsewhere.

Handles:
- Creating a session at login (new session_id, 7-day horizon)
- The authority check used by the gate and the refresh flow
- Recording the latest token digests per device
- Collapsing to a single device (password change)
- Removing one device (logout)
- Passive TTL cleanup of expired sessions

Nothing here commits: the controller commits the request's unit of work
once, so the device list and the token fields land together.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.security import hash_token
from marketplace.models.linked_device import LinkedDevice
from marketplace.models.user import User

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # Some backends (SQLite) hand back naive datetimes; they are stored as UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def get_session(user: User, session_id: str) -> LinkedDevice | None:
    for device in user.linked_devices:
        if device.session_id == session_id:
            return device
    return None


def prune_expired_sessions(user: User, now: datetime | None = None) -> int:
    """Drop this user's sessions whose TTL has passed.  Returns the count."""
    now = now or datetime.now(timezone.utc)
    live = [d for d in user.linked_devices if _as_utc(d.expires_at) > now]
    removed = len(user.linked_devices) - len(live)
    if removed:
        user.linked_devices = live
    return removed


async def create_session(user: User, db: AsyncSession) -> str:
    """Append a new authenticated session to the user and flush it."""
    now = datetime.now(timezone.utc)
    prune_expired_sessions(user, now)

    session_id = str(uuid.uuid4())
    user.linked_devices.append(
        LinkedDevice(
            session_id=session_id,
            authenticated=True,
            authenticated_at=now,
            expires_at=now + timedelta(days=settings.SESSION_TTL_DAYS),
        )
    )
    await db.flush()
    return session_id


async def find_active_session(
    user_id: str,
    session_id: str,
    db: AsyncSession,
) -> User | None:
    """
    Return the owning user only if `session_id` is one of its devices and
    is still authenticated.  This is the one place where "is this token
    still good" is decided, independently of the token's signature.
    """
    try:
        user_uuid = uuid.UUID(str(user_id))
    except ValueError:
        return None

    stmt = (
        select(User)
        .join(LinkedDevice, LinkedDevice.user_id == User.id)
        .where(
            User.id == user_uuid,
            LinkedDevice.session_id == str(session_id),
            LinkedDevice.authenticated == True,  # noqa: E712
        )
    )
    result = await db.execute(stmt)
    return result.scalars().unique().one_or_none()


async def record_tokens(
    user: User,
    session_id: str,
    access_token: str,
    refresh_token: str,
    db: AsyncSession,
) -> None:
    """Remember the latest token pair for a device (and the account)."""
    device = get_session(user, session_id)
    if device is not None:
        device.access_token_hash = hash_token(access_token)
        device.refresh_token_hash = hash_token(refresh_token)
    user.refresh_token_hash = hash_token(refresh_token)
    await db.flush()


async def keep_only_session(user: User, session_id: str, db: AsyncSession) -> None:
    """Discard every device except `session_id` (logout all other devices)."""
    user.linked_devices = [d for d in user.linked_devices if d.session_id == session_id]
    await db.flush()


async def remove_session(user: User, session_id: str, db: AsyncSession) -> bool:
    """
    Delete exactly one device.  Idempotent, returns False when the
    session was already gone.
    """
    remaining = [d for d in user.linked_devices if d.session_id != session_id]
    removed = len(remaining) != len(user.linked_devices)
    user.linked_devices = remaining
    if not remaining:
        user.refresh_token_hash = None
    await db.flush()
    return removed


async def purge_expired_sessions(db: AsyncSession, now: datetime | None = None) -> int:
    """
    Bulk-delete every expired session across all users.

    Returns the number of sessions removed.  Used by the periodic
    cleanup job.
    """
    now = now or datetime.now(timezone.utc)
    # Bulk job: objects already loaded in this session are not synchronized.
    stmt = (
        delete(LinkedDevice)
        .where(LinkedDevice.expires_at <= now)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount or 0
