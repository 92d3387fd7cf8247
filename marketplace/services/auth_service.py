"""
Authentication service.

Handles:
- Login with a fresh per-device session
- Refresh-token rotation bound to the device session
- Logout of a single device
- Stateless OTP password reset (signed reset token, nothing stored)
- Authenticated password change that logs out every other device

Ordering rules:
- Registry mutations are flushed BEFORE tokens referencing them are
  issued, and the token digests are recorded in the same unit of work.
- Password change runs verify → hash → collapse → rotate.  Everything
  shares the request transaction, so a failure at any step rolls back
  and the old password keeps working.

All business logic lives here — controllers call service methods
and shape the response.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import (
    InvalidCredentials,
    InvalidOldPassword,
    InvalidOtp,
    InvalidToken,
    OtpExpired,
    PasswordSameAsOld,
    UserNotFound,
)
from marketplace.core.security import (
    AuthContext,
    ExpiredTokenError,
    TokenError,
    create_access_token,
    create_refresh_token,
    create_reset_token,
    hash_password,
    hash_token,
    verify_password,
    verify_refresh_token,
    verify_reset_token,
)
from marketplace.models.user import User
from marketplace.services import email_service, session_service

logger = logging.getLogger(__name__)


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str


@dataclass
class LoginResult:
    user: User
    session_id: str
    tokens: IssuedTokens


# ── Helpers ──────────────────────────────────────────────────────────

async def get_user_by_email(email: str, db: AsyncSession) -> User | None:
    stmt = select(User).where(User.email == email.strip().lower())
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _load_user(user_id: str, db: AsyncSession) -> User:
    user = await db.get(User, uuid.UUID(str(user_id)))
    if user is None:
        raise UserNotFound(field="userId")
    return user


async def _issue_for_session(user: User, session_id: str, db: AsyncSession) -> IssuedTokens:
    """Mint a pair for an already-persisted session and record it."""
    tokens = IssuedTokens(
        access_token=create_access_token(str(user.id), user.role, session_id),
        refresh_token=create_refresh_token(str(user.id), user.role, session_id),
    )
    await session_service.record_tokens(
        user, session_id, tokens.access_token, tokens.refresh_token, db,
    )
    return tokens


def generate_otp() -> str:
    """Six digits, 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


# ── Login / Logout ───────────────────────────────────────────────────

async def login(email: str, password: str, db: AsyncSession) -> LoginResult:
    """Validate credentials, open a new device session, issue a pair."""
    user = await get_user_by_email(email, db)
    if user is None or not await run_in_threadpool(verify_password, password, user.password_hash):
        raise InvalidCredentials()

    session_id = await session_service.create_session(user, db)
    tokens = await _issue_for_session(user, session_id, db)

    logger.info("User %s logged in on session %s", user.id, session_id)
    return LoginResult(user=user, session_id=session_id, tokens=tokens)


async def logout(context: AuthContext, db: AsyncSession) -> bool:
    """Remove only the calling device's session."""
    user = await _load_user(context.user_id, db)
    removed = await session_service.remove_session(user, context.session_id, db)
    logger.info("User %s logged out of session %s", user.id, context.session_id)
    return removed


# ── Refresh ──────────────────────────────────────────────────────────

async def refresh_tokens(refresh_token_raw: str, db: AsyncSession) -> IssuedTokens:
    """
    Validate a refresh token against its device session and rotate BOTH
    tokens.  Once this commits, the previous access token is rejected by
    the gate's replay guard even though it has not expired.

    Two concurrent refreshes on one session can both pass the session
    check; the last write wins and the loser's access token is rejected
    on its next use.
    """
    try:
        claims = verify_refresh_token(refresh_token_raw)
    except TokenError:
        raise InvalidToken()

    session_id = claims["sessionId"]
    user = await session_service.find_active_session(claims["userId"], session_id, db)
    if user is None:
        raise InvalidToken()

    device = session_service.get_session(user, session_id)
    if device is not None and device.refresh_token_hash and device.refresh_token_hash != hash_token(refresh_token_raw):
        logger.warning("Refresh token reuse detected on session %s", session_id)
        raise InvalidToken()

    tokens = await _issue_for_session(user, session_id, db)
    logger.info("Rotated tokens for user %s on session %s", user.id, session_id)
    return tokens


# ── Password reset (OTP) ─────────────────────────────────────────────

async def request_password_reset(email: str, db: AsyncSession) -> str:
    """
    Email a fresh OTP and return the signed reset token that carries it.

    Nothing is stored server-side: the client echoes the token back on
    reset.  Earlier tokens stay valid until they expire; calling this
    again (resend) does not revoke them.
    """
    user = await get_user_by_email(email, db)
    if user is None:
        raise UserNotFound(field="email")

    otp = generate_otp()
    reset_token = create_reset_token(otp, user.email)
    await email_service.send_otp_email(user.email, user.name, otp)

    logger.info("Password reset OTP sent to user %s", user.id)
    return reset_token


async def reset_password_with_otp(
    email: str,
    otp: str,
    new_password: str,
    reset_token: str,
    db: AsyncSession,
) -> None:
    """Check the reset token against {email, otp}; set the new password."""
    user = await get_user_by_email(email, db)
    if user is None:
        raise UserNotFound(field="email")

    try:
        decoded = verify_reset_token(reset_token)
    except ExpiredTokenError:
        raise OtpExpired(field="otp")
    except TokenError:
        raise InvalidOtp(field="otp")

    if decoded.get("email") != user.email or decoded.get("otp") != otp:
        raise InvalidOtp(field="otp")

    user.password_hash = await run_in_threadpool(hash_password, new_password)
    await db.flush()
    logger.info("Password reset for user %s", user.id)


# ── Password change ──────────────────────────────────────────────────

async def change_password(
    context: AuthContext,
    current_password: str,
    new_password: str,
    db: AsyncSession,
) -> IssuedTokens:
    """
    Change the password, log out every other device, and rotate the
    calling device's tokens so it stays signed in.
    """
    user = await _load_user(context.user_id, db)

    # 1) verify
    if not await run_in_threadpool(verify_password, current_password, user.password_hash):
        raise InvalidOldPassword(field="currentPassword")
    if current_password == new_password:
        raise PasswordSameAsOld(field="newPassword")

    # 2) hash & persist
    user.password_hash = await run_in_threadpool(hash_password, new_password)
    await db.flush()

    # 3) collapse sessions to this device
    await session_service.keep_only_session(user, context.session_id, db)

    # 4) rotate this device's pair
    tokens = await _issue_for_session(user, context.session_id, db)

    logger.info("Password changed for user %s; kept session %s only", user.id, context.session_id)
    return tokens
