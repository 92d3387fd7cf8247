"""
Password hashing, JWT helpers & the authentication gate.

- Passwords are hashed with bcrypt directly (passlib is unmaintained
  and broken with bcrypt>=4.1).
- Access and refresh tokens carry ``{userId, role, sessionId}`` and are
  signed with two independent secrets.
- Verification reports VALID / EXPIRED / MALFORMED internally; only
  the password-reset flow surfaces the difference to clients.
- The gate validates every access token against the device session
  registry on EVERY request (hybrid stateful JWT), including the
  replay guard on rotated access tokens.
"""

import enum
import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.database import get_db
from marketplace.core.errors import InvalidToken, Unauthorized
from marketplace.models.user import UserRole

logger = logging.getLogger(__name__)

REFRESH_TOKEN_TYPE = "refresh"

# ── Password hashing ────────────────────────────────────────────────


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


# ── Token hashing ───────────────────────────────────────────────────


def hash_token(token: str) -> str:
    """SHA-256 hex digest — suitable for high-entropy tokens like JWTs."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ── JWT ──────────────────────────────────────────────────────────────


class TokenError(Exception):
    pass


class InvalidTokenError(TokenError):
    """Bad signature, malformed token or unexpected claims."""


class ExpiredTokenError(TokenError):
    pass


class TokenStatus(str, enum.Enum):
    VALID = "valid"
    EXPIRED = "expired"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class TokenVerification:
    status: TokenStatus
    claims: dict[str, Any] = field(default_factory=dict)

    def unwrap(self) -> dict[str, Any]:
        if self.status is TokenStatus.EXPIRED:
            raise ExpiredTokenError("token expired")
        if self.status is TokenStatus.MALFORMED:
            raise InvalidTokenError("token invalid")
        return self.claims


def _sign(claims: dict[str, Any], secret: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    # jti keeps two tokens minted in the same second distinct.
    to_encode = {**claims, "jti": uuid.uuid4().hex, "iat": now, "exp": now + lifetime}
    return jwt.encode(to_encode, secret, algorithm=settings.JWT_ALGORITHM)


def inspect_token(token: str, secret: str) -> TokenVerification:
    try:
        claims = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        return TokenVerification(TokenStatus.EXPIRED)
    except JWTError:
        return TokenVerification(TokenStatus.MALFORMED)
    return TokenVerification(TokenStatus.VALID, claims)


def _session_claims(user_id: str, role: UserRole | str, session_id: str) -> dict[str, Any]:
    return {
        "userId": str(user_id),
        "role": UserRole(role).value,
        "sessionId": session_id,
    }


def create_access_token(
    user_id: str,
    role: UserRole | str,
    session_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    return _sign(
        _session_claims(user_id, role, session_id),
        settings.JWT_ACCESS_SECRET,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(
    user_id: str,
    role: UserRole | str,
    session_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    claims = _session_claims(user_id, role, session_id)
    claims["type"] = REFRESH_TOKEN_TYPE
    return _sign(
        claims,
        settings.JWT_REFRESH_SECRET,
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def _require_session_claims(claims: dict[str, Any]) -> dict[str, Any]:
    if not all(claims.get(key) for key in ("userId", "role", "sessionId")):
        raise InvalidTokenError("missing session claims")
    return claims


def verify_access_token(token: str) -> dict[str, Any]:
    claims = inspect_token(token, settings.JWT_ACCESS_SECRET).unwrap()
    return _require_session_claims(claims)


def verify_refresh_token(token: str) -> dict[str, Any]:
    claims = inspect_token(token, settings.JWT_REFRESH_SECRET).unwrap()
    if claims.get("type") != REFRESH_TOKEN_TYPE:
        raise InvalidTokenError("not a refresh token")
    return _require_session_claims(claims)


def create_reset_token(otp: str, email: str, expires_delta: timedelta | None = None) -> str:
    return _sign(
        {"otp": otp, "email": email},
        settings.RESET_PASSWORD_TOKEN_SECRET,
        expires_delta or timedelta(minutes=settings.RESET_PASSWORD_TOKEN_EXPIRE_MINUTES),
    )


def verify_reset_token(token: str) -> dict[str, Any]:
    return inspect_token(token, settings.RESET_PASSWORD_TOKEN_SECRET).unwrap()


# ── Authentication gate ─────────────────────────────────────────────

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: UserRole
    session_id: str


async def get_current_user_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """
    FastAPI dependency — verifies the access token **and** cross-checks
    it against the live device session registry.

      1. Bearer token present, else Unauthorized.
      2. JWT signature & expiry (not distinguished here), else InvalidToken.
      3. Session exists for that user and is authenticated.
      4. Replay guard: the session's latest access token is this one.

    No caching: the registry is re-read on every request.
    """
    # session_service imports this module for hash_token.
    from marketplace.services import session_service

    if credentials is None or not credentials.credentials:
        raise Unauthorized()
    token = credentials.credentials

    try:
        claims = verify_access_token(token)
        role = UserRole(claims["role"])
    except (TokenError, ValueError):
        raise InvalidToken()

    user = await session_service.find_active_session(claims["userId"], claims["sessionId"], db)
    if user is None:
        logger.warning("Rejected token for unknown or closed session %s", claims["sessionId"])
        raise InvalidToken()

    device = session_service.get_session(user, claims["sessionId"])
    if device is not None and device.access_token_hash and device.access_token_hash != hash_token(token):
        logger.warning("Rejected rotated access token on session %s", claims["sessionId"])
        raise InvalidToken()

    context = AuthContext(user_id=str(user.id), role=role, session_id=claims["sessionId"])
    request.state.auth = context
    return context
