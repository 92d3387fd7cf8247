"""
Auth controller — token refresh, OTP password reset, session status &
password change.

Refresh, forgot-password, resend-otp and reset-password are PUBLIC.
Session status and password change go through the authentication gate.
"""

from fastapi import APIRouter, Body, Cookie, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core import messages
from marketplace.core.database import commit_unit_of_work, get_db
from marketplace.core.errors import Unauthorized
from marketplace.core.responses import (
    REFRESH_COOKIE,
    EnvelopeRoute,
    create_response,
    set_refresh_cookie,
)
from marketplace.core.security import AuthContext, get_current_user_token
from marketplace.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    ResetTokenOut,
    SessionStatusOut,
    TokenPair,
)
from marketplace.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"], route_class=EnvelopeRoute)


@router.post("/refresh")
async def refresh_token(
    body: RefreshTokenRequest | None = Body(default=None),
    refresh_cookie: str | None = Cookie(default=None, alias=REFRESH_COOKIE),
    db: AsyncSession = Depends(get_db),
):
    """Rotate the pair.  The cookie wins over a body-supplied token."""
    raw = refresh_cookie or (body.refresh_token if body else None)
    if not raw:
        raise Unauthorized()

    tokens = await auth_service.refresh_tokens(raw, db)
    await commit_unit_of_work(db)
    payload = TokenPair(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
    response = create_response(
        status.HTTP_200_OK,
        messages.SUCCESS.TOKEN_REFRESHED,
        payload.model_dump(by_alias=True),
        encrypt=False,
    )
    set_refresh_cookie(response, tokens.refresh_token)
    return response


@router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    reset_token = await auth_service.request_password_reset(body.email, db)
    return create_response(
        status.HTTP_200_OK,
        messages.SUCCESS.OTP_SENT,
        ResetTokenOut(reset_token=reset_token).model_dump(by_alias=True),
    )


@router.post("/resend-otp")
async def resend_otp(body: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    """Same as forgot-password; earlier reset tokens stay usable until expiry."""
    reset_token = await auth_service.request_password_reset(body.email, db)
    return create_response(
        status.HTTP_200_OK,
        messages.SUCCESS.OTP_RESENT,
        ResetTokenOut(reset_token=reset_token).model_dump(by_alias=True),
    )


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    await auth_service.reset_password_with_otp(
        body.email, body.otp, body.new_password, body.reset_token, db,
    )
    await commit_unit_of_work(db)
    return create_response(
        status.HTTP_200_OK, messages.SUCCESS.PASSWORD_RESET_SUCCESS, encrypt=False,
    )


@router.get("/session-status")
async def session_status(context: AuthContext = Depends(get_current_user_token)):
    payload = SessionStatusOut(user_id=context.user_id, role=context.role.value)
    return create_response(
        status.HTTP_200_OK,
        messages.SUCCESS.SESSION_ACTIVE,
        payload.model_dump(by_alias=True),
        encrypt=False,
    )


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    context: AuthContext = Depends(get_current_user_token),
    db: AsyncSession = Depends(get_db),
):
    """Change password, log out every other device, rotate this one."""
    tokens = await auth_service.change_password(
        context, body.current_password, body.new_password, db,
    )
    await commit_unit_of_work(db)
    payload = TokenPair(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
    response = create_response(
        status.HTTP_200_OK,
        messages.SUCCESS.PASSWORD_CHANGED,
        payload.model_dump(by_alias=True),
    )
    set_refresh_cookie(response, tokens.refresh_token)
    return response
