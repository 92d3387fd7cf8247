"""
User controller — signup, login, logout & profile.

Signup and login are PUBLIC.  Logout and profile require a live session.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core import messages
from marketplace.core.database import commit_unit_of_work, get_db
from marketplace.core.responses import (
    EnvelopeRoute,
    clear_refresh_cookie,
    create_response,
    set_refresh_cookie,
)
from marketplace.core.security import AuthContext, get_current_user_token
from marketplace.schemas import LoginOut, LoginRequest, SignupRequest, UserOut
from marketplace.services import auth_service, user_service

router = APIRouter(prefix="/user", tags=["User"], route_class=EnvelopeRoute)


@router.post("/signup")
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.create_user(body, db)
    await commit_unit_of_work(db)
    return create_response(
        status.HTTP_201_CREATED,
        messages.SUCCESS.USER_CREATED,
        {"user": UserOut.model_validate(user).model_dump(by_alias=True)},
    )


@router.post("/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Authenticate with email + password → new device session + JWT pair."""
    result = await auth_service.login(body.email, body.password, db)
    await commit_unit_of_work(db)
    payload = LoginOut(
        access_token=result.tokens.access_token,
        user=UserOut.model_validate(result.user),
        session_id=result.session_id,
    )
    response = create_response(
        status.HTTP_200_OK,
        messages.SUCCESS.LOGIN_SUCCESS,
        payload.model_dump(by_alias=True),
    )
    set_refresh_cookie(response, result.tokens.refresh_token)
    return response


@router.post("/logout")
async def logout(
    context: AuthContext = Depends(get_current_user_token),
    db: AsyncSession = Depends(get_db),
):
    """Remove only this device's session (idempotent)."""
    await auth_service.logout(context, db)
    await commit_unit_of_work(db)
    response = create_response(status.HTTP_200_OK, messages.SUCCESS.LOGOUT_SUCCESS, encrypt=False)
    clear_refresh_cookie(response)
    return response


@router.get("/profile")
async def profile(
    context: AuthContext = Depends(get_current_user_token),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_id(context.user_id, db)
    return create_response(
        status.HTTP_200_OK,
        messages.SUCCESS.USER_PROFILE_FETCHED,
        UserOut.model_validate(user).model_dump(by_alias=True),
    )
