"""
Application error taxonomy & the HTTP boundary that renders it.

Services raise typed `AppError`s carrying (status, message, field);
`register_exception_handlers` maps them 1:1 onto the JSON envelope
`{"success": false, "message": ..., "data": null}`.  Anything else is
logged and surfaced as a generic 500; no internal detail reaches the
client.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace.core import messages

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = messages.ERROR.SERVER_ERROR

    def __init__(self, message: str | None = None, field: str | None = None) -> None:
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = messages.ERROR.UNAUTHORIZED


class InvalidToken(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = messages.ERROR.INVALID_TOKEN


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = messages.ERROR.FORBIDDEN


class InvalidOtp(AppError):
    default_message = messages.ERROR.INVALID_OTP


class OtpExpired(AppError):
    default_message = messages.ERROR.OTP_EXPIRED


class InvalidOldPassword(AppError):
    default_message = messages.ERROR.INVALID_OLD_PASSWORD


class PasswordSameAsOld(AppError):
    default_message = messages.ERROR.PASSWORD_SAME_AS_OLD


class InvalidCredentials(AppError):
    default_message = messages.ERROR.INVALID_CREDENTIALS


class EmailExists(AppError):
    default_message = messages.ERROR.EMAIL_EXISTS


class UserNotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = messages.ERROR.USER_NOT_FOUND


class DecryptionError(AppError):
    default_message = messages.ERROR.INVALID_ENCRYPTED_PAYLOAD


class ServerError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = messages.ERROR.SERVER_ERROR


def error_response(
    status_code: int,
    message: str,
    field: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict = {"success": False, "message": message, "data": None}
    if field:
        content["field"] = field
    headers = dict(headers or {})
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers.setdefault("WWW-Authenticate", "Bearer")
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _validation_message(exc: RequestValidationError) -> tuple[str, str | None]:
    """First error wins; custom validator messages are shown verbatim."""
    errors = exc.errors()
    if not errors:
        return messages.ERROR.REQUIRED_FIELDS, None
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = loc[-1] if loc else None
    if first.get("type") == "missing":
        return messages.ERROR.REQUIRED_FIELDS, field
    ctx_error = (first.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error), field
    return first.get("msg", messages.ERROR.REQUIRED_FIELDS), field


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(
            "%s %s -> %s %s", request.method, request.url.path, exc.status_code, type(exc).__name__,
        )
        return error_response(exc.status_code, exc.message, exc.field)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        message, field = _validation_message(exc)
        logger.info("Validation failed on %s %s: %s", request.method, request.url.path, message)
        return error_response(status.HTTP_400_BAD_REQUEST, message, field)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        # Starlette puts Allow on 405s; keep whatever headers it attached.
        headers = getattr(exc, "headers", None)
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return error_response(exc.status_code, messages.ERROR.ROUTE_NOT_FOUND, headers=headers)
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            return error_response(exc.status_code, messages.ERROR.METHOD_NOT_ALLOWED, headers=headers)
        return error_response(exc.status_code, str(exc.detail), headers=headers)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, messages.ERROR.SERVER_ERROR)
