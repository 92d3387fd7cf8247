"""
HTTP plumbing around the payload envelope.

- `EnvelopeRoute` — APIRoute subclass that unseals flagged request
  bodies (`X-Payload-Encrypted: true`, body ``{"data": "<cipher>"}``)
  before FastAPI validates them.
- `create_response` — builds the standard ``{success, message, data}``
  body, sealing ``data`` when the endpoint asks for it.
- Refresh-token cookie helpers.
"""

import json
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from marketplace.core.config import settings
from marketplace.core.envelope import get_codec
from marketplace.core.errors import DecryptionError

logger = logging.getLogger(__name__)

ENCRYPTED_HEADER = "X-Payload-Encrypted"
REFRESH_COOKIE = "refreshToken"
REFRESH_COOKIE_MAX_AGE = 7 * 24 * 60 * 60


def is_flagged(value: str | None) -> bool:
    return (value or "").strip().lower() in ("true", "1", "yes")


class _UnsealedRequest(Request):
    def __init__(self, scope, receive, body: bytes) -> None:
        super().__init__(scope, receive)
        self._body = body

    async def body(self) -> bytes:
        return self._body


class EnvelopeRoute(APIRoute):
    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_handler = super().get_route_handler()

        async def envelope_route_handler(request: Request) -> Response:
            if is_flagged(request.headers.get(ENCRYPTED_HEADER)):
                request = _UnsealedRequest(
                    request.scope, request.receive, await _unseal_body(request),
                )
            return await original_handler(request)

        return envelope_route_handler


async def _unseal_body(request: Request) -> bytes:
    raw = await request.body()
    try:
        envelope = json.loads(raw or b"{}")
    except ValueError as exc:
        raise DecryptionError() from exc
    data = envelope.get("data") if isinstance(envelope, dict) else None
    if not isinstance(data, str) or not data:
        logger.info("Flagged request on %s without an encrypted data field", request.url.path)
        raise DecryptionError()
    payload = get_codec().unseal(data)
    return json.dumps(payload).encode("utf-8")


def create_response(
    status_code: int,
    message: str,
    payload: Any = None,
    *,
    encrypt: bool = True,
) -> JSONResponse:
    success = 200 <= status_code < 300
    data: Any = None
    headers: dict[str, str] = {}

    if payload is not None:
        payload = jsonable_encoder(payload)
        if encrypt:
            data = get_codec().seal(payload)
            headers[ENCRYPTED_HEADER] = "true"
        else:
            data = payload

    return JSONResponse(
        status_code=status_code,
        content={"success": success, "message": message, "data": data},
        headers=headers or None,
    )


def set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=REFRESH_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.REFRESH_COOKIE_SECURE,
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        REFRESH_COOKIE,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.REFRESH_COOKIE_SECURE,
    )
