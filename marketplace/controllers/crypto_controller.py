"""
Crypto controller — developer helpers for producing and inspecting
envelope payloads by hand (Postman, curl).

Only mounted when DEBUG is on.  None of these routes are authenticated.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Body, status
from pydantic import BaseModel

from marketplace.core.envelope import decode_uri_component, encode_uri_component, get_codec, to_json
from marketplace.core.errors import DecryptionError
from marketplace.core.responses import EnvelopeRoute, create_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Crypto (dev)"], route_class=EnvelopeRoute)


class EncryptRequest(BaseModel):
    text: str


class DecryptRequest(BaseModel):
    encrypted: str


@router.post("/crypto/encode")
async def encode(payload: Any = Body(...)):
    """JSON body → the compact string a client would percent-encode and encrypt."""
    return {"success": True, "text": to_json(payload)}


@router.post("/crypto/encrypt")
async def encrypt(body: EncryptRequest):
    return {"encrypted": get_codec().encrypt(encode_uri_component(body.text))}


@router.post("/crypto/decrypt")
async def decrypt(body: DecryptRequest):
    try:
        decrypted = decode_uri_component(get_codec().decrypt(body.encrypted))
        parsed = json.loads(decrypted)
    except ValueError as exc:
        raise DecryptionError() from exc
    return {"decrypted": decrypted, "parsed": parsed}


@router.post("/secure/test")
async def secure_test(payload: Any = Body(default=None)):
    """Echo the (possibly unsealed) body back inside a sealed response."""
    logger.debug("Secure test received a %s body", type(payload).__name__)
    return create_response(
        status.HTTP_200_OK,
        "Secure test successful",
        {"receivedBody": payload, "serverNote": "This was processed by secure test API"},
    )
