"""
Symmetric payload envelope.

AES-256-CBC with PKCS#7 padding under a single process-wide key and a
fixed IV, base64 text on the wire.  The fixed IV makes the scheme
deterministic (same plaintext, same ciphertext): it obscures bodies in
transit but is not semantically secure.  Kept as-is for compatibility
with existing clients.

Callers never encrypt raw JSON.  The wire contract is
``encrypt(encodeURIComponent(JSON.stringify(payload)))``, which is what
`seal` / `unseal` implement.
"""

import base64
import binascii
import json
from functools import lru_cache
from typing import Any
from urllib.parse import quote, unquote

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from marketplace.core.config import settings
from marketplace.core.errors import DecryptionError

KEY_SIZE = 32
IV_SIZE = 16

# Characters JavaScript's encodeURIComponent leaves untouched.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_uri_component(text: str) -> str:
    return quote(text, safe=_URI_COMPONENT_SAFE)


def decode_uri_component(text: str) -> str:
    return unquote(text, errors="strict")


def to_json(payload: Any) -> str:
    """Compact JSON, byte-compatible with JSON.stringify for plain data."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


class EnvelopeCodec:
    def __init__(self, key: bytes, iv: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError(f"envelope key must be {KEY_SIZE} bytes, got {len(key)}")
        if len(iv) != IV_SIZE:
            raise ValueError(f"envelope IV must be {IV_SIZE} bytes, got {len(iv)}")
        self._key = key
        self._iv = iv

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))

    def encrypt(self, plain_text: str) -> str:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plain_text.encode("utf-8")) + padder.finalize()
        encryptor = self._cipher().encryptor()
        cipher_bytes = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(cipher_bytes).decode("ascii")

    def decrypt(self, cipher_text: str) -> str:
        try:
            cipher_bytes = base64.b64decode(cipher_text, validate=True)
            decryptor = self._cipher().decryptor()
            padded = decryptor.update(cipher_bytes) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plain = unpadder.update(padded) + unpadder.finalize()
            return plain.decode("utf-8")
        except (binascii.Error, ValueError, TypeError) as exc:
            # UnicodeDecodeError is a ValueError; so are bad block length & padding.
            raise DecryptionError() from exc

    def seal(self, payload: Any) -> str:
        return self.encrypt(encode_uri_component(to_json(payload)))

    def unseal(self, cipher_text: str) -> Any:
        plain = self.decrypt(cipher_text)
        try:
            return json.loads(decode_uri_component(plain))
        except ValueError as exc:
            raise DecryptionError() from exc


@lru_cache
def get_codec() -> EnvelopeCodec:
    """Process-wide codec; key and IV were validated when settings loaded."""
    return EnvelopeCodec(
        bytes.fromhex(settings.ENCRYPTION_KEY),
        bytes.fromhex(settings.ENCRYPTION_IV),
    )
