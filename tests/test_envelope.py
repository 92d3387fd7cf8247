import base64

import pytest
from pydantic import ValidationError

from marketplace.core.config import Settings
from marketplace.core.envelope import (
    EnvelopeCodec,
    decode_uri_component,
    encode_uri_component,
    get_codec,
    to_json,
)
from marketplace.core.errors import DecryptionError

KEY = bytes(range(32))
IV = bytes(range(16))


def test_encrypt_decrypt_round_trip():
    codec = EnvelopeCodec(KEY, IV)
    for plain in ["", "hello", "x" * 16, "naïve café ✓", '{"a":1}']:
        assert codec.decrypt(codec.encrypt(plain)) == plain


def test_encrypt_is_deterministic_under_fixed_iv():
    codec = EnvelopeCodec(KEY, IV)
    assert codec.encrypt("same input") == codec.encrypt("same input")
    assert codec.encrypt("same input") != codec.encrypt("other input")


def test_ciphertext_is_base64_of_whole_blocks():
    raw = base64.b64decode(EnvelopeCodec(KEY, IV).encrypt("sixteen byte msg"))
    # A full block of input still gains a full block of PKCS#7 padding.
    assert len(raw) == 32


def test_different_iv_changes_ciphertext():
    a = EnvelopeCodec(KEY, IV).encrypt("payload")
    b = EnvelopeCodec(KEY, bytes(16)).encrypt("payload")
    assert a != b


def test_seal_unseal_round_trip():
    codec = EnvelopeCodec(KEY, IV)
    payload = {"email": "asha@marketplace.io", "tags": ["a b", "ü"], "n": 3, "ok": True}
    assert codec.unseal(codec.seal(payload)) == payload


def test_seal_encrypts_percent_encoded_json():
    codec = EnvelopeCodec(KEY, IV)
    payload = {"q": "a b&c"}
    assert codec.decrypt(codec.seal(payload)) == encode_uri_component('{"q":"a b&c"}')


def test_encode_uri_component_matches_javascript():
    assert encode_uri_component("a b&c=ü") == "a%20b%26c%3D%C3%BC"
    assert encode_uri_component("-_.!~*'()") == "-_.!~*'()"
    assert decode_uri_component("a%20b%26c%3D%C3%BC") == "a b&c=ü"


def test_to_json_is_compact():
    assert to_json({"a": [1, 2], "b": "é"}) == '{"a":[1,2],"b":"é"}'


@pytest.mark.parametrize(
    "cipher_text",
    [
        "not base64 !!",
        base64.b64encode(b"short").decode(),
        "",
    ],
)
def test_decrypt_rejects_malformed_input(cipher_text):
    with pytest.raises(DecryptionError):
        EnvelopeCodec(KEY, IV).decrypt(cipher_text)


def test_unseal_rejects_non_json_plaintext():
    codec = EnvelopeCodec(KEY, IV)
    with pytest.raises(DecryptionError):
        codec.unseal(codec.encrypt("definitely not json"))


def test_unseal_under_wrong_key_fails():
    sealed = EnvelopeCodec(KEY, IV).seal({"secret": "value"})
    with pytest.raises(DecryptionError):
        EnvelopeCodec(bytes(32), IV).unseal(sealed)


def test_codec_rejects_bad_sizes():
    with pytest.raises(ValueError):
        EnvelopeCodec(KEY[:16], IV)
    with pytest.raises(ValueError):
        EnvelopeCodec(KEY, IV[:8])


def test_get_codec_uses_configured_key():
    codec = get_codec()
    assert codec.unseal(codec.seal({"k": 1})) == {"k": 1}


@pytest.mark.parametrize(
    "overrides",
    [
        {"ENCRYPTION_KEY": "ab" * 31},
        {"ENCRYPTION_KEY": "zz" * 32},
        {"ENCRYPTION_IV": "ab" * 15},
        {"ENCRYPTION_ALGORITHM": "aes-128-gcm"},
        {"JWT_ACCESS_SECRET": "   "},
    ],
)
def test_settings_reject_bad_crypto_config(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)
