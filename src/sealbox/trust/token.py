from __future__ import annotations

import base64
import hashlib
import json
from typing import Any

from nacl.encoding import RawEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

TOKEN_KIND = "sealbox.signature"
# Fields added by sealing; everything else is the signed core.
SEAL_FIELDS = ("payload_hash_b64", "token_sig_b64", "sig_alg")


class TokenFormatError(ValueError):
    pass


def canonical_json(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sha256_b64(data: bytes) -> str:
    return base64.b64encode(hashlib.sha256(data).digest()).decode()


def gen_ed25519_keypair() -> tuple[bytes, bytes]:
    sk = SigningKey.generate()
    vk = sk.verify_key
    return (bytes(sk), bytes(vk))


def key_id(vk_bytes: bytes) -> str:
    return base64.b64encode(hashlib.sha256(vk_bytes).digest()).decode()[:16]


def seal_token(core: dict[str, Any], sk_bytes: bytes) -> dict[str, Any]:
    """Return a new dict with 'payload_hash_b64', 'token_sig_b64' and 'sig_alg'."""
    payload = canonical_json(core)
    sk = SigningKey(sk_bytes)
    sig = sk.sign(payload, encoder=RawEncoder).signature  # 64 bytes
    return {
        **core,
        "payload_hash_b64": sha256_b64(payload),
        "token_sig_b64": base64.b64encode(sig).decode(),
        "sig_alg": "ed25519",
    }


def encode_token(token: dict[str, Any]) -> bytes:
    return canonical_json(token)


def decode_token(raw: bytes) -> dict[str, Any]:
    """Parse token bytes, checking the fields every consumer relies on."""
    try:
        obj = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TokenFormatError("signature token is not valid JSON") from e
    if not isinstance(obj, dict) or obj.get("kind") != TOKEN_KIND:
        raise TokenFormatError("not a sealbox signature token")
    identity = obj.get("identity")
    if not isinstance(identity, list) or not identity or not all(isinstance(s, str) for s in identity):
        raise TokenFormatError("token identity chain missing or malformed")
    for field in ("data_hash", "hash_alg", *SEAL_FIELDS):
        if not isinstance(obj.get(field), str):
            raise TokenFormatError(f"token field '{field}' missing")
    return obj


def verify_token(token: dict[str, Any], vk_bytes: bytes) -> bool:
    core = {k: v for k, v in token.items() if k not in SEAL_FIELDS}
    payload = canonical_json(core)
    if sha256_b64(payload) != token.get("payload_hash_b64"):
        return False
    try:
        sig = base64.b64decode(token.get("token_sig_b64", ""))
        VerifyKey(vk_bytes).verify(payload, sig, encoder=RawEncoder)
        return True
    except (BadSignatureError, ValueError):
        return False
