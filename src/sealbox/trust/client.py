from __future__ import annotations

import base64
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Protocol

import httpx

from .token import (
    TOKEN_KIND,
    decode_token,
    encode_token,
    gen_ed25519_keypair,
    key_id,
    seal_token,
    verify_token,
)


class TrustServiceError(Exception):
    pass


class TrustServiceClient(Protocol):
    def sign(self, data_hash: str, hash_alg: str, identity: str) -> bytes:
        ...

    def verify(self, token: bytes) -> bool:
        ...


class LocalTrustService:
    """In-process timestamping authority for development and tests.

    Issues Ed25519-sealed tokens whose identity chain is the configured
    aggregator prefix followed by the submitter id. The keypair lives under
    ``keys_dir`` and is generated on first use.
    """

    def __init__(self, keys_dir: Path, identity_prefix: list[str], clock: Callable[[], float] = time.time):
        self.keys_dir = Path(keys_dir)
        self.identity_prefix = list(identity_prefix)
        self._clock = clock
        self._sk_file = self.keys_dir / "signing_key_ed25519.b64"
        self._vk_file = self.keys_dir / "verify_key_ed25519.b64"
        self._keys_lock = threading.Lock()

    def _load_keys(self) -> tuple[bytes, bytes]:
        # Signers of different containers run in parallel; only one may generate the keypair
        with self._keys_lock:
            self.keys_dir.mkdir(parents=True, exist_ok=True)
            if not self._sk_file.exists() or not self._vk_file.exists():
                sk_new, vk_new = gen_ed25519_keypair()
                self._sk_file.write_text(base64.b64encode(sk_new).decode())
                self._vk_file.write_text(base64.b64encode(vk_new).decode())
                logging.info("Generated trust service keypair in %s", self.keys_dir)
            sk = base64.b64decode(self._sk_file.read_text().strip())
            vk = base64.b64decode(self._vk_file.read_text().strip())
        return sk, vk

    def sign(self, data_hash: str, hash_alg: str, identity: str) -> bytes:
        sk, vk = self._load_keys()
        core = {
            "kind": TOKEN_KIND,
            "hash_alg": hash_alg,
            "data_hash": data_hash,
            "ts_ms": int(self._clock() * 1000),
            "identity": [*self.identity_prefix, identity],
            "signer_kid": key_id(vk),
        }
        return encode_token(seal_token(core, sk))

    def verify(self, token: bytes) -> bool:
        _, vk = self._load_keys()
        return verify_token(decode_token(token), vk)


class HttpTrustService:
    """Client for a remote timestamping authority.

    ``POST {url}/sign`` takes ``{"hash_alg", "data_hash", "identity"}`` and
    answers with the raw token; ``POST {url}/verify`` takes the raw token and
    answers ``{"ok": bool}``. Credentials go in HTTP basic auth.
    """

    def __init__(
        self,
        url: str,
        login_id: str,
        login_key: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.url = url.rstrip("/")
        self._auth = (login_id, login_key)
        self._timeout = timeout
        self._client = client or httpx.Client()

    def _post(self, path: str, **kwargs) -> httpx.Response:
        r = self._client.post(f"{self.url}{path}", auth=self._auth, timeout=self._timeout, **kwargs)
        if r.status_code == 401 or r.status_code == 403:
            raise TrustServiceError(f"trust service rejected credentials ({r.status_code})")
        if r.status_code >= 400:
            raise TrustServiceError(f"trust service error {r.status_code}: {r.text[:200]}")
        return r

    def sign(self, data_hash: str, hash_alg: str, identity: str) -> bytes:
        r = self._post("/sign", json={"hash_alg": hash_alg, "data_hash": data_hash, "identity": identity})
        if not r.content:
            raise TrustServiceError("trust service returned an empty token")
        return r.content

    def verify(self, token: bytes) -> bool:
        r = self._post("/verify", content=token, headers={"content-type": "application/octet-stream"})
        return r.json().get("ok") is True


__all__ = ["TrustServiceClient", "TrustServiceError", "LocalTrustService", "HttpTrustService"]
