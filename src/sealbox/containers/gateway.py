from __future__ import annotations

import logging

import httpx

from ..trust.client import TrustServiceClient, TrustServiceError
from ..trust.token import TokenFormatError, decode_token
from .errors import DecodeFailure, SigningFailure
from .hashing import hash_bytes

# Failures a trust client may raise for a single request
_CLIENT_ERRORS = (TrustServiceError, httpx.HTTPError, OSError, ValueError)


class SigningGateway:
    """Adapter between container operations and a trust service client.

    One attempt per call; there is no retry here. Timeouts are enforced by the
    client and surface as ``SigningFailure`` like any other service failure.
    """

    def __init__(self, client: TrustServiceClient):
        self.client = client

    def sign(self, payload: bytes, identity: str) -> bytes:
        alg, digest = hash_bytes(payload)
        try:
            token = self.client.sign(digest, alg, identity)
        except httpx.TimeoutException as e:
            raise SigningFailure("Signing service timed out.") from e
        except _CLIENT_ERRORS as e:
            logging.warning("Trust service signing failed for %s: %s", identity, e)
            raise SigningFailure(f"Signing failed: {e}") from e
        # A token that does not decode could never be matched for deletion later.
        try:
            self.extract_identity(token)
        except DecodeFailure as e:
            raise SigningFailure(f"Signing service returned an unusable token: {e.message}") from e
        return token

    def extract_identity(self, artifact: bytes) -> list[str]:
        try:
            return list(decode_token(artifact)["identity"])
        except TokenFormatError as e:
            raise DecodeFailure(f"Malformed signature token: {e}") from e

    def verify(self, artifact: bytes, payload: bytes) -> bool:
        """True when the token binds ``payload`` and the trust service accepts it."""
        try:
            token = decode_token(artifact)
        except TokenFormatError:
            return False
        alg, digest = hash_bytes(payload)
        if token["hash_alg"] != alg or token["data_hash"] != digest:
            return False
        try:
            return self.client.verify(artifact)
        except _CLIENT_ERRORS as e:
            raise SigningFailure(f"Signature verification failed: {e}") from e


__all__ = ["SigningGateway"]
