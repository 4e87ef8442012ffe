from __future__ import annotations

from typing import Any


class ContainerError(Exception):
    """Base class for every failure surfaced by a container operation.

    ``message`` is user-facing; the HTTP layer renders it as ``{"Error": message}``.
    """

    code = "E_CONTAINER"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"Error": self.message}


class ValidationError(ContainerError):
    code = "E_VALIDATION"


class NameConflict(ContainerError):
    code = "E_NAME_CONFLICT"


class NotFound(ContainerError):
    code = "E_NOT_FOUND"


class SigningFailure(ContainerError):
    code = "E_SIGNING"


class DecodeFailure(ContainerError):
    code = "E_DECODE"


class IOFailure(ContainerError):
    code = "E_IO"


__all__ = [
    "ContainerError",
    "ValidationError",
    "NameConflict",
    "NotFound",
    "SigningFailure",
    "DecodeFailure",
    "IOFailure",
]
