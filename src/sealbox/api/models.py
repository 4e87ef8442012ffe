from __future__ import annotations

from pydantic import BaseModel

# Fields are optional so a missing value reaches the service and gets its
# user-facing validation message instead of a generic 422.


class CreateRequest(BaseModel):
    name: str | None = None


class SignRequest(BaseModel):
    name: str | None = None
    userId: str | None = None
