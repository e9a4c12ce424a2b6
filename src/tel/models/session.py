import secrets
from typing import Any
from uuid import UUID

from pydantic import field_validator

from tel.models.base import FrozenModel, ensure_hex_digest, ensure_non_empty_text


class SessionInstance(FrozenModel):
    token: str
    query_id: int
    row_digest: str
    filter_text: str = ""

    @field_validator("token")
    @classmethod
    def _ensure_token(cls, value: str) -> str:
        return ensure_non_empty_text(value, "token")

    @field_validator("row_digest", mode="before")
    @classmethod
    def _validate_digest(cls, value: Any) -> str:
        return ensure_hex_digest(value)

    @field_validator("filter_text", mode="before")
    @classmethod
    def _null_filter(cls, value: Any) -> str:
        return value or ""


def generate_token() -> str:
    """Allocate a session token: 128 random bits in 8-4-4-4-12 hex form."""
    return str(UUID(bytes=secrets.token_bytes(16)))
