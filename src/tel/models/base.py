from typing import Any

from pydantic import BaseModel, ConfigDict

HEX_DIGITS = frozenset("0123456789abcdef")


class FrozenModel(BaseModel):
    """Base class for immutable domain values."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


def ensure_hex_digest(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("expected string hex digest")
    digest = value.strip().lower()
    if not digest:
        raise ValueError("hex digest cannot be empty")
    if len(digest) % 2 != 0:
        raise ValueError("hex digest length must be even")
    if any(ch not in HEX_DIGITS for ch in digest):
        raise ValueError("hex digest must contain only hexadecimal characters")
    return digest


def ensure_non_empty_text(value: str, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    if not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value


def ensure_mapping(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    raise ValueError(f"{field_name} must be a mapping")
