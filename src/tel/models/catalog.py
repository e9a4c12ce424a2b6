from typing import Any

from pydantic import ConfigDict, Field, ValidationError, field_validator

from tel.errors import ConfigParseError
from tel.models.base import FrozenModel, ensure_mapping, ensure_non_empty_text

DEFAULT_QUERY_HEIGHT = 10


class Connection(FrozenModel):
    id: int
    driver: str
    name: str
    connect: str
    comment: str | None = None

    @field_validator("driver", "name")
    @classmethod
    def _ensure_non_empty(cls, value: str) -> str:
        return ensure_non_empty_text(value, "value")


class Item(FrozenModel):
    id: int
    name: str
    connection_id: int


class DisplayConfig(FrozenModel):
    """Per-query display overlay: column widths, column aliases, table height.

    Width keys are canonical display names (the alias when one exists, else the
    upper-cased column name). Alias keys are raw column names and are
    upper-cased on load so lookups are case-insensitive.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    widths: dict[str, int] = Field(default_factory=dict)
    aliases: dict[str, str] = Field(default_factory=dict)
    height: int = Field(default=0, ge=0)

    @field_validator("widths", "aliases", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> dict[str, Any]:
        return ensure_mapping(value, "display config field")

    @field_validator("aliases")
    @classmethod
    def _upper_alias_keys(cls, value: dict[str, str]) -> dict[str, str]:
        return {key.upper(): alias for key, alias in value.items()}

    @field_validator("height", mode="before")
    @classmethod
    def _null_height(cls, value: Any) -> Any:
        return 0 if value is None else value

    @classmethod
    def parse(cls, raw: str | None, stored_height: int | None = None) -> "DisplayConfig":
        """Parse a serialized config, filling in the height fallbacks.

        An absent or blank config yields empty maps. A config height of 0 falls
        back to the stored query height, and a missing stored height to 10.

        Raises:
            ConfigParseError: If the config is not valid JSON of the right shape.
        """
        fallback_height = DEFAULT_QUERY_HEIGHT if stored_height is None else stored_height
        if raw is None or not raw.strip():
            return cls(height=fallback_height)
        try:
            config = cls.model_validate_json(raw)
        except ValidationError as e:
            raise ConfigParseError(f"malformed display config: {e}") from e
        if config.height == 0:
            config = config.model_copy(update={"height": fallback_height})
        return config


class QueryDefinition(FrozenModel):
    id: int
    name: str
    item_id: int | None = None
    sql: str
    display: DisplayConfig = Field(default_factory=DisplayConfig)

    @field_validator("sql")
    @classmethod
    def _ensure_sql(cls, value: str) -> str:
        return ensure_non_empty_text(value, "sql")
