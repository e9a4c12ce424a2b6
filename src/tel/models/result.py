from typing import Any, Mapping

from pydantic import Field, field_validator, model_validator

from tel.models.base import FrozenModel

DEFAULT_COLUMN_WIDTH = 20


class Column(FrozenModel):
    """A result column.

    ``name`` is the upper-cased column name reported by the backend and is the
    key used for alias lookups. ``title`` is what gets rendered.
    """

    name: str
    title: str
    width: int = Field(default=DEFAULT_COLUMN_WIDTH, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _default_title(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and not data.get("title"):
            data = dict(data)
            name = data.get("name")
            data["title"] = name.upper() if isinstance(name, str) else name
        return data

    @field_validator("name", mode="before")
    @classmethod
    def _upper_name(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("column name must be a string")
        return value.upper()


class ResultSet(FrozenModel):
    columns: list[Column] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.rows or not self.columns

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]
