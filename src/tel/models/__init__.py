from tel.models.catalog import Connection, DisplayConfig, Item, QueryDefinition
from tel.models.enums import DriverKind, Focus, ViewMode
from tel.models.result import Column, ResultSet
from tel.models.session import SessionInstance

__all__ = [
    "Column",
    "Connection",
    "DisplayConfig",
    "DriverKind",
    "Focus",
    "Item",
    "QueryDefinition",
    "ResultSet",
    "SessionInstance",
    "ViewMode",
]
