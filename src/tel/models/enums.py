from enum import StrEnum


class DriverKind(StrEnum):
    SQLITE = "sqlite"
    POSTGRES = "postgres"
    PGX = "pgx"
    DUCKDB = "duckdb"


class Focus(StrEnum):
    TABLE = "table"
    FILTER = "filter"


class ViewMode(StrEnum):
    TABLE = "table"
    COLUMN = "column"
