"""Per-dialect lookup tables used by the SQL compiler."""
from __future__ import annotations

from dataclasses import dataclass, field

from schema_agent.model import SQLDialect

_POSTGRES_TYPES = {
    "integer": "INTEGER",
    "bigint": "BIGINT",
    "smallint": "SMALLINT",
    "serial": "SERIAL",
    "bigserial": "BIGSERIAL",
    "varchar": "VARCHAR",
    "text": "TEXT",
    "char": "CHAR",
    "boolean": "BOOLEAN",
    "date": "DATE",
    "timestamp": "TIMESTAMP",
    "timestamptz": "TIMESTAMPTZ",
    "time": "TIME",
    "decimal": "DECIMAL",
    "numeric": "NUMERIC",
    "float": "REAL",
    "double": "DOUBLE PRECISION",
    "json": "JSON",
    "jsonb": "JSONB",
    "uuid": "UUID",
    "blob": "BYTEA",
    "enum": "VARCHAR",  # columns get a CREATE TYPE; only params/returns use this
}

_MYSQL_TYPES = {
    "integer": "INT",
    "bigint": "BIGINT",
    "smallint": "SMALLINT",
    "serial": "INT AUTO_INCREMENT",
    "bigserial": "BIGINT AUTO_INCREMENT",
    "varchar": "VARCHAR",
    "text": "TEXT",
    "char": "CHAR",
    "boolean": "TINYINT(1)",
    "date": "DATE",
    "timestamp": "TIMESTAMP",
    "timestamptz": "TIMESTAMP",
    "time": "TIME",
    "decimal": "DECIMAL",
    "numeric": "NUMERIC",
    "float": "FLOAT",
    "double": "DOUBLE",
    "json": "JSON",
    "jsonb": "JSON",
    "uuid": "CHAR(36)",
    "blob": "BLOB",
    "enum": "ENUM",
}


@dataclass(frozen=True)
class DialectProfile:
    name: SQLDialect
    label: str
    quote_char: str
    types: dict[str, str] = field(default_factory=dict)
    true_literal: str = "TRUE"
    false_literal: str = "FALSE"
    table_suffix: str = ""
    supports_namespaces: bool = False
    supports_comment_on: bool = False
    supports_index_method: bool = False
    named_enum_types: bool = False
    default_length: int = 255
    default_precision: int = 10
    default_scale: int = 2

    def quote(self, identifier: str) -> str:
        return f"{self.quote_char}{identifier}{self.quote_char}"

    def bool_literal(self, value: bool) -> str:
        return self.true_literal if value else self.false_literal


POSTGRESQL = DialectProfile(
    name="postgresql",
    label="PostgreSQL",
    quote_char='"',
    types=_POSTGRES_TYPES,
    supports_namespaces=True,
    supports_comment_on=True,
    supports_index_method=True,
    named_enum_types=True,
)

MYSQL = DialectProfile(
    name="mysql",
    label="MySQL",
    quote_char="`",
    types=_MYSQL_TYPES,
    true_literal="1",
    false_literal="0",
    table_suffix=" ENGINE=InnoDB DEFAULT CHARSET=utf8mb4",
)

DIALECTS: dict[str, DialectProfile] = {p.name: p for p in (POSTGRESQL, MYSQL)}


def get_dialect(name: SQLDialect) -> DialectProfile:
    return DIALECTS[name]
