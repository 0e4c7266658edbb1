"""Schema IR: the dialect-neutral model both compilers read.

Attributes are snake_case in Python and camelCase on the wire, so a payload
produced by the generation service validates as-is.
"""
from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SQLDialect = Literal["mysql", "postgresql"]

ColumnType = Literal[
    "integer",
    "bigint",
    "smallint",
    "serial",
    "bigserial",
    "varchar",
    "text",
    "char",
    "boolean",
    "date",
    "timestamp",
    "timestamptz",
    "time",
    "decimal",
    "numeric",
    "float",
    "double",
    "json",
    "jsonb",
    "uuid",
    "blob",
    "enum",
]

Cardinality = Literal["one-to-one", "one-to-many", "many-to-many"]
OnDeleteAction = Literal["CASCADE", "SET NULL", "SET DEFAULT", "RESTRICT", "NO ACTION"]
IndexMethod = Literal["btree", "hash", "gin", "gist"]
ParameterDirection = Literal["IN", "OUT", "INOUT"]
ProcedureLanguage = Literal["sql", "plpgsql", "plsql"]
ReturnType = Union[ColumnType, Literal["void", "table"]]

# bool before int: True must not collapse to 1
DefaultValue = Union[bool, int, float, str, None]


def generate_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class IRModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ColumnDefinition(IRModel):
    id: str = Field(default_factory=generate_id)
    name: str
    type: ColumnType
    length: Optional[int] = None          # varchar / char
    precision: Optional[int] = None       # decimal / numeric
    scale: Optional[int] = None
    is_primary_key: bool = False
    is_nullable: bool = True
    is_unique: bool = False
    default_value: DefaultValue = None
    enum_values: Optional[list[str]] = None
    comment: Optional[str] = None

    @property
    def has_default(self) -> bool:
        """True when a default was supplied, including an explicit null."""
        return "default_value" in self.model_fields_set


class IndexDefinition(IRModel):
    id: str = Field(default_factory=generate_id)
    name: str
    columns: list[str] = Field(default_factory=list)
    is_unique: bool = False
    type: Optional[IndexMethod] = None    # PostgreSQL only


class ForeignKeyDefinition(IRModel):
    id: str = Field(default_factory=generate_id)
    constraint_name: str
    column_name: str
    referenced_table: str
    referenced_column: str
    on_delete: OnDeleteAction = "NO ACTION"
    on_update: Optional[OnDeleteAction] = None


class TableDefinition(IRModel):
    id: str = Field(default_factory=generate_id)
    name: str
    namespace: Optional[str] = Field(default=None, alias="schema")  # PostgreSQL only
    columns: list[ColumnDefinition] = Field(default_factory=list)
    indexes: list[IndexDefinition] = Field(default_factory=list)
    foreign_keys: list[ForeignKeyDefinition] = Field(default_factory=list)
    comment: Optional[str] = None


class JunctionTable(IRModel):
    name: str
    source_column: str
    target_column: str


class RelationshipDefinition(IRModel):
    id: str = Field(default_factory=generate_id)
    name: str = ""
    source_table: str
    source_column: str
    target_table: str
    target_column: str
    cardinality: Cardinality
    on_delete: OnDeleteAction = "NO ACTION"
    junction_table: Optional[JunctionTable] = None


class ProcedureParameter(IRModel):
    name: str
    type: ColumnType
    direction: ParameterDirection = "IN"
    default_value: Optional[str] = None


class StoredProcedureDefinition(IRModel):
    id: str = Field(default_factory=generate_id)
    name: str
    parameters: list[ProcedureParameter] = Field(default_factory=list)
    return_type: Optional[ReturnType] = None
    body: str = ""
    language: Optional[ProcedureLanguage] = None
    comment: Optional[str] = None


class SchemaDefinition(IRModel):
    id: str = Field(default_factory=generate_id)
    name: str
    description: str = ""
    dialect: SQLDialect = "postgresql"
    tables: list[TableDefinition] = Field(default_factory=list)
    relationships: list[RelationshipDefinition] = Field(default_factory=list)
    stored_procedures: list[StoredProcedureDefinition] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


# ---- generation service contract ----

class GenerateSchemaRequest(IRModel):
    prompt: str
    dialect: SQLDialect = "postgresql"
    additional_context: Optional[str] = None


class RefineSchemaRequest(IRModel):
    schema_: SchemaDefinition = Field(alias="schema")
    refinement_prompt: str


class GenerateSchemaResponse(IRModel):
    success: bool
    schema_: Optional[SchemaDefinition] = Field(default=None, alias="schema")
    error: Optional[str] = None


def create_empty_schema(dialect: SQLDialect = "postgresql") -> SchemaDefinition:
    return SchemaDefinition(name="New Schema", dialect=dialect)


def schema_to_dict(schema: SchemaDefinition) -> dict[str, Any]:
    """camelCase, JSON-ready dump. Absent optionals are dropped, explicit null defaults kept."""
    data = schema.model_dump(mode="json", by_alias=True, exclude_none=True)
    for table, table_data in zip(schema.tables, data["tables"]):
        for col, col_data in zip(table.columns, table_data["columns"]):
            if col.has_default and col.default_value is None:
                col_data["defaultValue"] = None
    return data
