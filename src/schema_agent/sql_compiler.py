"""Schema IR -> SQL DDL (PostgreSQL / MySQL).

Sections are emitted in a fixed order and skipped when empty:
header, namespaces, enum types, tables, indexes, foreign keys,
junction tables, stored procedures.
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from schema_agent.dialects import DialectProfile, get_dialect
from schema_agent.model import (
    ColumnDefinition,
    RelationshipDefinition,
    SchemaDefinition,
    StoredProcedureDefinition,
    TableDefinition,
)

SQL_FUNCTION_MARKERS = ("CURRENT_TIMESTAMP", "NOW()", "UUID")
RULE = "-- " + "=" * 44


def escape_string(value: str) -> str:
    return value.replace("'", "''")


def quote_literal(value: str) -> str:
    return f"'{escape_string(value)}'"


def enum_type_name(table: TableDefinition, column: ColumnDefinition) -> str:
    return f"{table.name}_{column.name}_enum"


def format_default(value, d: DialectProfile) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return d.bool_literal(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    upper = value.upper()
    if any(marker in upper for marker in SQL_FUNCTION_MARKERS):
        return value
    return quote_literal(value)


def qualified_name(table: TableDefinition, d: DialectProfile) -> str:
    if d.supports_namespaces and table.namespace:
        return f"{d.quote(table.namespace)}.{d.quote(table.name)}"
    return d.quote(table.name)


def column_type(column: ColumnDefinition, table: TableDefinition, d: DialectProfile) -> str:
    base = d.types[column.type]
    if column.type in ("varchar", "char"):
        return f"{base}({column.length or d.default_length})"
    if column.type in ("decimal", "numeric"):
        precision = column.precision or d.default_precision
        scale = column.scale or d.default_scale
        return f"{base}({precision}, {scale})"
    if column.type == "enum":
        if d.named_enum_types:
            return enum_type_name(table, column)
        values = ", ".join(quote_literal(v) for v in column.enum_values or [])
        return f"ENUM({values})"
    return base


def column_line(column: ColumnDefinition, table: TableDefinition, d: DialectProfile) -> str:
    parts = [f"  {d.quote(column.name)}", column_type(column, table, d)]
    # primary key implies NOT NULL / UNIQUE
    if not column.is_nullable and not column.is_primary_key:
        parts.append("NOT NULL")
    if column.is_unique and not column.is_primary_key:
        parts.append("UNIQUE")
    # a null default prints nothing
    if column.default_value is not None:
        parts.append(f"DEFAULT {format_default(column.default_value, d)}")
    return " ".join(parts)


# ---- sections ----

def _header(schema: SchemaDefinition, d: DialectProfile, generated_at: datetime) -> str:
    stamp = generated_at.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return "\n".join([
        RULE,
        f"-- Database Schema: {schema.name}",
        f"-- Dialect: {d.label}",
        f"-- Generated: {stamp}",
        f"-- Description: {schema.description or 'Auto-generated schema'}",
        RULE,
    ])


def _namespaces(schema: SchemaDefinition, d: DialectProfile) -> str:
    if not d.supports_namespaces:
        return ""
    names = dict.fromkeys(
        t.namespace for t in schema.tables if t.namespace and t.namespace != "public"
    )
    if not names:
        return ""
    lines = ["-- Schemas"]
    lines += [f"CREATE SCHEMA IF NOT EXISTS {d.quote(n)};" for n in names]
    return "\n".join(lines)


def _enum_types(schema: SchemaDefinition, d: DialectProfile) -> str:
    if not d.named_enum_types:
        return ""
    lines: list[str] = []
    for table in schema.tables:
        for col in table.columns:
            if col.type == "enum" and col.enum_values:
                values = ", ".join(quote_literal(v) for v in col.enum_values)
                lines.append(f"CREATE TYPE {enum_type_name(table, col)} AS ENUM ({values});")
    if not lines:
        return ""
    return "\n".join(["-- Enum Types", *lines])


def _table(table: TableDefinition, d: DialectProfile) -> str:
    name = qualified_name(table, d)
    lines: list[str] = []
    if table.comment:
        lines.append(f"-- {table.comment}")
    lines.append(f"CREATE TABLE {name} (")

    defs = [column_line(c, table, d) for c in table.columns]
    pk_cols = [d.quote(c.name) for c in table.columns if c.is_primary_key]
    if pk_cols:
        defs.append(f"  PRIMARY KEY ({', '.join(pk_cols)})")
    if defs:
        lines.append(",\n".join(defs))
    lines.append(f"){d.table_suffix};")

    if d.supports_comment_on:
        if table.comment:
            lines.append(f"COMMENT ON TABLE {name} IS {quote_literal(table.comment)};")
        for col in table.columns:
            if col.comment:
                lines.append(
                    f"COMMENT ON COLUMN {name}.{d.quote(col.name)} IS {quote_literal(col.comment)};"
                )
    return "\n".join(lines)


def _tables(schema: SchemaDefinition, d: DialectProfile) -> str:
    if not schema.tables:
        return ""
    return "-- Tables\n" + "\n\n".join(_table(t, d) for t in schema.tables)


def _indexes(schema: SchemaDefinition, d: DialectProfile) -> str:
    lines: list[str] = []
    for table in schema.tables:
        name = qualified_name(table, d)
        for idx in table.indexes:
            unique = "UNIQUE " if idx.is_unique else ""
            using = ""
            if d.supports_index_method and idx.type and idx.type != "btree":
                using = f" USING {idx.type.upper()}"
            cols = ", ".join(d.quote(c) for c in idx.columns)
            lines.append(f"CREATE {unique}INDEX {d.quote(idx.name)} ON {name}{using} ({cols});")
    if not lines:
        return ""
    return "\n".join(["-- Indexes", *lines])


def _foreign_keys(schema: SchemaDefinition, d: DialectProfile) -> str:
    blocks: list[str] = []
    for table in schema.tables:
        name = qualified_name(table, d)
        for fk in table.foreign_keys:
            on_update = f" ON UPDATE {fk.on_update}" if fk.on_update else ""
            blocks.append(
                f"ALTER TABLE {name}\n"
                f"  ADD CONSTRAINT {d.quote(fk.constraint_name)}\n"
                f"  FOREIGN KEY ({d.quote(fk.column_name)})\n"
                f"  REFERENCES {d.quote(fk.referenced_table)} ({d.quote(fk.referenced_column)})\n"
                f"  ON DELETE {fk.on_delete}{on_update};"
            )
    if not blocks:
        return ""
    return "-- Foreign Key Constraints\n" + "\n\n".join(blocks)


def _junction_table(rel: RelationshipDefinition, d: DialectProfile) -> str:
    jt = rel.junction_table
    src, tgt = d.quote(jt.source_column), d.quote(jt.target_column)
    int_type = d.types["integer"]
    return "\n".join([
        f"-- Junction table for {rel.source_table} <-> {rel.target_table}",
        f"CREATE TABLE {d.quote(jt.name)} (",
        f"  {src} {int_type} NOT NULL,",
        f"  {tgt} {int_type} NOT NULL,",
        f"  {d.quote('created_at')} TIMESTAMP DEFAULT CURRENT_TIMESTAMP,",
        f"  PRIMARY KEY ({src}, {tgt}),",
        f"  FOREIGN KEY ({src}) REFERENCES {d.quote(rel.source_table)} "
        f"({d.quote(rel.source_column)}) ON DELETE CASCADE,",
        f"  FOREIGN KEY ({tgt}) REFERENCES {d.quote(rel.target_table)} "
        f"({d.quote(rel.target_column)}) ON DELETE CASCADE",
        f"){d.table_suffix};",
    ])


def _junction_tables(schema: SchemaDefinition, d: DialectProfile) -> str:
    blocks = [
        _junction_table(r, d)
        for r in schema.relationships
        if r.cardinality == "many-to-many" and r.junction_table
    ]
    if not blocks:
        return ""
    return "-- Junction Tables (Many-to-Many)\n" + "\n\n".join(blocks)


def _postgres_function(proc: StoredProcedureDefinition, d: DialectProfile) -> str:
    params = []
    for p in proc.parameters:
        direction = f"{p.direction} " if p.direction != "IN" else ""
        default = f" DEFAULT {p.default_value}" if p.default_value is not None else ""
        params.append(f"{direction}{p.name} {d.types[p.type]}{default}")

    if proc.return_type is None or proc.return_type == "void":
        returns = "VOID"
    elif proc.return_type == "table":
        returns = "TABLE"
    else:
        returns = d.types[proc.return_type]

    return "\n".join([
        f"-- {proc.comment or proc.name}",
        f"CREATE OR REPLACE FUNCTION {d.quote(proc.name)}({', '.join(params)})",
        f"RETURNS {returns}",
        f"LANGUAGE {proc.language or 'plpgsql'}",
        "AS $$",
        proc.body,
        "$$;",
    ])


def _mysql_procedure(proc: StoredProcedureDefinition, d: DialectProfile) -> str:
    params = ", ".join(f"{p.direction} {p.name} {d.types[p.type]}" for p in proc.parameters)
    return "\n".join([
        f"-- {proc.comment or proc.name}",
        "DELIMITER //",
        f"CREATE PROCEDURE {d.quote(proc.name)}({params})",
        "BEGIN",
        proc.body,
        "END //",
        "DELIMITER ;",
    ])


PROCEDURE_RENDERERS: dict[str, Callable[[StoredProcedureDefinition, DialectProfile], str]] = {
    "postgresql": _postgres_function,
    "mysql": _mysql_procedure,
}


def _stored_procedures(schema: SchemaDefinition, d: DialectProfile) -> str:
    if not schema.stored_procedures:
        return ""
    render = PROCEDURE_RENDERERS[d.name]
    return "-- Stored Procedures and Functions\n" + "\n\n".join(
        render(p, d) for p in schema.stored_procedures
    )


SECTIONS = (
    _namespaces,
    _enum_types,
    _tables,
    _indexes,
    _foreign_keys,
    _junction_tables,
    _stored_procedures,
)


def compile_sql(schema: SchemaDefinition, generated_at: Optional[datetime] = None) -> str:
    d = get_dialect(schema.dialect)
    sections = [_header(schema, d, generated_at or datetime.now(timezone.utc))]
    for section in SECTIONS:
        text = section(schema, d)
        if text.strip():
            sections.append(text)
    return "\n\n".join(sections)


def write_sql(schema: SchemaDefinition, out_path: Path) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(compile_sql(schema), encoding="utf-8")
    return out_path
