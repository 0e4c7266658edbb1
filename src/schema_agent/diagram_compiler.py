"""Schema IR -> Mermaid erDiagram text."""
from __future__ import annotations

import re
from functools import reduce
from pathlib import Path
from typing import Optional

from schema_agent.model import (
    ColumnDefinition,
    RelationshipDefinition,
    SchemaDefinition,
    TableDefinition,
)

# ||  exactly one
# o{  zero or more
CARDINALITY_CONNECTORS: dict[str, tuple[str, str]] = {
    "one-to-one": ("||", "||"),
    "one-to-many": ("||", "o{"),
    "many-to-many": ("}o", "o{"),
}

DIAGRAM_TYPES = {"integer": "int"}

THEMES = ("default", "dark", "forest", "neutral")

_IDENT_RE = re.compile(r"[^A-Za-z0-9_]")
_LABEL_RE = re.compile(r"[^A-Za-z0-9_ ]")


def sanitize_name(name: str) -> str:
    return _IDENT_RE.sub("_", name)


def sanitize_label(name: str) -> str:
    return _LABEL_RE.sub("_", name)


def column_line(col: ColumnDefinition) -> str:
    type_label = DIAGRAM_TYPES.get(col.type, col.type)
    marker = ""
    if col.is_primary_key:
        marker = ' "PK"'
    elif col.is_unique:
        marker = ' "UK"'
    return f"{type_label} {sanitize_name(col.name)}{marker}"


def entity_block(table: TableDefinition) -> list[str]:
    lines = [f"    {sanitize_name(table.name)} {{"]
    lines += [f"        {column_line(c)}" for c in table.columns]
    lines.append("    }")
    return lines


def relationship_line(source: str, target: str, connectors: tuple[str, str], label: str) -> str:
    left, right = connectors
    return f'    {sanitize_name(source)} {left}--{right} {sanitize_name(target)} : "{label}"'


def explicit_relationship(rel: RelationshipDefinition) -> str:
    label = sanitize_label(rel.name or f"{rel.source_table}_to_{rel.target_table}")
    return relationship_line(
        rel.source_table, rel.target_table, CARDINALITY_CONNECTORS[rel.cardinality], label
    )


def implicit_relationships(schema: SchemaDefinition) -> list[str]:
    """One-to-many lines for foreign keys whose table pair has no relationship yet.

    Pairs are unordered and tracked per table pair only, so two foreign keys
    between the same two tables yield a single line.
    """
    covered = frozenset(frozenset((r.source_table, r.target_table)) for r in schema.relationships)

    def step(acc: tuple[frozenset, list[str]], item: tuple[TableDefinition, str]):
        seen, lines = acc
        table, referenced = item
        pair = frozenset((table.name, referenced))
        if pair in seen:
            return acc
        label = sanitize_label(f"has_{table.name}")
        line = relationship_line(referenced, table.name, CARDINALITY_CONNECTORS["one-to-many"], label)
        return seen | {pair}, [*lines, line]

    fk_edges = [(t, fk.referenced_table) for t in schema.tables for fk in t.foreign_keys]
    _, lines = reduce(step, fk_edges, (covered, []))
    return lines


def compile_diagram(schema: SchemaDefinition) -> str:
    lines = ["erDiagram"]
    for table in schema.tables:
        lines += entity_block(table)
    lines += [explicit_relationship(r) for r in schema.relationships]
    lines += implicit_relationships(schema)
    return "\n".join(lines)


def compile_diagram_with_theme(schema: SchemaDefinition, theme: str = "default") -> str:
    if theme not in THEMES:
        raise ValueError(f"Unknown diagram theme: {theme!r} (expected one of {', '.join(THEMES)})")
    return f"%%{{init: {{'theme': '{theme}'}}}}%%\n" + compile_diagram(schema)


def write_diagram(schema: SchemaDefinition, out_path: Path, theme: Optional[str] = None) -> Path:
    text = compile_diagram_with_theme(schema, theme) if theme else compile_diagram(schema)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
    return out_path
