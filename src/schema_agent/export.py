from __future__ import annotations
import json
import re
from pathlib import Path

from schema_agent.model import SchemaDefinition, schema_to_dict

_WS_RE = re.compile(r"\s+")

# kind -> (file suffix, content type)
EXPORT_KINDS: dict[str, tuple[str, str]] = {
    "sql": ("_schema.sql", "text/sql"),
    "diagram": ("_diagram.mmd", "text/plain"),
    "json": ("_schema.json", "application/json"),
}


def export_filename(schema_name: str, kind: str) -> str:
    suffix, _ = EXPORT_KINDS[kind]
    return _WS_RE.sub("_", schema_name.lower()) + suffix


def schema_json(schema: SchemaDefinition) -> str:
    return json.dumps(schema_to_dict(schema), ensure_ascii=False, indent=2)


def load_schema(path: Path) -> SchemaDefinition:
    return SchemaDefinition.model_validate_json(path.read_text(encoding="utf-8"))


def write_exports(schema: SchemaDefinition, compiled_sql: str, compiled_diagram: str, out_dir: Path) -> dict[str, Path]:
    """Write the SQL, diagram and JSON artifacts; returns kind -> path."""
    out_dir.mkdir(parents=True, exist_ok=True)
    contents = {
        "sql": compiled_sql,
        "diagram": compiled_diagram,
        "json": schema_json(schema),
    }
    paths: dict[str, Path] = {}
    for kind, text in contents.items():
        p = out_dir / export_filename(schema.name, kind)
        p.write_text(text, encoding="utf-8")
        paths[kind] = p
    return paths
