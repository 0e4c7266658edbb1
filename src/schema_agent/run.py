"""Compile / generate / refine a schema and write its artifacts."""
from __future__ import annotations
from pathlib import Path

from rich.console import Console

from schema_agent.config import settings
from schema_agent.diagram_compiler import compile_diagram_with_theme
from schema_agent.export import load_schema, write_exports
from schema_agent.llm.generator import SchemaGenerator
from schema_agent.model import SQLDialect
from schema_agent.store import SchemaStore

console = Console()


class GenerationFailed(RuntimeError):
    pass


def _write(store: SchemaStore, out_dir: Path | None, theme: str | None) -> dict[str, Path]:
    base = out_dir or settings.output_dir
    theme = theme or settings.diagram_theme
    diagram = compile_diagram_with_theme(store.schema, theme) if theme else store.compiled_diagram
    paths = write_exports(store.schema, store.compiled_sql, diagram, base)
    schema = store.schema
    console.print(
        f"[bold]{schema.name}[/bold] ({schema.dialect}): "
        f"tables=[green]{len(schema.tables)}[/green], relationships=[green]{len(schema.relationships)}[/green]"
    )
    console.print(f"[bold green]SQL:[/bold green]     {paths['sql']}")
    console.print(f"[bold green]Diagram:[/bold green] {paths['diagram']}")
    console.print(f"[bold green]JSON:[/bold green]    {paths['json']}")
    return paths


def run_compile(
    schema_path: Path,
    out_dir: Path | None = None,
    dialect: SQLDialect | None = None,
    theme: str | None = None,
) -> dict[str, Path]:
    store = SchemaStore(load_schema(schema_path))
    if dialect and dialect != store.schema.dialect:
        store.set_dialect(dialect)
    return _write(store, out_dir, theme)


def run_generate(
    prompt: str,
    dialect: SQLDialect | None = None,
    context: str | None = None,
    out_dir: Path | None = None,
    generator: SchemaGenerator | None = None,
) -> dict[str, Path]:
    store = SchemaStore()
    console.print("[yellow]Generating schema with Azure OpenAI[/yellow]")
    store.generate(generator or SchemaGenerator(), prompt, dialect or settings.default_dialect, context)
    if store.error:
        raise GenerationFailed(store.error)
    return _write(store, out_dir, None)


def run_refine(
    schema_path: Path,
    instruction: str,
    out_dir: Path | None = None,
    generator: SchemaGenerator | None = None,
) -> dict[str, Path]:
    store = SchemaStore(load_schema(schema_path))
    console.print("[yellow]Refining schema with Azure OpenAI[/yellow]")
    store.refine(generator or SchemaGenerator(), instruction)
    if store.error:
        raise GenerationFailed(store.error)
    return _write(store, out_dir, None)
