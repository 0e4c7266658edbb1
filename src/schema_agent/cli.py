"""
스키마 컴파일 CLI.
- compile: schema JSON → SQL DDL + Mermaid ER diagram + JSON
- generate: 자연어 설명 → (Azure OpenAI) → schema → 산출물
- refine: 기존 schema JSON + 수정 지시 → 산출물
- watch: schema JSON 저장 시마다 재컴파일
"""
from __future__ import annotations
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from schema_agent.dialects import DIALECTS
from schema_agent.diagram_compiler import THEMES
from schema_agent.run import GenerationFailed, run_compile, run_generate, run_refine
from schema_agent import watch as watch_mod

console = Console()

app = typer.Typer(
    name="schema-agent",
    add_completion=False,
    help="Database schema IR → SQL DDL (PostgreSQL/MySQL) and Mermaid ER diagrams",
)


def _check_dialect(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in DIALECTS:
        raise typer.BadParameter(f"dialect must be one of {sorted(DIALECTS)}")
    return value


def _check_theme(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in THEMES:
        raise typer.BadParameter(f"theme must be one of {list(THEMES)}")
    return value


def _schema_arg() -> Path:
    return typer.Argument(..., exists=True, dir_okay=False, help="Schema JSON 파일")


@app.command("compile")
def compile_cmd(
    schema: Path = _schema_arg(),
    out_dir: Optional[Path] = typer.Option(None, help="출력 디렉터리 (기본: SCHEMA_OUTPUT_DIR)"),
    dialect: Optional[str] = typer.Option(None, callback=_check_dialect, help="dialect override: mysql / postgresql"),
    theme: Optional[str] = typer.Option(None, callback=_check_theme, help="Mermaid theme"),
):
    """Schema JSON을 SQL / 다이어그램으로 컴파일."""
    try:
        run_compile(schema, out_dir=out_dir, dialect=dialect, theme=theme)
    except ValidationError as e:
        console.print(f"[red]Invalid schema file {schema}:[/red]\n{e}")
        raise typer.Exit(code=1)


@app.command()
def generate(
    prompt: str = typer.Argument(..., help="애플리케이션 설명"),
    dialect: Optional[str] = typer.Option(None, callback=_check_dialect, help="mysql / postgresql"),
    context: Optional[str] = typer.Option(None, help="추가 컨텍스트"),
    out_dir: Optional[Path] = typer.Option(None, help="출력 디렉터리"),
):
    """자연어 설명으로 스키마 생성 (Azure OpenAI)."""
    try:
        run_generate(prompt, dialect=dialect, context=context, out_dir=out_dir)
    except GenerationFailed as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def refine(
    schema: Path = _schema_arg(),
    instruction: str = typer.Argument(..., help="수정 지시"),
    out_dir: Optional[Path] = typer.Option(None, help="출력 디렉터리"),
):
    """기존 스키마를 지시에 따라 수정 (Azure OpenAI)."""
    try:
        run_refine(schema, instruction, out_dir=out_dir)
    except ValidationError as e:
        console.print(f"[red]Invalid schema file {schema}:[/red]\n{e}")
        raise typer.Exit(code=1)
    except GenerationFailed as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def watch(
    schema: Path = _schema_arg(),
    out_dir: Optional[Path] = typer.Option(None, help="출력 디렉터리"),
    dialect: Optional[str] = typer.Option(None, callback=_check_dialect, help="dialect override"),
    theme: Optional[str] = typer.Option(None, callback=_check_theme, help="Mermaid theme"),
):
    """Schema JSON 변경 시 자동 재컴파일."""
    watch_mod.watch(schema, out_dir=out_dir, dialect=dialect, theme=theme)


if __name__ == "__main__":
    app()
