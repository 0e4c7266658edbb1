"""HTTP request handling, independent of the hosting runtime.

Each handler takes the decoded JSON body and returns (payload, status).
"""
from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from schema_agent import __version__
from schema_agent.config import settings
from schema_agent.diagram_compiler import THEMES, compile_diagram_with_theme
from schema_agent.export import export_filename
from schema_agent.llm.aoai_client import is_configured
from schema_agent.llm.generator import SchemaGenerator
from schema_agent.model import (
    GenerateSchemaRequest,
    GenerateSchemaResponse,
    RefineSchemaRequest,
    SchemaDefinition,
    schema_to_dict,
)
from schema_agent.store import compile_snapshot

logger = logging.getLogger(__name__)

Result = tuple[dict[str, Any], int]


def error_payload(code: str, message: str, details: str = "", status: int = 400) -> Result:
    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details[:20_000]
    return payload, status


def _response(resp: GenerateSchemaResponse) -> Result:
    payload: dict[str, Any] = {"success": resp.success}
    if resp.schema_ is not None:
        payload["schema"] = schema_to_dict(resp.schema_)
    if resp.error:
        payload["error"] = resp.error
    return payload, 200


def health() -> Result:
    return {
        "status": "ok",
        "version": __version__,
        "ai_provider": "azure-openai" if is_configured(settings) else "none",
    }, 200


def handle_generate(body: Any, generator: SchemaGenerator) -> Result:
    try:
        request = GenerateSchemaRequest.model_validate(body)
    except ValidationError as e:
        return error_payload("INVALID_REQUEST", "prompt and dialect are required", details=str(e))
    if not request.prompt.strip():
        return error_payload("INVALID_REQUEST", "prompt must not be empty")
    logger.info("generate-schema: dialect=%s, prompt=%d chars", request.dialect, len(request.prompt))
    return _response(generator.generate(request))


def handle_refine(body: Any, generator: SchemaGenerator) -> Result:
    try:
        request = RefineSchemaRequest.model_validate(body)
    except ValidationError as e:
        return error_payload("INVALID_REQUEST", "schema and refinementPrompt are required", details=str(e))
    logger.info("refine-schema: schema=%r", request.schema_.name)
    return _response(generator.refine(request))


def handle_compile(body: Any) -> Result:
    """Compile a schema sent as {"schema": {...}, "theme"?: "..."}."""
    if not isinstance(body, dict) or "schema" not in body:
        return error_payload("MISSING_SCHEMA", "schema is required")
    theme = body.get("theme")
    if theme is not None and theme not in THEMES:
        return error_payload("INVALID_THEME", f"theme must be one of {list(THEMES)}")
    try:
        schema = SchemaDefinition.model_validate(body["schema"])
    except ValidationError as e:
        return error_payload("INVALID_SCHEMA", "schema does not match the IR", details=str(e))

    snap = compile_snapshot(schema)
    diagram = compile_diagram_with_theme(schema, theme) if theme else snap.compiled_diagram
    return {
        "sql": snap.compiled_sql,
        "diagram": diagram,
        "files": {kind: export_filename(schema.name, kind) for kind in ("sql", "diagram", "json")},
    }, 200
