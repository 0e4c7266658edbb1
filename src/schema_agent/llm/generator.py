"""LLM-backed schema generation and refinement."""
from __future__ import annotations
import json
import logging
from typing import Any

from openai import OpenAIError
from pydantic import ValidationError

from schema_agent.config import Settings, settings as default_settings
from schema_agent.llm.aoai_client import build_aoai_client
from schema_agent.model import (
    GenerateSchemaRequest,
    GenerateSchemaResponse,
    RefineSchemaRequest,
    SchemaDefinition,
    schema_to_dict,
    utc_now_iso,
)
from schema_agent.normalize import normalize_schema

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a senior database architect.
You design relational database schemas from a plain-language description of an application.
Use snake_case table and column names, give every table a primary key,
and declare a foreign key for every reference between tables.
Return ONLY valid JSON (no markdown, no explanation).
"""

SCHEMA_FORMAT = """Output JSON schema:
{
  "name": "...",
  "description": "...",
  "dialect": "postgresql",
  "tables": [
    {
      "name": "users",
      "schema": null,
      "columns": [
        {
          "name": "id",
          "type": "serial",
          "length": null,
          "precision": null,
          "scale": null,
          "isPrimaryKey": true,
          "isNullable": false,
          "isUnique": false,
          "defaultValue": null,
          "enumValues": null,
          "comment": "Primary key"
        }
      ],
      "indexes": [
        {"name": "idx_users_email", "columns": ["email"], "isUnique": true, "type": "btree"}
      ],
      "foreignKeys": [
        {
          "constraintName": "fk_posts_user",
          "columnName": "user_id",
          "referencedTable": "users",
          "referencedColumn": "id",
          "onDelete": "CASCADE",
          "onUpdate": null
        }
      ],
      "comment": "Registered users"
    }
  ],
  "relationships": [
    {
      "name": "user_writes_posts",
      "sourceTable": "users",
      "sourceColumn": "id",
      "targetTable": "posts",
      "targetColumn": "user_id",
      "cardinality": "one-to-many",
      "onDelete": "CASCADE",
      "junctionTable": null
    }
  ],
  "storedProcedures": [
    {
      "name": "...",
      "parameters": [{"name": "...", "type": "integer", "direction": "IN"}],
      "returnType": "void",
      "body": "...",
      "language": "plpgsql",
      "comment": "..."
    }
  ]
}

Allowed column types: integer, bigint, smallint, serial, bigserial, varchar, text, char,
boolean, date, timestamp, timestamptz, time, decimal, numeric, float, double, json, jsonb,
uuid, blob, enum (enum requires enumValues).
Cardinality: one-to-one, one-to-many, many-to-many (many-to-many requires junctionTable
{"name", "sourceColumn", "targetColumn"}).
onDelete / onUpdate: CASCADE, SET NULL, SET DEFAULT, RESTRICT, NO ACTION.
"""

GENERATE_PROMPT_TEMPLATE = """Design a {dialect} database schema for the following application.

DESCRIPTION:
{prompt}

ADDITIONAL CONTEXT:
{context}

Stored procedure bodies must be valid {dialect} procedural SQL.

{schema_format}"""

REFINE_PROMPT_TEMPLATE = """Refine the existing {dialect} database schema below.
Apply the instruction, keep names stable and keep everything the instruction does not touch.

INSTRUCTION:
{instruction}

CURRENT SCHEMA:
{schema_json}

{schema_format}"""


class SchemaGenerator:
    """Calls the chat model and validates its reply into a SchemaDefinition.

    Every failure comes back as GenerateSchemaResponse(success=False, error=...);
    there are no retries.
    """

    def __init__(self, client: Any = None, deployment: str | None = None, cfg: Settings | None = None):
        cfg = cfg or default_settings
        self.client = client if client is not None else build_aoai_client(cfg)
        self.deployment = deployment or cfg.azure_openai_deployment

    def generate(self, request: GenerateSchemaRequest) -> GenerateSchemaResponse:
        user = GENERATE_PROMPT_TEMPLATE.format(
            dialect=request.dialect,
            prompt=request.prompt,
            context=request.additional_context or "(none)",
            schema_format=SCHEMA_FORMAT,
        )
        return self._run(user, lambda s: s.model_copy(update={"dialect": request.dialect}))

    def refine(self, request: RefineSchemaRequest) -> GenerateSchemaResponse:
        current = request.schema_
        user = REFINE_PROMPT_TEMPLATE.format(
            dialect=current.dialect,
            instruction=request.refinement_prompt,
            schema_json=json.dumps(schema_to_dict(current), ensure_ascii=False),
            schema_format=SCHEMA_FORMAT,
        )

        def keep_identity(s: SchemaDefinition) -> SchemaDefinition:
            return s.model_copy(update={
                "id": current.id,
                "dialect": current.dialect,
                "created_at": current.created_at,
                "updated_at": utc_now_iso(),
            })

        return self._run(user, keep_identity)

    def _run(self, user_prompt: str, finish) -> GenerateSchemaResponse:
        if self.client is None:
            return GenerateSchemaResponse(
                success=False,
                error="Azure OpenAI is not configured (set AZURE_OPENAI_* in .env)",
            )
        try:
            data = self._call_llm(user_prompt)
            schema = normalize_schema(SchemaDefinition.model_validate(data))
        except OpenAIError as e:
            logger.exception("Schema generation request failed")
            return GenerateSchemaResponse(success=False, error=f"Schema generation request failed: {e}")
        except json.JSONDecodeError as e:
            logger.warning("Model returned malformed JSON: %s", e)
            return GenerateSchemaResponse(success=False, error="Model returned malformed JSON")
        except ValidationError as e:
            first = e.errors()[0]
            loc = ".".join(str(p) for p in first["loc"])
            logger.warning("Generated schema failed validation: %s", e)
            return GenerateSchemaResponse(
                success=False,
                error=f"Generated schema is invalid ({e.error_count()} errors, first at {loc}: {first['msg']})",
            )
        except ValueError as e:
            return GenerateSchemaResponse(success=False, error=str(e))

        schema = finish(schema)
        logger.info("Generated schema %r with %d tables", schema.name, len(schema.tables))
        return GenerateSchemaResponse(success=True, schema=schema)

    def _call_llm(self, user_prompt: str) -> dict[str, Any]:
        resp = self.client.chat.completions.create(
            model=self.deployment,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0,
        )
        if not resp.choices:
            raise ValueError("Model returned no choices")
        content = resp.choices[0].message.content
        if not content:
            raise ValueError("Model returned an empty response")
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("Model response is not a JSON object")
        return data
