"""Holds the current schema and its compiled outputs.

Every mutation builds a new schema value, compiles SQL and diagram text from
it, and publishes all three together; readers only see cached outputs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel

from schema_agent.diagram_compiler import compile_diagram
from schema_agent.llm.generator import SchemaGenerator
from schema_agent.model import (
    Cardinality,
    ColumnDefinition,
    ForeignKeyDefinition,
    GenerateSchemaRequest,
    GenerateSchemaResponse,
    IndexDefinition,
    RefineSchemaRequest,
    RelationshipDefinition,
    SchemaDefinition,
    SQLDialect,
    StoredProcedureDefinition,
    TableDefinition,
    utc_now_iso,
)
from schema_agent.normalize import junction_for
from schema_agent.sql_compiler import compile_sql

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Snapshot:
    schema: Optional[SchemaDefinition] = None
    compiled_sql: str = ""
    compiled_diagram: str = ""


def compile_snapshot(schema: SchemaDefinition) -> Snapshot:
    return Snapshot(schema, compile_sql(schema), compile_diagram(schema))


def _replace(items: list, item_id: str, fn: Callable[[Any], Any]) -> list:
    return [fn(i) if i.id == item_id else i for i in items]


def _without(items: list, item_id: str) -> list:
    return [i for i in items if i.id != item_id]


def _updated(item: M, updates: dict[str, Any]) -> M:
    """Copy of `item` with `updates` applied, validated like fresh input."""
    model = type(item)
    unknown = set(updates) - set(model.model_fields)
    if unknown:
        raise ValueError(f"Unknown {model.__name__} fields: {', '.join(sorted(unknown))}")
    checked = model.model_validate({**item.model_dump(), **updates})
    return item.model_copy(update={k: getattr(checked, k) for k in updates})


class SchemaStore:
    def __init__(self, schema: Optional[SchemaDefinition] = None):
        self._snapshot = Snapshot()
        self.error: Optional[str] = None
        self.listeners: list[Callable[[Snapshot], None]] = []
        if schema is not None:
            self.set_schema(schema)

    # ---- reads ----

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def schema(self) -> Optional[SchemaDefinition]:
        return self._snapshot.schema

    @property
    def compiled_sql(self) -> str:
        return self._snapshot.compiled_sql

    @property
    def compiled_diagram(self) -> str:
        return self._snapshot.compiled_diagram

    # ---- publishing ----

    def _publish(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        for listener in self.listeners:
            listener(snapshot)

    def _mutate(self, updater: Callable[[SchemaDefinition], SchemaDefinition]) -> None:
        if self.schema is None:
            return
        updated = updater(self.schema.model_copy(update={"updated_at": utc_now_iso()}))
        self._publish(compile_snapshot(updated))

    def _mutate_table(self, table_id: str, fn: Callable[[TableDefinition], TableDefinition]) -> None:
        self._mutate(lambda s: s.model_copy(update={"tables": _replace(s.tables, table_id, fn)}))

    # ---- schema ----

    def set_schema(self, schema: SchemaDefinition) -> None:
        self._publish(compile_snapshot(schema))
        self.error = None

    def clear_schema(self) -> None:
        self._publish(Snapshot())
        self.error = None

    def update_schema(self, **updates: Any) -> None:
        self._mutate(lambda s: _updated(s, updates))

    def set_dialect(self, dialect: SQLDialect) -> None:
        self.update_schema(dialect=dialect)

    def recompile(self) -> None:
        if self.schema is not None:
            self._publish(compile_snapshot(self.schema))

    # ---- tables ----

    def add_table(self, table: TableDefinition) -> None:
        self._mutate(lambda s: s.model_copy(update={"tables": [*s.tables, table]}))

    def update_table(self, table_id: str, **updates: Any) -> None:
        self._mutate_table(table_id, lambda t: _updated(t, updates))

    def delete_table(self, table_id: str) -> None:
        table = next((t for t in self.schema.tables if t.id == table_id), None) if self.schema else None
        if table is None:
            return
        self._mutate(lambda s: s.model_copy(update={
            "tables": _without(s.tables, table_id),
            "relationships": [
                r for r in s.relationships
                if r.source_table != table.name and r.target_table != table.name
            ],
        }))

    # ---- columns ----

    def add_column(self, table_id: str, column: ColumnDefinition) -> None:
        self._mutate_table(table_id, lambda t: t.model_copy(update={"columns": [*t.columns, column]}))

    def update_column(self, table_id: str, column_id: str, **updates: Any) -> None:
        self._mutate_table(table_id, lambda t: t.model_copy(update={
            "columns": _replace(t.columns, column_id, lambda c: _updated(c, updates)),
        }))

    def delete_column(self, table_id: str, column_id: str) -> None:
        self._mutate_table(table_id, lambda t: t.model_copy(update={"columns": _without(t.columns, column_id)}))

    # ---- indexes / foreign keys ----

    def add_index(self, table_id: str, index: IndexDefinition) -> None:
        self._mutate_table(table_id, lambda t: t.model_copy(update={"indexes": [*t.indexes, index]}))

    def delete_index(self, table_id: str, index_id: str) -> None:
        self._mutate_table(table_id, lambda t: t.model_copy(update={"indexes": _without(t.indexes, index_id)}))

    def add_foreign_key(self, table_id: str, fk: ForeignKeyDefinition) -> None:
        self._mutate_table(table_id, lambda t: t.model_copy(update={"foreign_keys": [*t.foreign_keys, fk]}))

    def delete_foreign_key(self, table_id: str, fk_id: str) -> None:
        self._mutate_table(table_id, lambda t: t.model_copy(update={"foreign_keys": _without(t.foreign_keys, fk_id)}))

    # ---- relationships ----

    def add_relationship(self, rel: RelationshipDefinition) -> None:
        self._mutate(lambda s: s.model_copy(update={"relationships": [*s.relationships, rel]}))

    def update_relationship(self, rel_id: str, **updates: Any) -> None:
        self._mutate(lambda s: s.model_copy(update={
            "relationships": _replace(s.relationships, rel_id, lambda r: _updated(r, updates)),
        }))

    def delete_relationship(self, rel_id: str) -> None:
        self._mutate(lambda s: s.model_copy(update={"relationships": _without(s.relationships, rel_id)}))

    def change_cardinality(self, rel_id: str, cardinality: Cardinality) -> None:
        def change(r: RelationshipDefinition) -> RelationshipDefinition:
            return _updated(r, {
                "cardinality": cardinality,
                "junction_table": junction_for(r, cardinality),
            })

        self._mutate(lambda s: s.model_copy(update={"relationships": _replace(s.relationships, rel_id, change)}))

    # ---- stored procedures ----

    def add_stored_procedure(self, proc: StoredProcedureDefinition) -> None:
        self._mutate(lambda s: s.model_copy(update={"stored_procedures": [*s.stored_procedures, proc]}))

    def update_stored_procedure(self, proc_id: str, **updates: Any) -> None:
        self._mutate(lambda s: s.model_copy(update={
            "stored_procedures": _replace(s.stored_procedures, proc_id, lambda p: _updated(p, updates)),
        }))

    def delete_stored_procedure(self, proc_id: str) -> None:
        self._mutate(lambda s: s.model_copy(update={"stored_procedures": _without(s.stored_procedures, proc_id)}))

    # ---- generation ----

    def _apply(self, resp: GenerateSchemaResponse) -> GenerateSchemaResponse:
        if resp.success and resp.schema_ is not None:
            self.set_schema(resp.schema_)
        else:
            # prior schema and outputs stay current
            self.error = resp.error or "Failed to generate schema"
            logger.warning("Schema generation failed: %s", self.error)
        return resp

    def generate(
        self,
        generator: SchemaGenerator,
        prompt: str,
        dialect: SQLDialect = "postgresql",
        context: Optional[str] = None,
    ) -> GenerateSchemaResponse:
        if not prompt.strip():
            self.error = "Please enter a description of your application"
            return GenerateSchemaResponse(success=False, error=self.error)
        request = GenerateSchemaRequest(prompt=prompt, dialect=dialect, additional_context=context)
        return self._apply(generator.generate(request))

    def refine(self, generator: SchemaGenerator, instruction: str) -> GenerateSchemaResponse:
        if self.schema is None:
            self.error = "No schema to refine"
            return GenerateSchemaResponse(success=False, error=self.error)
        request = RefineSchemaRequest(schema=self.schema, refinement_prompt=instruction)
        return self._apply(generator.refine(request))
