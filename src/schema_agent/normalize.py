from __future__ import annotations

from typing import Optional

from schema_agent.model import (
    Cardinality,
    JunctionTable,
    RelationshipDefinition,
    SchemaDefinition,
    generate_id,
    utc_now_iso,
)


def default_junction(rel: RelationshipDefinition) -> JunctionTable:
    return JunctionTable(
        name=f"{rel.source_table}_{rel.target_table}",
        source_column=f"{rel.source_table.lower()}_id",
        target_column=f"{rel.target_table.lower()}_id",
    )


def junction_for(rel: RelationshipDefinition, cardinality: Cardinality) -> Optional[JunctionTable]:
    """Junction descriptor a relationship should carry once it has `cardinality`."""
    if cardinality != "many-to-many":
        return None
    return rel.junction_table or default_junction(rel)


def normalize_schema(schema: SchemaDefinition) -> SchemaDefinition:
    """Fill bookkeeping fields of a generated schema and fix junction descriptors.

    References between tables are left as-is.
    """
    # 1) id / timestamps present on the wire (model defaults are not "set")
    update: dict = {}
    for field_name, factory in (("id", generate_id), ("created_at", utc_now_iso), ("updated_at", utc_now_iso)):
        if field_name not in schema.model_fields_set:
            update[field_name] = factory()

    # 2) junction descriptor present iff many-to-many
    relationships = []
    for rel in schema.relationships:
        jt = junction_for(rel, rel.cardinality)
        if jt != rel.junction_table:
            rel = rel.model_copy(update={"junction_table": jt})
        relationships.append(rel)
    update["relationships"] = relationships

    return schema.model_copy(update=update)
