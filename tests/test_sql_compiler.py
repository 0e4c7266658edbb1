"""Unit tests for the SQL DDL compiler."""

import re
from datetime import datetime, timezone

import pytest

from conftest import FIXED_AT, col, make_blog
from schema_agent.dialects import MYSQL, POSTGRESQL
from schema_agent.model import (
    ProcedureParameter,
    RelationshipDefinition,
    SchemaDefinition,
    StoredProcedureDefinition,
    TableDefinition,
)
from schema_agent.sql_compiler import compile_sql, format_default, write_sql

CREATE_TABLE_RE = re.compile(r"^CREATE TABLE (\S+) \($", re.M)


def _line(sql, startswith):
    return next(l for l in sql.splitlines() if l.startswith(startswith))


# ---- structure ----

def test_blog_scenario():
    sql = compile_sql(make_blog(), FIXED_AT)
    assert 'CREATE TABLE "users" (\n  "id" SERIAL,\n  PRIMARY KEY ("id")\n);' in sql


def test_empty_schema_is_header_only():
    sql = compile_sql(SchemaDefinition(name="Empty"), FIXED_AT)
    assert sql.splitlines() == [
        "-- " + "=" * 44,
        "-- Database Schema: Empty",
        "-- Dialect: PostgreSQL",
        "-- Generated: 2024-01-02T03:04:05.000Z",
        "-- Description: Auto-generated schema",
        "-- " + "=" * 44,
    ]


def test_header_uses_dialect_label_and_description(shop_mysql):
    sql = compile_sql(shop_mysql, FIXED_AT)
    assert "-- Dialect: MySQL" in sql
    assert "-- Description: Online shop" in sql


@pytest.mark.parametrize("dialect", ["postgresql", "mysql"])
def test_one_create_table_per_table_in_order(dialect, shop_pg):
    schema = shop_pg.model_copy(update={"dialect": dialect})
    names = CREATE_TABLE_RE.findall(compile_sql(schema, FIXED_AT))
    q = '"' if dialect == "postgresql" else "`"
    ordered = [n.split(".")[-1].strip(q) for n in names]
    # three tables from the schema, then the junction table
    assert ordered == ["users", "products", "orders", "order_items"]


def test_section_order(shop_pg):
    sql = compile_sql(shop_pg, FIXED_AT)
    headings = [
        "-- Schemas",
        "-- Enum Types",
        "-- Tables",
        "-- Indexes",
        "-- Foreign Key Constraints",
        "-- Junction Tables (Many-to-Many)",
        "-- Stored Procedures and Functions",
    ]
    positions = [sql.index(h) for h in headings]
    assert positions == sorted(positions)


def test_foreign_keys_follow_every_create_table(shop_pg):
    sql = compile_sql(shop_pg, FIXED_AT)
    last_user_table = sql.index('CREATE TABLE "sales"."orders"')
    assert sql.index("ALTER TABLE") > last_user_table


def test_compilation_is_deterministic(shop_pg):
    assert compile_sql(shop_pg, FIXED_AT) == compile_sql(shop_pg, FIXED_AT)


def test_only_header_timestamp_varies(shop_pg):
    a = compile_sql(shop_pg, FIXED_AT).splitlines()
    b = compile_sql(shop_pg, datetime(2030, 6, 1, tzinfo=timezone.utc)).splitlines()
    assert len(a) == len(b)
    diff = [i for i, (x, y) in enumerate(zip(a, b)) if x != y]
    assert diff == [3]
    assert a[3].startswith("-- Generated: ")


# ---- PostgreSQL specifics ----

def test_postgres_namespaces_and_enum_types(shop_pg):
    sql = compile_sql(shop_pg, FIXED_AT)
    assert 'CREATE SCHEMA IF NOT EXISTS "sales";' in sql
    assert "CREATE TYPE users_status_enum AS ENUM ('active', 'banned');" in sql
    assert 'CREATE TABLE "sales"."orders" (' in sql


def test_public_namespace_is_not_created():
    schema = SchemaDefinition(
        name="P",
        tables=[TableDefinition(name="t", namespace="public", columns=[col("id", "integer")])],
    )
    sql = compile_sql(schema, FIXED_AT)
    assert "CREATE SCHEMA" not in sql
    assert 'CREATE TABLE "public"."t" (' in sql


def test_postgres_column_lines(shop_pg):
    sql = compile_sql(shop_pg, FIXED_AT)
    assert '  "id" SERIAL,' in sql
    assert '  "email" VARCHAR(120) NOT NULL UNIQUE,' in sql
    assert '  "name" VARCHAR(255),' in sql
    assert "  \"status\" users_status_enum DEFAULT 'active'," in sql
    assert '  "is_admin" BOOLEAN NOT NULL DEFAULT FALSE,' in sql
    assert '  "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,' in sql
    assert '  "price" DECIMAL(10, 2) NOT NULL,' in sql
    assert '  "attrs" JSONB,' in sql
    assert '  "total" NUMERIC(12, 4),' in sql
    assert ");\n" in sql and "ENGINE=" not in sql


def test_postgres_comments(shop_pg):
    sql = compile_sql(shop_pg, FIXED_AT)
    assert "-- Registered users\nCREATE TABLE \"users\" (" in sql
    assert "COMMENT ON TABLE \"users\" IS 'Registered users';" in sql
    assert "COMMENT ON COLUMN \"users\".\"email\" IS 'Login e-mail';" in sql


def test_postgres_indexes(shop_pg):
    sql = compile_sql(shop_pg, FIXED_AT)
    assert 'CREATE UNIQUE INDEX "idx_users_email" ON "users" ("email");' in sql
    assert 'CREATE INDEX "idx_users_status" ON "users" USING HASH ("status");' in sql


def test_foreign_key_statement(shop_pg):
    sql = compile_sql(shop_pg, FIXED_AT)
    assert (
        'ALTER TABLE "sales"."orders"\n'
        '  ADD CONSTRAINT "fk_orders_user"\n'
        '  FOREIGN KEY ("user_id")\n'
        '  REFERENCES "users" ("id")\n'
        "  ON DELETE CASCADE ON UPDATE NO ACTION;"
    ) in sql


def test_foreign_key_without_on_update(shop_pg):
    orders = shop_pg.tables[2]
    fk = orders.foreign_keys[0].model_copy(update={"on_update": None})
    schema = shop_pg.model_copy(update={
        "tables": [*shop_pg.tables[:2], orders.model_copy(update={"foreign_keys": [fk]})],
    })
    sql = compile_sql(schema, FIXED_AT)
    assert "  ON DELETE CASCADE;" in sql
    assert "ON UPDATE" not in sql


# ---- MySQL specifics ----

def test_mysql_tables(shop_mysql):
    sql = compile_sql(shop_mysql, FIXED_AT)
    assert "CREATE TABLE `users` (" in sql
    assert "CREATE TABLE `orders` (" in sql
    assert "  `status` ENUM('active', 'banned') DEFAULT 'active'," in sql
    assert "  `is_admin` TINYINT(1) NOT NULL DEFAULT 0," in sql
    assert "  `id` INT AUTO_INCREMENT," in sql
    assert "  `id` BIGINT AUTO_INCREMENT," in sql
    assert "  `attrs` JSON," in sql
    assert "  PRIMARY KEY (`id`)\n) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;" in sql


def test_mysql_has_no_postgres_only_sections(shop_mysql):
    sql = compile_sql(shop_mysql, FIXED_AT)
    assert "CREATE SCHEMA" not in sql
    assert "CREATE TYPE" not in sql
    assert "COMMENT ON" not in sql
    assert "USING" not in sql
    assert "CREATE INDEX `idx_users_status` ON `users` (`status`);" in sql


# ---- primary keys ----

def test_primary_key_column_has_no_not_null_or_unique(shop_pg):
    line = _line(compile_sql(shop_pg, FIXED_AT), '  "id" SERIAL')
    assert "NOT NULL" not in line
    assert "UNIQUE" not in line


def test_composite_primary_key_in_declaration_order():
    table = TableDefinition(
        name="memberships",
        columns=[
            col("tenant_id", "integer", is_primary_key=True, is_nullable=False),
            col("note", "text"),
            col("user_id", "integer", is_primary_key=True, is_nullable=False),
        ],
    )
    sql = compile_sql(SchemaDefinition(name="M", tables=[table]), FIXED_AT)
    assert sql.count("PRIMARY KEY") == 1
    assert '  PRIMARY KEY ("tenant_id", "user_id")' in sql


def test_table_without_primary_key_has_no_constraint():
    table = TableDefinition(name="log", columns=[col("msg", "text")])
    sql = compile_sql(SchemaDefinition(name="L", tables=[table]), FIXED_AT)
    assert 'CREATE TABLE "log" (\n  "msg" TEXT\n);' in sql


# ---- defaults ----

@pytest.mark.parametrize(
    "value, dialect, expected",
    [
        ("O'Brien", POSTGRESQL, "'O''Brien'"),
        ("CURRENT_TIMESTAMP", POSTGRESQL, "CURRENT_TIMESTAMP"),
        ("now()", MYSQL, "now()"),
        ("gen_random_uuid()", POSTGRESQL, "gen_random_uuid()"),
        (True, POSTGRESQL, "TRUE"),
        (True, MYSQL, "1"),
        (False, MYSQL, "0"),
        (None, MYSQL, "NULL"),
        (42, POSTGRESQL, "42"),
        (1.5, POSTGRESQL, "1.5"),
        (2.0, POSTGRESQL, "2"),
    ],
)
def test_format_default(value, dialect, expected):
    assert format_default(value, dialect) == expected


@pytest.mark.parametrize("dialect", ["postgresql", "mysql"])
def test_null_default_prints_no_default_clause(dialect):
    table = TableDefinition(
        name="t",
        columns=[
            col("id", "serial", is_primary_key=True, default_value=None),
            col("a", "text", default_value=None),
            col("b", "text"),
        ],
    )
    sql = compile_sql(SchemaDefinition(name="D", dialect=dialect, tables=[table]), FIXED_AT)
    assert "DEFAULT NULL" not in sql
    assert not [line for line in sql.splitlines() if line.startswith("  ") and "DEFAULT" in line]


def test_enum_values_are_escaped():
    table = TableDefinition(name="t", columns=[col("kind", "enum", enum_values=["it's", "plain"])])
    pg = compile_sql(SchemaDefinition(name="E", tables=[table]), FIXED_AT)
    my = compile_sql(SchemaDefinition(name="E", dialect="mysql", tables=[table]), FIXED_AT)
    assert "CREATE TYPE t_kind_enum AS ENUM ('it''s', 'plain');" in pg
    assert "`kind` ENUM('it''s', 'plain')" in my


def test_enum_without_values_gets_no_type_declaration():
    table = TableDefinition(name="t", columns=[col("kind", "enum")])
    sql = compile_sql(SchemaDefinition(name="E", tables=[table]), FIXED_AT)
    assert "CREATE TYPE" not in sql


# ---- junction tables ----

def test_junction_table_postgres(shop_pg):
    sql = compile_sql(shop_pg, FIXED_AT)
    assert (
        "-- Junction table for orders <-> products\n"
        'CREATE TABLE "order_items" (\n'
        '  "order_id" INTEGER NOT NULL,\n'
        '  "product_id" INTEGER NOT NULL,\n'
        '  "created_at" TIMESTAMP DEFAULT CURRENT_TIMESTAMP,\n'
        '  PRIMARY KEY ("order_id", "product_id"),\n'
        '  FOREIGN KEY ("order_id") REFERENCES "orders" ("id") ON DELETE CASCADE,\n'
        '  FOREIGN KEY ("product_id") REFERENCES "products" ("id") ON DELETE CASCADE\n'
        ");"
    ) in sql


def test_junction_table_mysql(shop_mysql):
    sql = compile_sql(shop_mysql, FIXED_AT)
    assert "  `order_id` INT NOT NULL," in sql
    assert "  PRIMARY KEY (`order_id`, `product_id`)," in sql
    assert ") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;\n\n-- Stored Procedures" in sql


def test_many_to_many_without_descriptor_emits_no_junction():
    rel = RelationshipDefinition(
        source_table="a", source_column="id", target_table="b", target_column="id",
        cardinality="many-to-many",
    )
    sql = compile_sql(SchemaDefinition(name="J", relationships=[rel]), FIXED_AT)
    assert "Junction" not in sql


# ---- stored procedures ----

def test_postgres_function(shop_pg):
    sql = compile_sql(shop_pg, FIXED_AT)
    assert (
        "-- Ban a user\n"
        'CREATE OR REPLACE FUNCTION "deactivate_user"(p_user_id INTEGER, OUT p_count INTEGER)\n'
        "RETURNS VOID\n"
        "LANGUAGE plpgsql\n"
        "AS $$\n"
        "UPDATE users SET status = 'banned' WHERE id = p_user_id;\n"
        "$$;"
    ) in sql


def test_mysql_procedure(shop_mysql):
    sql = compile_sql(shop_mysql, FIXED_AT)
    assert (
        "-- Ban a user\n"
        "DELIMITER //\n"
        "CREATE PROCEDURE `deactivate_user`(IN p_user_id INT, OUT p_count INT)\n"
        "BEGIN\n"
        "UPDATE users SET status = 'banned' WHERE id = p_user_id;\n"
        "END //\n"
        "DELIMITER ;"
    ) in sql


@pytest.mark.parametrize(
    "return_type, expected",
    [(None, "RETURNS VOID"), ("table", "RETURNS TABLE"), ("integer", "RETURNS INTEGER"), ("jsonb", "RETURNS JSONB")],
)
def test_postgres_return_types(return_type, expected):
    proc = StoredProcedureDefinition(name="f", return_type=return_type, body="SELECT 1;", language="sql")
    sql = compile_sql(SchemaDefinition(name="F", stored_procedures=[proc]), FIXED_AT)
    assert expected in sql
    assert "LANGUAGE sql" in sql
    assert '-- f\nCREATE OR REPLACE FUNCTION "f"()' in sql


def test_postgres_parameter_direction_and_default():
    proc = StoredProcedureDefinition(
        name="page",
        parameters=[
            ProcedureParameter(name="p_limit", type="integer", default_value="10"),
            ProcedureParameter(name="p_cursor", type="bigint", direction="INOUT"),
        ],
        body="BEGIN END;",
    )
    sql = compile_sql(SchemaDefinition(name="F", stored_procedures=[proc]), FIXED_AT)
    assert '"page"(p_limit INTEGER DEFAULT 10, INOUT p_cursor BIGINT)' in sql


def test_mysql_parameters_ignore_defaults():
    proc = StoredProcedureDefinition(
        name="page",
        parameters=[ProcedureParameter(name="p_limit", type="integer", default_value="10")],
        body="SELECT 1;",
    )
    sql = compile_sql(SchemaDefinition(name="F", dialect="mysql", stored_procedures=[proc]), FIXED_AT)
    assert "CREATE PROCEDURE `page`(IN p_limit INT)" in sql


def test_write_sql(tmp_path, blog_schema):
    out = write_sql(blog_schema, tmp_path / "nested" / "blog.sql")
    assert out.read_text(encoding="utf-8").startswith("-- ====")
