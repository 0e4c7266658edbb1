"""Shared fixtures: sample schemas and fake chat / generator clients."""

import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from schema_agent.model import (
    ColumnDefinition,
    ForeignKeyDefinition,
    GenerateSchemaResponse,
    IndexDefinition,
    JunctionTable,
    ProcedureParameter,
    RelationshipDefinition,
    SchemaDefinition,
    StoredProcedureDefinition,
    TableDefinition,
)

FIXED_AT = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def col(name, type_, **kw):
    return ColumnDefinition(name=name, type=type_, **kw)


def make_blog(dialect="postgresql"):
    return SchemaDefinition(
        name="Blog",
        dialect=dialect,
        tables=[
            TableDefinition(
                name="users",
                columns=[col("id", "serial", is_primary_key=True, is_nullable=False, is_unique=False)],
            )
        ],
        relationships=[],
        stored_procedures=[],
    )


def make_shop(dialect="postgresql"):
    users = TableDefinition(
        id="t-users",
        name="users",
        comment="Registered users",
        columns=[
            col("id", "serial", is_primary_key=True, is_nullable=False, is_unique=True),
            col("email", "varchar", length=120, is_nullable=False, is_unique=True, comment="Login e-mail"),
            col("name", "varchar"),
            col("status", "enum", enum_values=["active", "banned"], default_value="active"),
            col("is_admin", "boolean", is_nullable=False, default_value=False),
            col("created_at", "timestamptz", is_nullable=False, default_value="CURRENT_TIMESTAMP"),
        ],
        indexes=[
            IndexDefinition(name="idx_users_email", columns=["email"], is_unique=True, type="btree"),
            IndexDefinition(name="idx_users_status", columns=["status"], type="hash"),
        ],
    )
    products = TableDefinition(
        id="t-products",
        name="products",
        columns=[
            col("id", "serial", is_primary_key=True, is_nullable=False),
            col("price", "decimal", is_nullable=False),
            col("attrs", "jsonb"),
        ],
    )
    orders = TableDefinition(
        id="t-orders",
        name="orders",
        namespace="sales",
        columns=[
            col("id", "bigserial", is_primary_key=True, is_nullable=False),
            col("user_id", "integer", is_nullable=False),
            col("total", "numeric", precision=12, scale=4),
        ],
        foreign_keys=[
            ForeignKeyDefinition(
                constraint_name="fk_orders_user",
                column_name="user_id",
                referenced_table="users",
                referenced_column="id",
                on_delete="CASCADE",
                on_update="NO ACTION",
            )
        ],
    )
    return SchemaDefinition(
        name="Shop",
        description="Online shop",
        dialect=dialect,
        tables=[users, products, orders],
        relationships=[
            RelationshipDefinition(
                id="r-user-orders",
                name="user_orders",
                source_table="users",
                source_column="id",
                target_table="orders",
                target_column="user_id",
                cardinality="one-to-many",
                on_delete="CASCADE",
            ),
            RelationshipDefinition(
                id="r-order-products",
                name="order_products",
                source_table="orders",
                source_column="id",
                target_table="products",
                target_column="id",
                cardinality="many-to-many",
                on_delete="CASCADE",
                junction_table=JunctionTable(name="order_items", source_column="order_id", target_column="product_id"),
            ),
        ],
        stored_procedures=[
            StoredProcedureDefinition(
                id="p-ban",
                name="deactivate_user",
                parameters=[
                    ProcedureParameter(name="p_user_id", type="integer", direction="IN"),
                    ProcedureParameter(name="p_count", type="integer", direction="OUT"),
                ],
                return_type="void",
                body="UPDATE users SET status = 'banned' WHERE id = p_user_id;",
                comment="Ban a user",
            )
        ],
    )


@pytest.fixture
def blog_schema():
    return make_blog()


@pytest.fixture
def shop_pg():
    return make_shop("postgresql")


@pytest.fixture
def shop_mysql():
    return make_shop("mysql")


# ---- fake chat client (openai-shaped) ----

class FakeCompletions:
    def __init__(self, reply=None, exc=None):
        self.reply = reply
        self.exc = exc
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeClient:
    def __init__(self, reply=None, exc=None):
        self.completions = FakeCompletions(reply, exc)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def fake_client():
    def _make(reply=None, exc=None):
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return FakeClient(reply, exc)
    return _make


# ---- fake generator (SchemaGenerator-shaped) ----

class FakeGenerator:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        return self.response

    def refine(self, request):
        self.requests.append(request)
        return self.response


@pytest.fixture
def ok_generator():
    return FakeGenerator(GenerateSchemaResponse(success=True, schema=make_shop()))


@pytest.fixture
def failing_generator():
    return FakeGenerator(GenerateSchemaResponse(success=False, error="Model returned malformed JSON"))
