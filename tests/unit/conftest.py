"""Shared fixtures for unit tests: an in-memory schema, oracles and a fake executor."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from pg_graphql.authz import StaticPrivilegeOracle, Visibility
from pg_graphql.catalog.builder import build_catalog
from pg_graphql.catalog.metadata import (
    ColumnInfo,
    EnumTypeInfo,
    ForeignKeyInfo,
    RelationalMetadata,
    TableInfo,
)
from pg_graphql.catalog.models import CatalogSnapshot


def make_metadata() -> RelationalMetadata:
    """
    account(id serial pk, email text not null, created_at timestamptz, status account_status)
    blog(id serial pk, owner_id int not null -> account, name text, tags text[])
    blog_post(id uuid pk, blog_id int -> blog, title text, body text)
    audit_log(message text)  -- no primary key, not exposed
    """
    account = TableInfo(
        schema="public",
        name="account",
        columns=(
            ColumnInfo("id", "int4", "integer", is_not_null=True),
            ColumnInfo("email", "text", "text", is_not_null=True),
            ColumnInfo("created_at", "timestamptz", "timestamp with time zone"),
            ColumnInfo("status", "account_status", "account_status", is_enum=True, type_schema="public"),
        ),
        primary_key=("id",),
    )
    blog = TableInfo(
        schema="public",
        name="blog",
        columns=(
            ColumnInfo("id", "int4", "integer", is_not_null=True),
            ColumnInfo("owner_id", "int4", "integer", is_not_null=True),
            ColumnInfo("name", "text", "text"),
            ColumnInfo("tags", "text", "text", is_not_null=True, is_array=True),
        ),
        primary_key=("id",),
    )
    blog_post = TableInfo(
        schema="public",
        name="blog_post",
        columns=(
            ColumnInfo("id", "uuid", "uuid", is_not_null=True),
            ColumnInfo("blog_id", "int4", "integer"),
            ColumnInfo("title", "text", "text"),
            ColumnInfo("body", "text", "text"),
        ),
        primary_key=("id",),
    )
    audit_log = TableInfo(
        schema="public",
        name="audit_log",
        columns=(ColumnInfo("message", "text", "text"),),
    )
    return RelationalMetadata(
        tables=(account, audit_log, blog, blog_post),
        foreign_keys=(
            ForeignKeyInfo(
                name="blog_owner_id_fkey",
                schema="public",
                table="blog",
                columns=("owner_id",),
                foreign_schema="public",
                foreign_table="account",
                foreign_columns=("id",),
            ),
            ForeignKeyInfo(
                name="blog_post_blog_id_fkey",
                schema="public",
                table="blog_post",
                columns=("blog_id",),
                foreign_schema="public",
                foreign_table="blog",
                foreign_columns=("id",),
            ),
        ),
        enums=(EnumTypeInfo(schema="public", name="account_status", values=("active", "suspended")),),
    )


@pytest.fixture
def metadata_factory():
    return make_metadata


@pytest.fixture
def metadata() -> RelationalMetadata:
    return make_metadata()


@pytest.fixture
def snapshot(metadata: RelationalMetadata) -> CatalogSnapshot:
    return build_catalog(metadata, version=1)


@pytest.fixture
def allow_all() -> StaticPrivilegeOracle:
    return StaticPrivilegeOracle(allow_all=True)


@pytest.fixture
def visibility(snapshot: CatalogSnapshot, allow_all: StaticPrivilegeOracle) -> Visibility:
    return Visibility(snapshot, allow_all)


class FakeExecutor:
    """Records prepared statements and returns canned results."""

    def __init__(self, role: str = "app_user", result: Any = None) -> None:
        self.role = role
        self.result = result if result is not None else {"totalCount": 0}
        self.prepared: dict[str, tuple[int, str]] = {}
        self.executed: list[tuple[str, list[str | None]]] = []
        self.deallocated: list[str] = []
        self.prepare_error: Exception | None = None
        self.execute_error: Exception | None = None

    def current_role(self) -> str:
        return self.role

    def prepare(self, name: str, param_count: int, query: str) -> None:
        if self.prepare_error is not None:
            raise self.prepare_error
        self.prepared[name] = (param_count, query)

    def execute(self, name: str, params: list[str | None]) -> Any:
        if self.execute_error is not None:
            raise self.execute_error
        assert name in self.prepared
        self.executed.append((name, list(params)))
        return self.result

    def deallocate(self, name: str) -> None:
        self.deallocated.append(name)
        self.prepared.pop(name, None)

    def deallocate_all(self) -> None:
        self.deallocated.extend(self.prepared)
        self.prepared.clear()


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def restore_logger():
    """Undo ``setup_logging`` changes to the package logger."""
    logger = logging.getLogger("pg_graphql")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
