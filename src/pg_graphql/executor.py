"""
PostgreSQL executor.

Registers compiled queries as server-side prepared statements and executes
them. Prepared statements belong to the session, so one executor (and the plan
cache in front of it) is bound to exactly one connection.

Requires: psycopg[binary]>=3.2
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from pg_graphql.errors import ExecuteError, PrepareError

logger = logging.getLogger(__name__)


class Executor(Protocol):
    """What the resolution engine needs from the store."""

    def current_role(self) -> str: ...

    def prepare(self, name: str, param_count: int, query: str) -> None: ...

    def execute(self, name: str, params: Sequence[str | None]) -> Any: ...

    def deallocate(self, name: str) -> None: ...

    def deallocate_all(self) -> None: ...


def normalize_database_url(url: str) -> str:
    """Accept ``postgres://`` URLs (Heroku style) as ``postgresql://``."""
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://") :]
    return url


def connect(database_url: str, *, autocommit: bool = True) -> psycopg.Connection[Any]:
    """Open a connection with ``dict_row`` rows."""
    return psycopg.connect(
        normalize_database_url(database_url), autocommit=autocommit, row_factory=dict_row
    )


class PostgresExecutor:
    """
    Executor over one psycopg connection.

    Example:
        executor = PostgresExecutor(connect(url))
        executor.prepare("gql_ab12", 1, "select $1::int + 1")
        executor.execute("gql_ab12", ["41"])  # 42
    """

    def __init__(self, conn: Any) -> None:
        self.conn = conn

    def current_role(self) -> str:
        row = self.conn.execute("select current_user as role").fetchone()
        return _first(row)

    def prepare(self, name: str, param_count: int, query: str) -> None:
        if param_count:
            types = sql.SQL(", ").join([sql.SQL("text")] * param_count)
            statement = sql.SQL("prepare {} ({}) as {}").format(sql.Identifier(name), types, sql.SQL(query))
        else:
            statement = sql.SQL("prepare {} as {}").format(sql.Identifier(name), sql.SQL(query))
        try:
            self.conn.execute(statement)
        except psycopg.Error as e:
            self._rollback()
            raise PrepareError(_message(e)) from e
        logger.debug("Prepared %s (%d params)", name, param_count)

    def execute(self, name: str, params: Sequence[str | None]) -> Any:
        if params:
            values = sql.SQL(", ").join(sql.Literal(p) for p in params)
            statement = sql.SQL("execute {} ({})").format(sql.Identifier(name), values)
        else:
            statement = sql.SQL("execute {}").format(sql.Identifier(name))
        try:
            row = self.conn.execute(statement).fetchone()
        except psycopg.Error as e:
            self._rollback()
            raise ExecuteError(_message(e)) from e
        return _first(row)

    def deallocate(self, name: str) -> None:
        try:
            self.conn.execute(sql.SQL("deallocate {}").format(sql.Identifier(name)))
        except psycopg.Error as e:
            self._rollback()
            logger.warning("Failed to deallocate %s: %s", name, _message(e))

    def deallocate_all(self) -> None:
        self.conn.execute("deallocate all")

    def _rollback(self) -> None:
        if not self.conn.autocommit:
            self.conn.rollback()


def _first(row: Any) -> Any:
    if row is None:
        return None
    if isinstance(row, Mapping):
        return next(iter(row.values()), None)
    return row[0]


def _message(error: psycopg.Error) -> str:
    diag = getattr(error, "diag", None)
    primary = diag.message_primary if diag is not None else None
    return primary or str(error)
