"""
Wiring of a live engine: connection, catalog store, executor and oracle.
"""

from __future__ import annotations

import logging
from typing import Any

from pg_graphql.authz import PostgresPrivilegeOracle
from pg_graphql.catalog.metadata import PostgresMetadataReader
from pg_graphql.catalog.store import CatalogStore
from pg_graphql.config import GraphQLSettings
from pg_graphql.engine import ResolutionEngine
from pg_graphql.executor import PostgresExecutor, connect

logger = logging.getLogger(__name__)


class EngineRuntime:
    """
    A resolution engine bound to its own connection.

    Example:
        with EngineRuntime(settings) as runtime:
            runtime.engine.resolve("{ allAccounts { totalCount } }")
    """

    def __init__(self, settings: GraphQLSettings, store: CatalogStore | None = None) -> None:
        if not settings.database_url:
            raise ValueError("database_url is not configured (set DATABASE_URL)")
        self.settings = settings
        self.database_url = settings.database_url
        self.conn: Any = connect(self.database_url)
        self.store = store or CatalogStore(self.read_metadata, default_schema=settings.default_schema)
        self.engine = ResolutionEngine(
            self.store,
            PostgresExecutor(self.conn),
            lambda: PostgresPrivilegeOracle(self.conn),
            settings,
        )

    def read_metadata(self) -> Any:
        # Own connection: rebuilds may run on the watcher thread
        with connect(self.database_url) as conn:
            return PostgresMetadataReader(conn, self.settings.exclude_schemas).read()

    def close(self) -> None:
        if not self.conn.closed:
            self.conn.close()

    def __enter__(self) -> EngineRuntime:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
