"""
Query resolution engine.

Drives a request through its stages::

    RECEIVED -> PARSED -> FRAGMENTS_INLINED -> DISPATCHED -> COMPILED
             -> PREPARED -> EXECUTED -> RESPONDED

A parse failure jumps straight to RESPONDED. A cached plan skips
normalization, compilation and preparation. Introspection is resolved from the
catalog at dispatch time and never prepared.

The engine owns a plan cache tied to its executor's session; use one engine
per connection and never share one between threads.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, assert_never

import psycopg

from pg_graphql.authz import PrivilegeOracle, Visibility
from pg_graphql.catalog.models import CatalogSnapshot, MetaKind
from pg_graphql.catalog.store import CatalogStore
from pg_graphql.compiler import CompileContext, compile_root
from pg_graphql.config import GraphQLSettings
from pg_graphql.document import (
    AstNode,
    VariableDefinition,
    field_name,
    normalize,
    parse_document,
    response_key,
)
from pg_graphql.errors import CompileError, ExecuteError, GraphQLEngineError, UnknownFieldError
from pg_graphql.executor import Executor
from pg_graphql.introspection import IntrospectionResolver
from pg_graphql.logging import log_with_context

logger = logging.getLogger(__name__)


class Stage(StrEnum):
    """Resolution stages, logged at debug level as a request advances."""

    RECEIVED = "received"
    PARSED = "parsed"
    PARSE_ERROR = "parse_error"
    FRAGMENTS_INLINED = "fragments_inlined"
    DISPATCHED = "dispatched"
    COMPILED = "compiled"
    PREPARED = "prepared"
    PREPARE_ERROR = "prepare_error"
    EXECUTED = "executed"
    RESPONDED = "responded"


# =============================================================================
# Plan cache
# =============================================================================


@dataclass(frozen=True)
class PlanKey:
    """Cache key: authorization is compiled into the plan, so the role is part of it."""

    role: str
    digest: str

    @property
    def statement_name(self) -> str:
        return "gql_" + hashlib.sha1(f"{self.role}:{self.digest}".encode()).hexdigest()


@dataclass(frozen=True)
class Plan:
    """A prepared statement and what is needed to bind and wrap its result."""

    statement_name: str
    variables: tuple[VariableDefinition, ...]
    response_key: str
    catalog_version: int


class PlanCache:
    """Prepared plans of one session, keyed by ``PlanKey``."""

    def __init__(self) -> None:
        self._plans: dict[PlanKey, Plan] = {}

    def __len__(self) -> int:
        return len(self._plans)

    def get(self, key: PlanKey) -> Plan | None:
        return self._plans.get(key)

    def put(self, key: PlanKey, plan: Plan) -> None:
        self._plans[key] = plan

    def clear(self) -> list[Plan]:
        """Drop every plan and return the dropped plans."""
        plans = list(self._plans.values())
        self._plans.clear()
        return plans


def query_digest(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def bind_variables(
    definitions: Sequence[VariableDefinition], supplied: Mapping[str, Any]
) -> list[str | None]:
    """
    Render variables as text parameters in definition (name) order.

    Absent variables fall back to their declared default.

    Raises:
        ExecuteError: a non-null variable without default was not provided
    """
    params: list[str | None] = []
    for definition in definitions:
        if definition.name in supplied:
            value = supplied[definition.name]
        elif definition.has_default:
            value = definition.default_value
        elif definition.type_text.endswith("!"):
            raise ExecuteError(
                f"Variable '${definition.name}' of required type '{definition.type_text}' was not provided"
            )
        else:
            value = None

        if value is None:
            params.append(None)
        elif isinstance(value, str):
            params.append(value)
        elif isinstance(value, bool):
            params.append("true" if value else "false")
        else:
            params.append(json.dumps(value))
    return params


# =============================================================================
# Engine
# =============================================================================


class ResolutionEngine:
    """
    Resolve GraphQL query text into a ``{"data", "errors"}`` envelope.

    Args:
        store: Catalog store providing the current snapshot
        executor: Executor bound to one session
        oracle_factory: Returns a fresh privilege oracle for each request
        settings: Engine settings (page size)

    Example:
        engine = ResolutionEngine(store, PostgresExecutor(conn), lambda: PostgresPrivilegeOracle(conn))
        engine.resolve("{ allAccounts { totalCount } }")
        # {"data": {"allAccounts": {"totalCount": 5}}, "errors": []}
    """

    def __init__(
        self,
        store: CatalogStore,
        executor: Executor,
        oracle_factory: Callable[[], PrivilegeOracle],
        settings: GraphQLSettings | None = None,
    ) -> None:
        self.store = store
        self.executor = executor
        self.oracle_factory = oracle_factory
        self.settings = settings or GraphQLSettings()
        self.cache = PlanCache()
        self._catalog_version: int | None = None

    def resolve(self, text: str, variables: Mapping[str, Any] | None = None) -> dict[str, Any]:
        variables = dict(variables or {})
        digest = query_digest(text)
        stage = Stage.RECEIVED
        try:
            document = parse_document(text)
        except GraphQLEngineError as e:
            self._stage(Stage.PARSE_ERROR, digest)
            return self._failure(e.message, digest, Stage.PARSE_ERROR)
        stage = self._stage(Stage.PARSED, digest)

        try:
            key = PlanKey(self.executor.current_role(), digest)
            snapshot = self.store.snapshot()
            self._sync_catalog(snapshot)

            plan = self.cache.get(key)
            if plan is None:
                stage = self._stage(Stage.FRAGMENTS_INLINED, digest)
                normalized = normalize(document)
                visibility = Visibility(snapshot, self.oracle_factory())
                root = normalized.root
                name = field_name(root)
                field = visibility.lookup_field("Query", name)
                if field is None:
                    raise UnknownFieldError(name, "Query")
                target = snapshot.get_type(field.type_name)
                if target is None:
                    raise CompileError(f"Type '{field.type_name}' not found in catalog")

                stage = self._stage(Stage.DISPATCHED, digest)
                match target.meta_kind:
                    case MetaKind.NODE | MetaKind.CONNECTION:
                        ctx = CompileContext(
                            snapshot=snapshot,
                            visibility=visibility,
                            variables=normalized.variables,
                            page_size=self.settings.default_page_size,
                        )
                        compiled = compile_root(ctx, root, field)
                        stage = self._stage(Stage.COMPILED, digest)
                        plan = self._prepare(key, compiled.sql, normalized.variables, root, snapshot)
                        stage = Stage.PREPARED
                    case (
                        MetaKind.SCHEMA
                        | MetaKind.TYPE
                        | MetaKind.TYPE_KIND
                        | MetaKind.FIELD
                        | MetaKind.INPUT_VALUE
                        | MetaKind.ENUM_VALUE
                        | MetaKind.DIRECTIVE
                        | MetaKind.DIRECTIVE_LOCATION
                    ):
                        value = IntrospectionResolver(visibility, variables).resolve(root)
                        self._stage(Stage.RESPONDED, digest)
                        return {"data": {response_key(root): value}, "errors": []}
                    case (
                        MetaKind.EDGE
                        | MetaKind.CUSTOM_SCALAR
                        | MetaKind.PAGE_INFO
                        | MetaKind.CURSOR
                        | MetaKind.QUERY
                        | MetaKind.MUTATION
                        | MetaKind.BUILTIN
                        | MetaKind.INTERFACE
                    ):
                        raise CompileError(
                            f"Field 'Query.{field.name}' of kind {target.meta_kind} cannot be resolved"
                        )
                    case _:
                        assert_never(target.meta_kind)

            params = bind_variables(plan.variables, variables)
            value = self.executor.execute(plan.statement_name, params)
            stage = self._stage(Stage.EXECUTED, digest)
        except (GraphQLEngineError, psycopg.Error) as e:
            message = e.message if isinstance(e, GraphQLEngineError) else str(e)
            return self._failure(message, digest, stage)
        except Exception as e:
            logger.exception("Unexpected error resolving query %s", digest)
            return self._failure(str(e), digest, stage)

        self._stage(Stage.RESPONDED, digest)
        return {"data": {plan.response_key: value}, "errors": []}

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _prepare(
        self,
        key: PlanKey,
        sql_text: str,
        variables: tuple[VariableDefinition, ...],
        root: AstNode,
        snapshot: CatalogSnapshot,
    ) -> Plan:
        name = key.statement_name
        self.executor.prepare(name, len(variables), sql_text)
        plan = Plan(
            statement_name=name,
            variables=variables,
            response_key=response_key(root),
            catalog_version=snapshot.version,
        )
        self.cache.put(key, plan)
        self._stage(Stage.PREPARED, key.digest)
        return plan

    def _sync_catalog(self, snapshot: CatalogSnapshot) -> None:
        """Drop plans compiled against an older catalog."""
        if self._catalog_version == snapshot.version:
            return
        dropped = self.cache.clear()
        for plan in dropped:
            self.executor.deallocate(plan.statement_name)
        if dropped:
            logger.info(
                "Catalog version %s -> %s: dropped %d prepared plans",
                self._catalog_version,
                snapshot.version,
                len(dropped),
            )
        self._catalog_version = snapshot.version

    def _stage(self, stage: Stage, digest: str) -> Stage:
        logger.debug("Query %s: %s", digest[:12], stage)
        return stage

    def _failure(self, message: str, digest: str, stage: Stage) -> dict[str, Any]:
        if stage == Stage.COMPILED:
            stage = Stage.PREPARE_ERROR
        log_with_context(
            logger,
            logging.WARNING,
            f"Query failed: {message}",
            digest=digest,
            stage=str(stage),
        )
        self._stage(Stage.RESPONDED, digest)
        return {"data": None, "errors": [message]}
