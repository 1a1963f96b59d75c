"""
Compilation context shared by the node and connection builders.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from psycopg import sql

from pg_graphql.authz import Visibility
from pg_graphql.catalog.models import CatalogSnapshot, Entity
from pg_graphql.compiler.sqlgen import column, param
from pg_graphql.document import VariableDefinition
from pg_graphql.errors import CompileError


class AliasGenerator:
    """Monotonic correlation aliases ``t1``, ``t2``... unique within one compile."""

    def __init__(self, prefix: str = "t") -> None:
        self._prefix = prefix
        self._count = 0

    def next(self) -> str:
        self._count += 1
        return f"{self._prefix}{self._count}"


class RowScope:
    """
    A row source visible to nested expressions.

    Records every column read through it so the source can select exactly
    those columns.
    """

    def __init__(self, alias: str, entity: Entity) -> None:
        self.alias = alias
        self.entity = entity
        self.columns: list[str] = []

    def column(self, name: str) -> sql.Identifier:
        if name not in self.columns:
            self.columns.append(name)
        return column(self.alias, name)


@dataclass
class CompileContext:
    """
    Read-only inputs of one compilation plus the alias generator.

    Args:
        snapshot: Catalog snapshot the query is compiled against
        visibility: Visibility predicate for the current role
        variables: Variables declared by the operation, sorted by name
        page_size: Page size used when neither ``first`` nor ``last`` is given
    """

    snapshot: CatalogSnapshot
    visibility: Visibility
    variables: tuple[VariableDefinition, ...] = ()
    page_size: int = 10
    aliases: AliasGenerator = field(default_factory=AliasGenerator)

    def __post_init__(self) -> None:
        self._positions = {v.name: i for i, v in enumerate(self.variables, start=1)}

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(v.name for v in self.variables)

    def param_for(self, name: str) -> sql.SQL:
        """Positional parameter bound to a declared variable."""
        position = self._positions.get(name)
        if position is None:
            raise CompileError(f"Variable '${name}' is not defined")
        return param(position)
