"""
Authorization filter.

Visibility of catalog entries is decided by the backing store's column-level
SELECT privileges for the current role. A field the role cannot read is treated
exactly like a field that does not exist, both by the compiler and by
introspection.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from pg_graphql.catalog.models import CatalogArg, CatalogField, CatalogSnapshot, CatalogType, Entity, EnumValue

logger = logging.getLogger(__name__)


class PrivilegeOracle(Protocol):
    """Answers read-privilege questions for one role."""

    def can_select_column(self, entity: Entity, column: str) -> bool: ...

    def can_select_any(self, entity: Entity) -> bool: ...


class PostgresPrivilegeOracle:
    """
    Privilege oracle backed by ``has_column_privilege`` for ``current_user``.

    Answers are memoized for the lifetime of the instance; create one per
    request so grants changed between requests are picked up.
    """

    _COLUMN_SQL = (
        "select pg_catalog.has_column_privilege(current_user, %s::regclass, %s, 'SELECT') as allowed"
    )
    _ANY_SQL = (
        "select pg_catalog.has_any_column_privilege(current_user, %s::regclass, 'SELECT') as allowed"
    )

    def __init__(self, conn: Any) -> None:
        self._conn = conn
        self._columns: dict[tuple[str, str], bool] = {}
        self._tables: dict[str, bool] = {}

    @staticmethod
    def _regclass(entity: Entity) -> str:
        schema = entity.schema_name.replace('"', '""')
        name = entity.name.replace('"', '""')
        return f'"{schema}"."{name}"'

    def can_select_column(self, entity: Entity, column: str) -> bool:
        key = (entity.identity, column)
        if key not in self._columns:
            row = self._conn.execute(self._COLUMN_SQL, (self._regclass(entity), column)).fetchone()
            self._columns[key] = bool(_first(row))
        return self._columns[key]

    def can_select_any(self, entity: Entity) -> bool:
        key = entity.identity
        if key not in self._tables:
            row = self._conn.execute(self._ANY_SQL, (self._regclass(entity),)).fetchone()
            self._tables[key] = bool(_first(row))
        return self._tables[key]


class StaticPrivilegeOracle:
    """
    Privilege oracle driven by an in-memory grant map.

    Args:
        grants: ``{"schema.table": ["col", ...]}``; ``"*"`` grants every column.
            Tables missing from the map are not readable.
        allow_all: Grant everything regardless of ``grants``

    Example:
        oracle = StaticPrivilegeOracle({"public.account": ["id", "email"]})
    """

    def __init__(
        self, grants: Mapping[str, Iterable[str]] | None = None, *, allow_all: bool = False
    ) -> None:
        self._grants = {identity: frozenset(cols) for identity, cols in (grants or {}).items()}
        self._allow_all = allow_all

    def can_select_column(self, entity: Entity, column: str) -> bool:
        if self._allow_all:
            return True
        columns = self._grants.get(entity.identity, frozenset())
        return "*" in columns or column in columns

    def can_select_any(self, entity: Entity) -> bool:
        if self._allow_all:
            return True
        return bool(self._grants.get(entity.identity))


class Visibility:
    """
    Visibility predicate over one catalog snapshot for one role.

    Rules:
    - a type is visible when it has no backing entity, or the role can read
      at least one column of the entity
    - a field is visible when its parent and target types are visible and the
      role can read the backing column (column fields) or any column of the
      parent entity (every other field on an entity type)
    - an argument is visible when its field is visible
    - an enum value is visible when its type is visible
    """

    def __init__(self, snapshot: CatalogSnapshot, oracle: PrivilegeOracle) -> None:
        self.snapshot = snapshot
        self.oracle = oracle

    def type_visible(self, type_: CatalogType | str | None) -> bool:
        if isinstance(type_, str):
            type_ = self.snapshot.get_type(type_)
        if type_ is None:
            return False
        if type_.entity is None:
            return True
        return self.oracle.can_select_any(type_.entity)

    def field_visible(self, field: CatalogField | None) -> bool:
        if field is None:
            return False
        parent = self.snapshot.get_type(field.parent_type)
        if parent is None or not self.type_visible(parent) or not self.type_visible(field.type_name):
            return False
        if parent.entity is None:
            return True
        if field.column_name is not None:
            return self.oracle.can_select_column(parent.entity, field.column_name)
        return self.oracle.can_select_any(parent.entity)

    def arg_visible(self, arg: CatalogArg) -> bool:
        return self.field_visible(self.snapshot.get_field(arg.field_parent_type, arg.field_name))

    def enum_value_visible(self, value: EnumValue) -> bool:
        return self.type_visible(value.type_name)

    def lookup_field(self, parent_type: str, name: str) -> CatalogField | None:
        """Return the field when it exists and is visible, else None."""
        field = self.snapshot.get_field(parent_type, name)
        if field is None or not self.field_visible(field):
            return None
        return field


def _first(row: Any) -> Any:
    if row is None:
        return None
    if isinstance(row, Mapping):
        return next(iter(row.values()), None)
    return row[0]
