"""
Field argument handling: validation, pagination and ``nodeId`` filters.

Arguments may be literals or variable references. Literals are checked and
inlined at compile time; variables become positional parameters so one
compiled plan serves every binding.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from psycopg import sql

from pg_graphql.catalog.models import CatalogField, Entity
from pg_graphql.compiler.context import CompileContext
from pg_graphql.compiler.sqlgen import cast, cursor_decode, cursor_row, row
from pg_graphql.cursor import split_cursor
from pg_graphql.document import AstNode, arguments
from pg_graphql.errors import CompileError, CursorDecodeError


def validate_arguments(ctx: CompileContext, field: CatalogField, selection: AstNode) -> dict[str, AstNode]:
    """
    Check supplied arguments against the catalog and return them by name.

    Raises:
        CompileError: an argument is unknown or a required argument is missing
    """
    supplied = arguments(selection)
    declared = {a.name: a for a in ctx.snapshot.args_of(field.parent_type, field.name)}
    for name in supplied:
        if name not in declared:
            raise CompileError(f"Unknown argument '{name}' on field '{field.parent_type}.{field.name}'")
    for arg in declared.values():
        if arg.is_not_null and arg.default_value is None and arg.name not in supplied:
            raise CompileError(
                f"Argument '{arg.name}' of type '{arg.type_name}!' is required on field "
                f"'{field.parent_type}.{field.name}'"
            )
    return supplied


# =============================================================================
# Cursors
# =============================================================================


@dataclass(frozen=True)
class CursorValue:
    """
    A decoded cursor as a typed SQL tuple.

    ``guard`` is the parameter the cursor came from, if any; a null binding
    disables the bound instead of filtering every row out.
    """

    values: tuple[sql.Composable, ...]
    guard: sql.Composable | None = None

    def compare(self, entity: Entity, alias: str, operator: str) -> sql.Composable:
        condition = sql.SQL("{} {} {}").format(cursor_row(entity, alias), sql.SQL(operator), row(self.values))
        if self.guard is None:
            return condition
        return sql.SQL("({} is null or {})").format(self.guard, condition)


def cursor_value(ctx: CompileContext, node: AstNode, entity: Entity, arg_name: str) -> CursorValue | None:
    """
    Turn a cursor argument (literal or variable) into a comparison tuple.

    Returns None for a literal ``null``.

    Raises:
        CursorDecodeError: a literal cursor is malformed or has the wrong arity
        CompileError: the argument is neither a string, null nor a variable
    """
    kind = node["kind"]
    if kind == "null_value":
        return None
    if kind == "variable":
        token = ctx.param_for(node["name"]["value"])
        return CursorValue(values=tuple(cursor_decode(token, entity)), guard=token)
    if kind != "string_value":
        raise CompileError(f"Argument '{arg_name}' must be a cursor string")

    identity, key = split_cursor(node["value"])
    if len(key) != len(entity.primary_key):
        raise CursorDecodeError(f"Invalid cursor '{node['value']}': wrong number of key values")
    values: list[sql.Composable] = [cast(sql.Literal(identity), "text")]
    for value, pk in zip(key, entity.primary_key, strict=True):
        values.append(cast(_text_literal(value), pk.sql_type))
    return CursorValue(values=tuple(values))


def _text_literal(value: Any) -> sql.Composable:
    if value is None:
        return sql.SQL("null")
    if isinstance(value, str):
        return sql.Literal(value)
    return sql.Literal(json.dumps(value))


def node_id_filter(ctx: CompileContext, node: AstNode, entity: Entity, alias: str) -> sql.Composable:
    """Condition selecting the row whose cursor equals a ``nodeId`` argument."""
    value = cursor_value(ctx, node, entity, "nodeId")
    if value is None:
        return sql.SQL("false")
    return sql.SQL("{} = {}").format(cursor_row(entity, alias), row(value.values))


# =============================================================================
# Pagination
# =============================================================================


@dataclass(frozen=True)
class Pagination:
    """Resolved ``first``/``last``/``after``/``before`` of one connection."""

    limit: sql.Composable
    backward: bool = False
    after: CursorValue | None = None
    before: CursorValue | None = None

    def keyset(self, entity: Entity, alias: str) -> list[sql.Composable]:
        conditions = []
        if self.after is not None:
            conditions.append(self.after.compare(entity, alias, ">"))
        if self.before is not None:
            conditions.append(self.before.compare(entity, alias, "<"))
        return conditions


def _page_size(ctx: CompileContext, node: AstNode | None, arg_name: str) -> sql.Composable:
    if node is None or node["kind"] == "null_value":
        return sql.Literal(ctx.page_size)
    if node["kind"] == "variable":
        token = ctx.param_for(node["name"]["value"])
        return sql.SQL("coalesce(({})::int, {})").format(token, sql.Literal(ctx.page_size))
    if node["kind"] != "int_value" or int(node["value"]) < 0:
        raise CompileError(f"Argument '{arg_name}' must be a non-negative integer")
    return sql.Literal(int(node["value"]))


def pagination(ctx: CompileContext, args: dict[str, AstNode], entity: Entity) -> Pagination:
    """
    Resolve the pagination arguments of a connection field.

    Raises:
        CompileError: both ``first`` and ``last`` are supplied
    """
    if "first" in args and "last" in args:
        raise CompileError("Arguments 'first' and 'last' cannot be used together")

    backward = "last" in args
    limit = _page_size(ctx, args.get("last" if backward else "first"), "last" if backward else "first")
    after = cursor_value(ctx, args["after"], entity, "after") if "after" in args else None
    before = cursor_value(ctx, args["before"], entity, "before") if "before" in args else None
    return Pagination(limit=limit, backward=backward, after=after, before=before)
