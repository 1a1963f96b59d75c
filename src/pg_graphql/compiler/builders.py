"""
Node and Connection builders.

The two builders are mutually recursive: a to-one relationship inside a node
recurses into ``build_node``, a to-many relationship into
``build_connection``. Each call returns one correlated scalar sub-query that
yields a ``jsonb`` value, so a whole selection tree compiles into a single
SQL statement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from psycopg import sql

from pg_graphql.catalog.models import CatalogField, CatalogType, Entity, MetaKind
from pg_graphql.compiler.arguments import node_id_filter, pagination, validate_arguments
from pg_graphql.compiler.context import CompileContext, RowScope
from pg_graphql.compiler.sqlgen import (
    CURSOR_COLUMN,
    EMPTY_JSON_ARRAY,
    FALSE,
    and_,
    column,
    cursor_encode,
    json_object,
    order_by,
    table,
)
from pg_graphql.document import AstNode, field_name, response_key, selections
from pg_graphql.errors import CompileError, UnknownFieldError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledQuery:
    """SQL text of a compiled operation and the variable bound to each ``$n``."""

    sql: str
    param_names: tuple[str, ...] = ()


def compile_root(ctx: CompileContext, selection: AstNode, field: CatalogField) -> CompiledQuery:
    """Compile a root selection returning a NODE or a CONNECTION."""
    target = _target_type(ctx, field)
    match target.meta_kind:
        case MetaKind.CONNECTION:
            expr = build_connection(ctx, selection, field)
        case MetaKind.NODE:
            expr = build_node(ctx, selection, field)
        case _:
            raise CompileError(f"Field '{field.parent_type}.{field.name}' cannot be compiled to SQL")

    query = sql.SQL("select {} as {}").format(expr, sql.Identifier("result"))
    text = query.as_string(None)
    logger.debug("Compiled %s.%s: %s", field.parent_type, field.name, text)
    return CompiledQuery(sql=text, param_names=ctx.param_names)


# =============================================================================
# Helpers
# =============================================================================


def _target_type(ctx: CompileContext, field: CatalogField) -> CatalogType:
    target = ctx.snapshot.get_type(field.type_name)
    if target is None:
        raise CompileError(f"Type '{field.type_name}' not found in catalog")
    return target


def _entity_of(type_: CatalogType) -> Entity:
    if type_.entity is None:
        raise CompileError(f"Type '{type_.name}' has no backing entity")
    return type_.entity


def _lookup(ctx: CompileContext, parent_type: str, selection: AstNode) -> CatalogField:
    name = field_name(selection)
    field = ctx.visibility.lookup_field(parent_type, name)
    if field is None:
        raise UnknownFieldError(name, parent_type)
    return field


def _join(field: CatalogField, alias: str, parent: RowScope | None) -> list[sql.Composable]:
    """``alias.local = parent.parent_col`` for each relationship column pair."""
    if parent is None or field.local_columns is None or field.parent_columns is None:
        return []
    return [
        sql.SQL("{} = {}").format(column(alias, local), parent.column(remote))
        for local, remote in zip(field.local_columns, field.parent_columns, strict=True)
    ]


# =============================================================================
# Node Builder
# =============================================================================


def build_node(
    ctx: CompileContext, selection: AstNode, field: CatalogField, parent: RowScope | None = None
) -> sql.Composable:
    """
    Build a sub-query yielding at most one JSON object for a single-row field.

    Nested fields are joined to ``parent`` through the relationship columns;
    a ``nodeId`` argument further restricts the row.
    """
    node_type = _target_type(ctx, field)
    entity = _entity_of(node_type)
    args = validate_arguments(ctx, field, selection)

    alias = ctx.aliases.next()
    scope = RowScope(alias, entity)
    conditions = _join(field, alias, parent)
    if "nodeId" in args:
        conditions.append(node_id_filter(ctx, args["nodeId"], entity, alias))

    obj = node_object(ctx, selection, node_type, scope)
    return sql.SQL("(select {obj} from {table} as {alias} where {where} limit 1)").format(
        obj=obj,
        table=table(entity),
        alias=sql.Identifier(alias),
        where=and_(conditions),
    )


def node_object(ctx: CompileContext, selection: AstNode, node_type: CatalogType, scope: RowScope) -> sql.Composed:
    """``jsonb_build_object`` of a node's selections over the row at ``scope``."""
    entity = _entity_of(node_type)
    members: list[tuple[str, sql.Composable]] = []
    for sub in selections(selection):
        field = _lookup(ctx, node_type.name, sub)
        key = response_key(sub)

        if field.name == "__typename":
            members.append((key, sql.Literal(node_type.name)))
        elif field.name == "nodeId":
            for pk in entity.primary_key:
                scope.column(pk.name)
            members.append((key, cursor_encode(entity, scope.alias)))
        elif field.column_name is not None:
            members.append((key, scope.column(field.column_name)))
        elif field.is_relationship:
            target = _target_type(ctx, field)
            match target.meta_kind:
                case MetaKind.CONNECTION:
                    members.append((key, build_connection(ctx, sub, field, scope)))
                case MetaKind.NODE:
                    members.append((key, build_node(ctx, sub, field, scope)))
                case _:
                    raise UnknownFieldError(field.name, node_type.name)
        else:
            raise UnknownFieldError(field.name, node_type.name)
    return json_object(members)


# =============================================================================
# Connection Builder
# =============================================================================


def build_connection(
    ctx: CompileContext, selection: AstNode, field: CatalogField, parent: RowScope | None = None
) -> sql.Composable:
    """
    Build a sub-query yielding one Relay connection object.

    The page is a derived table of the rows matching the join and keyset
    bounds, ordered by primary key (descending for backward paging) and
    limited. Aggregates over the page always order ascending, so ``edges``
    come out in primary key order either way.
    """
    conn_type = _target_type(ctx, field)
    entity = _entity_of(conn_type)
    edge_type = ctx.snapshot.type_for_entity(entity, MetaKind.EDGE)
    node_type = ctx.snapshot.type_for_entity(entity, MetaKind.NODE)
    if edge_type is None or node_type is None:
        raise CompileError(f"Type '{conn_type.name}' has no edge or node type")

    args = validate_arguments(ctx, field, selection)
    page_info = pagination(ctx, args, entity)

    inner = ctx.aliases.next()
    page = ctx.aliases.next()
    page_scope = RowScope(page, entity)
    page_cursor = column(page, CURSOR_COLUMN)

    def first_cursor(descending: bool) -> sql.Composed:
        return sql.SQL("(array_agg({} order by {}))[1]").format(
            page_cursor, order_by(entity, page, descending=descending)
        )

    def boundary_cursor(descending: bool) -> sql.Composed:
        # First/last cursor of the whole set, restricted only by the join
        alias = ctx.aliases.next()
        return sql.SQL("(select {} from {} as {} where {} order by {} limit 1)").format(
            cursor_encode(entity, alias),
            table(entity),
            sql.Identifier(alias),
            and_(_join(field, alias, parent)),
            order_by(entity, alias, descending=descending),
        )

    members: list[tuple[str, sql.Composable]] = []
    for sub in selections(selection):
        sub_field = _lookup(ctx, conn_type.name, sub)
        key = response_key(sub)

        if sub_field.name == "__typename":
            members.append((key, sql.Literal(conn_type.name)))
        elif sub_field.name == "totalCount":
            alias = ctx.aliases.next()
            members.append(
                (
                    key,
                    sql.SQL("(select count(*) from {} as {} where {})").format(
                        table(entity), sql.Identifier(alias), and_(_join(field, alias, parent))
                    ),
                )
            )
        elif sub_field.name == "pageInfo":
            info: list[tuple[str, sql.Composable]] = []
            for info_sel in selections(sub):
                info_field = _lookup(ctx, "PageInfo", info_sel)
                info_key = response_key(info_sel)
                if info_field.name == "startCursor":
                    info.append((info_key, first_cursor(descending=False)))
                elif info_field.name == "endCursor":
                    info.append((info_key, first_cursor(descending=True)))
                elif info_field.name == "hasNextPage":
                    info.append(
                        (
                            info_key,
                            sql.SQL("coalesce({} <> {}, {})").format(
                                first_cursor(descending=True), boundary_cursor(descending=True), FALSE
                            ),
                        )
                    )
                elif info_field.name == "hasPreviousPage":
                    info.append(
                        (
                            info_key,
                            sql.SQL("coalesce({} <> {}, {})").format(
                                first_cursor(descending=False), boundary_cursor(descending=False), FALSE
                            ),
                        )
                    )
                else:
                    raise UnknownFieldError(info_field.name, "PageInfo")
            members.append((key, json_object(info)))
        elif sub_field.name == "edges":
            edge_members: list[tuple[str, sql.Composable]] = []
            for edge_sel in selections(sub):
                edge_field = _lookup(ctx, edge_type.name, edge_sel)
                edge_key = response_key(edge_sel)
                if edge_field.name == "__typename":
                    edge_members.append((edge_key, sql.Literal(edge_type.name)))
                elif edge_field.name == "cursor":
                    edge_members.append((edge_key, page_cursor))
                elif edge_field.name == "node":
                    edge_members.append((edge_key, node_object(ctx, edge_sel, node_type, page_scope)))
                else:
                    raise UnknownFieldError(edge_field.name, edge_type.name)
            members.append(
                (
                    key,
                    sql.SQL("coalesce(jsonb_agg({} order by {}), {})").format(
                        json_object(edge_members), order_by(entity, page), EMPTY_JSON_ARRAY
                    ),
                )
            )
        else:
            raise UnknownFieldError(sub_field.name, conn_type.name)

    # Columns read by nested expressions plus the primary key
    page_columns = [pk.name for pk in entity.primary_key]
    page_columns.extend(c for c in page_scope.columns if c not in page_columns)
    select_list = [sql.SQL("{} as {}").format(cursor_encode(entity, inner), sql.Identifier(CURSOR_COLUMN))]
    select_list.extend(
        sql.SQL("{} as {}").format(column(inner, name), sql.Identifier(name)) for name in page_columns
    )

    conditions = _join(field, inner, parent) + page_info.keyset(entity, inner)
    page_query = sql.SQL(
        "select {columns} from {table} as {inner} where {where} order by {order} limit {limit}"
    ).format(
        columns=sql.SQL(", ").join(select_list),
        table=table(entity),
        inner=sql.Identifier(inner),
        where=and_(conditions),
        order=order_by(entity, inner, descending=page_info.backward),
        limit=page_info.limit,
    )
    # Grouping by the empty set yields exactly one row, even for an empty page
    # or a selection with no aggregate in it
    return sql.SQL("(select {obj} from ({page_query}) as {page} group by ())").format(
        obj=json_object(members), page_query=page_query, page=sql.Identifier(page)
    )
