"""
SQL expression helpers.

Every fragment of generated SQL is a ``psycopg.sql`` composable: identifiers
are always quoted and literals always escaped. Positional parameters use the
server-side ``$n`` notation because compiled text is registered with
``PREPARE``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from psycopg import sql

from pg_graphql.catalog.models import Entity

TRUE = sql.SQL("true")
FALSE = sql.SQL("false")
NULL = sql.SQL("null")
EMPTY_JSON_ARRAY = sql.SQL("'[]'::jsonb")
CURSOR_COLUMN = "__cursor"


def param(index: int) -> sql.SQL:
    """Positional parameter ``$index`` (1-based)."""
    return sql.SQL(f"${index}")


def table(entity: Entity) -> sql.Identifier:
    return sql.Identifier(entity.schema_name, entity.name)


def column(alias: str, name: str) -> sql.Identifier:
    return sql.Identifier(alias, name)


def cast(expr: sql.Composable, sql_type: str) -> sql.Composed:
    # sql_type comes from pg_catalog.format_type, never from the request
    return sql.SQL("({})::{}").format(expr, sql.SQL(sql_type))


def and_(conditions: Iterable[sql.Composable]) -> sql.Composable:
    parts = list(conditions)
    if not parts:
        return TRUE
    return sql.SQL(" and ").join(parts)


def json_object(pairs: Sequence[tuple[str, sql.Composable]]) -> sql.Composed:
    """``jsonb_build_object('k1', v1, 'k2', v2, ...)``"""
    members = [sql.SQL("{}, {}").format(sql.Literal(key), value) for key, value in pairs]
    return sql.SQL("jsonb_build_object({})").format(sql.SQL(", ").join(members))


def row(values: Sequence[sql.Composable]) -> sql.Composed:
    return sql.SQL("row({})").format(sql.SQL(", ").join(values))


def cursor_row(entity: Entity, alias: str) -> sql.Composed:
    """``row('schema.table'::text, alias.pk1, ...)``: the comparison tuple of a row."""
    values: list[sql.Composable] = [sql.SQL("{}::text").format(sql.Literal(entity.identity))]
    values.extend(column(alias, pk.name) for pk in entity.primary_key)
    return row(values)


def cursor_encode(entity: Entity, alias: str) -> sql.Composed:
    """Expression rendering the opaque cursor of the row at ``alias``."""
    members: list[sql.Composable] = [sql.SQL("{}::text").format(sql.Literal(entity.identity))]
    members.extend(column(alias, pk.name) for pk in entity.primary_key)
    contents = sql.SQL("jsonb_build_array({})").format(sql.SQL(", ").join(members))
    return sql.SQL("translate(encode(convert_to(({})::text, 'utf8'), 'base64'), E'\\n', '')").format(
        contents
    )


def cursor_decode(token: sql.Composable, entity: Entity) -> list[sql.Composed]:
    """
    Typed comparison tuple decoded from a cursor expression.

    Position 0 is the entity identity as text; positions 1..k are cast to the
    primary key column types.
    """
    contents = sql.SQL("convert_from(decode({}, 'base64'), 'utf8')::jsonb").format(token)
    values = [cast(sql.SQL("{} ->> 0").format(contents), "text")]
    for index, pk in enumerate(entity.primary_key, start=1):
        values.append(cast(sql.SQL("{} ->> {}").format(contents, sql.Literal(index)), pk.sql_type))
    return values


def order_by(entity: Entity, alias: str, *, descending: bool = False) -> sql.Composed:
    direction = sql.SQL("desc" if descending else "asc")
    return sql.SQL(", ").join(
        sql.SQL("{} {}").format(column(alias, pk.name), direction) for pk in entity.primary_key
    )
