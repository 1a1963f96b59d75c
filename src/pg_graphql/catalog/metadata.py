"""
Relational metadata reader.

Reads tables, columns, primary keys, foreign keys and enum types from
``pg_catalog``. The result is a plain value (``RelationalMetadata``) that the
catalog builder turns into a GraphQL schema, so the builder itself never talks
to the database.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

INTERNAL_SCHEMAS: tuple[str, ...] = ("pg_catalog", "information_schema", "pg_toast")


@dataclass(frozen=True)
class ColumnInfo:
    """
    A table column.

    Attributes:
        name: Column name
        type_name: Canonical type name (``int4``, ``text``...); the element type for arrays
        sql_type: Formatted SQL type used for casts (``integer``, ``uuid``...)
        is_not_null: Column carries a NOT NULL constraint
        is_array: Column is an array of ``type_name``
        is_enum: ``type_name`` is a user-defined enum type
        type_schema: Namespace of the (element) type, needed to name enum types
    """

    name: str
    type_name: str
    sql_type: str
    is_not_null: bool = False
    is_array: bool = False
    is_enum: bool = False
    type_schema: str = "pg_catalog"


@dataclass(frozen=True)
class TableInfo:
    """A table with its columns and primary key (column names in key order)."""

    schema: str
    name: str
    columns: tuple[ColumnInfo, ...] = ()
    primary_key: tuple[str, ...] = ()

    @property
    def identity(self) -> str:
        return f"{self.schema}.{self.name}"

    def column(self, name: str) -> ColumnInfo | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None


@dataclass(frozen=True)
class ForeignKeyInfo:
    """A foreign key constraint, columns paired positionally."""

    name: str
    schema: str
    table: str
    columns: tuple[str, ...]
    foreign_schema: str
    foreign_table: str
    foreign_columns: tuple[str, ...]


@dataclass(frozen=True)
class EnumTypeInfo:
    """A user-defined enum type and its labels in sort order."""

    schema: str
    name: str
    values: tuple[str, ...] = ()


@dataclass(frozen=True)
class RelationalMetadata:
    """Everything the catalog builder needs to know about the store."""

    tables: tuple[TableInfo, ...] = ()
    foreign_keys: tuple[ForeignKeyInfo, ...] = ()
    enums: tuple[EnumTypeInfo, ...] = field(default_factory=tuple)

    def table(self, schema: str, name: str) -> TableInfo | None:
        for table in self.tables:
            if table.schema == schema and table.name == name:
                return table
        return None


# =============================================================================
# PostgreSQL reader
# =============================================================================

_TABLES_SQL = """
select
    c.oid::int8 as oid,
    n.nspname as schema,
    c.relname as name
from
    pg_catalog.pg_class c
    join pg_catalog.pg_namespace n
        on n.oid = c.relnamespace
where
    c.relkind in ('r', 'p')
    and not c.relispartition
    and n.nspname::text <> all(%(excluded)s::text[])
    and n.nspname not like 'pg\\_temp%%'
    and n.nspname not like 'pg\\_toast%%'
order by
    n.nspname, c.relname
"""

_COLUMNS_SQL = """
select
    a.attrelid::int8 as oid,
    a.attname as name,
    a.attnotnull as is_not_null,
    t.typcategory = 'A' as is_array,
    coalesce(et.typname, t.typname) as type_name,
    coalesce(et.typtype, t.typtype) = 'e' as is_enum,
    tn.nspname as type_schema,
    pg_catalog.format_type(a.atttypid, null) as sql_type
from
    pg_catalog.pg_attribute a
    join pg_catalog.pg_type t
        on t.oid = a.atttypid
    left join pg_catalog.pg_type et
        on t.typcategory = 'A'
        and et.oid = t.typelem
    join pg_catalog.pg_namespace tn
        on tn.oid = coalesce(et.typnamespace, t.typnamespace)
where
    a.attrelid = any(%(oids)s::oid[])
    and a.attnum > 0
    and not a.attisdropped
order by
    a.attrelid, a.attnum
"""

_PRIMARY_KEYS_SQL = """
select
    i.indrelid::int8 as oid,
    a.attname as name
from
    pg_catalog.pg_index i
    cross join lateral unnest(i.indkey) with ordinality k(attnum, ord)
    join pg_catalog.pg_attribute a
        on a.attrelid = i.indrelid
        and a.attnum = k.attnum
where
    i.indisprimary
    and i.indrelid = any(%(oids)s::oid[])
order by
    i.indrelid, k.ord
"""

_FOREIGN_KEYS_SQL = """
select
    con.conname as name,
    ln.nspname as schema,
    lc.relname as "table",
    array(
        select la.attname::text
        from unnest(con.conkey) with ordinality lk(attnum, ord)
        join pg_catalog.pg_attribute la
            on la.attrelid = con.conrelid
            and la.attnum = lk.attnum
        order by lk.ord
    ) as columns,
    fn.nspname as foreign_schema,
    fc.relname as foreign_table,
    array(
        select fa.attname::text
        from unnest(con.confkey) with ordinality fk(attnum, ord)
        join pg_catalog.pg_attribute fa
            on fa.attrelid = con.confrelid
            and fa.attnum = fk.attnum
        order by fk.ord
    ) as foreign_columns
from
    pg_catalog.pg_constraint con
    join pg_catalog.pg_class lc
        on lc.oid = con.conrelid
    join pg_catalog.pg_namespace ln
        on ln.oid = lc.relnamespace
    join pg_catalog.pg_class fc
        on fc.oid = con.confrelid
    join pg_catalog.pg_namespace fn
        on fn.oid = fc.relnamespace
where
    con.contype = 'f'
    and con.conrelid = any(%(oids)s::oid[])
    and con.confrelid = any(%(oids)s::oid[])
order by
    ln.nspname, lc.relname, con.conname
"""

_ENUMS_SQL = """
select
    n.nspname as schema,
    t.typname as name,
    array_agg(e.enumlabel::text order by e.enumsortorder) as labels
from
    pg_catalog.pg_type t
    join pg_catalog.pg_enum e
        on e.enumtypid = t.oid
    join pg_catalog.pg_namespace n
        on n.oid = t.typnamespace
where
    n.nspname::text <> all(%(excluded)s::text[])
group by
    n.nspname, t.typname
order by
    n.nspname, t.typname
"""


class PostgresMetadataReader:
    """
    Load ``RelationalMetadata`` from a PostgreSQL connection.

    All catalog queries run inside one transaction so the result reflects a
    single consistent state of the schema.

    Example:
        with connect(url) as conn:
            metadata = PostgresMetadataReader(conn).read()
    """

    def __init__(self, conn: Any, exclude_schemas: Iterable[str] = ()) -> None:
        self._conn = conn
        self._excluded = list(INTERNAL_SCHEMAS) + [s for s in exclude_schemas]

    def read(self) -> RelationalMetadata:
        with self._conn.transaction():
            cur = self._conn.cursor()

            cur.execute(_TABLES_SQL, {"excluded": self._excluded})
            table_rows = _rows(cur)
            oids = [row["oid"] for row in table_rows]

            cur.execute(_COLUMNS_SQL, {"oids": oids})
            columns: dict[int, list[ColumnInfo]] = {}
            for row in _rows(cur):
                columns.setdefault(row["oid"], []).append(
                    ColumnInfo(
                        name=row["name"],
                        type_name=row["type_name"],
                        sql_type=row["sql_type"].removesuffix("[]"),
                        is_not_null=row["is_not_null"],
                        is_array=row["is_array"],
                        is_enum=row["is_enum"],
                        type_schema=row["type_schema"],
                    )
                )

            cur.execute(_PRIMARY_KEYS_SQL, {"oids": oids})
            primary_keys: dict[int, list[str]] = {}
            for row in _rows(cur):
                primary_keys.setdefault(row["oid"], []).append(row["name"])

            cur.execute(_FOREIGN_KEYS_SQL, {"oids": oids})
            foreign_keys = tuple(
                ForeignKeyInfo(
                    name=row["name"],
                    schema=row["schema"],
                    table=row["table"],
                    columns=tuple(row["columns"]),
                    foreign_schema=row["foreign_schema"],
                    foreign_table=row["foreign_table"],
                    foreign_columns=tuple(row["foreign_columns"]),
                )
                for row in _rows(cur)
            )

            cur.execute(_ENUMS_SQL, {"excluded": self._excluded})
            enums = tuple(
                EnumTypeInfo(schema=row["schema"], name=row["name"], values=tuple(row["labels"]))
                for row in _rows(cur)
            )

        tables = tuple(
            TableInfo(
                schema=row["schema"],
                name=row["name"],
                columns=tuple(columns.get(row["oid"], ())),
                primary_key=tuple(primary_keys.get(row["oid"], ())),
            )
            for row in table_rows
        )
        logger.debug(
            "Read relational metadata: %d tables, %d foreign keys, %d enums",
            len(tables),
            len(foreign_keys),
            len(enums),
        )
        return RelationalMetadata(tables=tables, foreign_keys=foreign_keys, enums=enums)


def _rows(cursor: Any) -> list[dict[str, Any]]:
    """Fetch all rows as dicts regardless of the connection's row factory."""
    rows = cursor.fetchall()
    if rows and not isinstance(rows[0], dict):
        names = [d.name for d in cursor.description]
        return [dict(zip(names, row, strict=True)) for row in rows]
    return list(rows)
