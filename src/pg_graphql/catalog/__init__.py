"""
Schema catalog: relational metadata, the derived GraphQL catalog and the
store that swaps snapshots on schema change.
"""

from pg_graphql.catalog.builder import CatalogBuilder, build_catalog, sql_type_to_graphql
from pg_graphql.catalog.metadata import (
    ColumnInfo,
    EnumTypeInfo,
    ForeignKeyInfo,
    PostgresMetadataReader,
    RelationalMetadata,
    TableInfo,
)
from pg_graphql.catalog.models import (
    Cardinality,
    CatalogArg,
    CatalogField,
    CatalogSnapshot,
    CatalogType,
    Entity,
    EnumValue,
    MetaKind,
    PrimaryKeyColumn,
    Relationship,
    TypeKind,
)
from pg_graphql.catalog.store import CatalogStore

__all__ = [
    # Metadata
    "ColumnInfo",
    "EnumTypeInfo",
    "ForeignKeyInfo",
    "PostgresMetadataReader",
    "RelationalMetadata",
    "TableInfo",
    # Catalog
    "Cardinality",
    "CatalogArg",
    "CatalogField",
    "CatalogSnapshot",
    "CatalogType",
    "Entity",
    "EnumValue",
    "MetaKind",
    "PrimaryKeyColumn",
    "Relationship",
    "TypeKind",
    # Building
    "CatalogBuilder",
    "CatalogStore",
    "build_catalog",
    "sql_type_to_graphql",
]
