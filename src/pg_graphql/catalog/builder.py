"""
Schema Catalog Builder - derive a GraphQL catalog from relational metadata.

For every table with a primary key the builder emits a Node type, an Edge
type and a Connection type, plus root ``Query`` fields to fetch one node or a
paginated connection. Foreign keys become relationship fields on both sides.
Store enum types become GraphQL ENUM types.

Example:
    metadata = PostgresMetadataReader(conn).read()
    snapshot = CatalogBuilder(metadata).build()
    snapshot.get_field("Query", "allAccounts")
"""

from __future__ import annotations

import logging
from collections import defaultdict

from pg_graphql.catalog.metadata import ColumnInfo, RelationalMetadata, TableInfo
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
from pg_graphql.errors import CompileError
from pg_graphql.naming import pluralize, table_name_for, to_camel_case, to_pascal_case

logger = logging.getLogger(__name__)


# =============================================================================
# Fixed catalog content
# =============================================================================

# (name, type_kind, meta_kind, description)
BUILTIN_TYPES: tuple[tuple[str, TypeKind, MetaKind, str | None], ...] = (
    ("ID", TypeKind.SCALAR, MetaKind.BUILTIN, None),
    ("Int", TypeKind.SCALAR, MetaKind.BUILTIN, None),
    ("Float", TypeKind.SCALAR, MetaKind.BUILTIN, None),
    ("String", TypeKind.SCALAR, MetaKind.BUILTIN, None),
    ("Boolean", TypeKind.SCALAR, MetaKind.BUILTIN, None),
    ("DateTime", TypeKind.SCALAR, MetaKind.CUSTOM_SCALAR, None),
    ("BigInt", TypeKind.SCALAR, MetaKind.CUSTOM_SCALAR, None),
    ("UUID", TypeKind.SCALAR, MetaKind.CUSTOM_SCALAR, None),
    ("JSON", TypeKind.SCALAR, MetaKind.CUSTOM_SCALAR, None),
    ("Cursor", TypeKind.SCALAR, MetaKind.CUSTOM_SCALAR, None),
    ("Query", TypeKind.OBJECT, MetaKind.QUERY, None),
    ("PageInfo", TypeKind.OBJECT, MetaKind.PAGE_INFO, None),
    (
        "__TypeKind",
        TypeKind.ENUM,
        MetaKind.TYPE_KIND,
        "An enum describing what kind of type a given `__Type` is.",
    ),
    (
        "__Schema",
        TypeKind.OBJECT,
        MetaKind.SCHEMA,
        "A GraphQL Schema defines the capabilities of a GraphQL server. It exposes all "
        "available types and directives on the server, as well as the entry points for "
        "query, mutation, and subscription operations.",
    ),
    (
        "__Type",
        TypeKind.OBJECT,
        MetaKind.TYPE,
        "The fundamental unit of any GraphQL Schema is the type. There are many kinds of "
        "types in GraphQL as represented by the `__TypeKind` enum.\n\nDepending on the kind "
        "of a type, certain fields describe information about that type. Scalar types "
        "provide no information beyond a name, description and optional `specifiedByURL`, "
        "while Enum types provide their values. Object and Interface types provide the "
        "fields they describe. Abstract types, Union and Interface, provide the Object "
        "types possible at runtime. List and NonNull types compose other types.",
    ),
    (
        "__Field",
        TypeKind.OBJECT,
        MetaKind.FIELD,
        "Object and Interface types are described by a list of Fields, each of which has "
        "a name, potentially a list of arguments, and a return type.",
    ),
    (
        "__InputValue",
        TypeKind.OBJECT,
        MetaKind.INPUT_VALUE,
        "Arguments provided to Fields or Directives and the input fields of an "
        "InputObject are represented as Input Values which describe their type and "
        "optionally a default value.",
    ),
    (
        "__EnumValue",
        TypeKind.OBJECT,
        MetaKind.ENUM_VALUE,
        "One possible value for a given Enum. Enum values are unique values, not a "
        "placeholder for a string or numeric value. However an Enum value is returned in "
        "a JSON response as a string.",
    ),
    (
        "__DirectiveLocation",
        TypeKind.ENUM,
        MetaKind.DIRECTIVE_LOCATION,
        "A Directive can be adjacent to many parts of the GraphQL language, a "
        "__DirectiveLocation describes one such possible adjacencies.",
    ),
    (
        "__Directive",
        TypeKind.OBJECT,
        MetaKind.DIRECTIVE,
        "A Directive provides a way to describe alternate runtime execution and type "
        "validation behavior in a GraphQL document.\n\nIn some cases, you need to provide "
        "options to alter GraphQL execution behavior in ways field arguments will not "
        "suffice, such as conditionally including or skipping a field. Directives provide "
        "this by describing additional information to the executor.",
    ),
)

# (parent_type, type_name, name, is_not_null, is_array, is_array_not_null, description)
BUILTIN_FIELDS: tuple[tuple[str, str, str, bool, bool, bool | None, str | None], ...] = (
    ("__Schema", "String", "description", False, False, None, None),
    ("__Schema", "__Type", "types", True, True, True, "A list of all types supported by this server."),
    ("__Schema", "__Type", "queryType", True, False, None, "The type that query operations will be rooted at."),
    (
        "__Schema",
        "__Type",
        "mutationType",
        False,
        False,
        None,
        "If this server supports mutation, the type that mutation operations will be rooted at.",
    ),
    (
        "__Schema",
        "__Type",
        "subscriptionType",
        False,
        False,
        None,
        "If this server support subscription, the type that subscription operations will be rooted at.",
    ),
    ("__Schema", "__Directive", "directives", True, True, True, "A list of all directives supported by this server."),
    ("__Directive", "String", "name", True, False, None, None),
    ("__Directive", "String", "description", False, False, None, None),
    ("__Directive", "Boolean", "isRepeatable", True, False, None, None),
    ("__Directive", "__DirectiveLocation", "locations", True, True, True, None),
    ("__Directive", "__InputValue", "args", True, True, True, None),
    ("__Type", "__TypeKind", "kind", True, False, None, None),
    ("__Type", "String", "name", False, False, None, None),
    ("__Type", "String", "description", False, False, None, None),
    ("__Type", "String", "specifiedByURL", False, False, None, None),
    ("__Type", "__Field", "fields", False, True, True, None),
    ("__Type", "__Type", "interfaces", True, True, False, None),
    ("__Type", "__Type", "possibleTypes", True, True, False, None),
    ("__Type", "__EnumValue", "enumValues", True, True, False, None),
    ("__Type", "__InputValue", "inputFields", True, True, False, None),
    ("__Type", "__Type", "ofType", False, False, None, None),
    ("__Field", "String", "name", True, False, None, None),
    ("__Field", "String", "description", False, False, None, None),
    ("__Field", "Boolean", "isDeprecated", True, False, None, None),
    ("__Field", "String", "deprecationReason", False, False, None, None),
    ("__Field", "__InputValue", "args", True, True, True, None),
    ("__Field", "__Type", "type", True, False, None, None),
    ("__InputValue", "String", "name", True, False, None, None),
    ("__InputValue", "String", "description", False, False, None, None),
    (
        "__InputValue",
        "String",
        "defaultValue",
        False,
        False,
        None,
        "A GraphQL-formatted string representing the default value for this input value.",
    ),
    ("__InputValue", "Boolean", "isDeprecated", True, False, None, None),
    ("__InputValue", "String", "deprecationReason", False, False, None, None),
    ("__InputValue", "__Type", "type", True, False, None, None),
    ("__EnumValue", "String", "name", True, False, None, None),
    ("__EnumValue", "String", "description", False, False, None, None),
    ("__EnumValue", "Boolean", "isDeprecated", True, False, None, None),
    ("__EnumValue", "String", "deprecationReason", False, False, None, None),
    ("PageInfo", "Boolean", "hasPreviousPage", True, False, None, None),
    ("PageInfo", "Boolean", "hasNextPage", True, False, None, None),
    ("PageInfo", "String", "startCursor", False, False, None, None),
    ("PageInfo", "String", "endCursor", False, False, None, None),
)

TYPE_KIND_VALUES = tuple(kind.value for kind in TypeKind)

DIRECTIVE_LOCATIONS: tuple[tuple[str, str], ...] = (
    ("QUERY", "Location adjacent to a query operation."),
    ("MUTATION", "Location adjacent to a mutation operation."),
    ("SUBSCRIPTION", "Location adjacent to a subscription operation."),
    ("FIELD", "Location adjacent to a field."),
    ("FRAGMENT_DEFINITION", "Location adjacent to a fragment definition."),
    ("FRAGMENT_SPREAD", "Location adjacent to a fragment spread."),
    ("INLINE_FRAGMENT", "Location adjacent to an inline fragment."),
    ("VARIABLE_DEFINITION", "Location adjacent to a variable definition."),
    ("SCHEMA", "Location adjacent to a schema definition."),
    ("SCALAR", "Location adjacent to a scalar definition."),
    ("OBJECT", "Location adjacent to an object type definition."),
    ("FIELD_DEFINITION", "Location adjacent to a field definition."),
    ("ARGUMENT_DEFINITION", "Location adjacent to an argument definition."),
    ("INTERFACE", "Location adjacent to an interface definition."),
    ("UNION", "Location adjacent to a union definition."),
    ("ENUM", "Location adjacent to an enum definition."),
    ("ENUM_VALUE", "Location adjacent to an enum value definition."),
    ("INPUT_OBJECT", "Location adjacent to an input object type definition."),
    ("INPUT_FIELD_DEFINITION", "Location adjacent to an input object field definition."),
)

# Canonical (pg_type.typname) names mapped to GraphQL scalars; anything else is a String
SCALAR_TYPE_MAP: dict[str, str] = {
    "int2": "Int",
    "int4": "Int",
    "int8": "BigInt",
    "float4": "Float",
    "float8": "Float",
    "numeric": "Float",
    "bool": "Boolean",
    "json": "JSON",
    "jsonb": "JSON",
    "uuid": "UUID",
    "date": "DateTime",
    "time": "DateTime",
    "timetz": "DateTime",
    "timestamp": "DateTime",
    "timestamptz": "DateTime",
}

INCLUDE_DEPRECATED_TARGETS = ("__Field", "__EnumValue", "__InputValue")


def sql_type_to_graphql(type_name: str) -> str:
    """Map a canonical SQL type name to a GraphQL scalar name."""
    return SCALAR_TYPE_MAP.get(type_name, "String")


# =============================================================================
# Builder
# =============================================================================


class CatalogBuilder:
    """
    Build a ``CatalogSnapshot`` from ``RelationalMetadata``.

    The builder is deterministic: the same metadata always produces an equal
    set of types, fields, arguments, enum values and relationships.
    """

    def __init__(self, metadata: RelationalMetadata, *, default_schema: str = "public") -> None:
        self.metadata = metadata
        self.default_schema = default_schema

    def build(self, version: int = 0) -> CatalogSnapshot:
        tables = [t for t in self.metadata.tables if t.primary_key]
        for table in self.metadata.tables:
            if not table.primary_key:
                logger.debug("Skipping %s: no primary key", table.identity)

        entities = [self._entity(t) for t in tables]
        entity_by_identity = {e.identity: e for e in entities}
        tables_by_identity = {t.identity: t for t in tables}

        enum_names = {
            (e.schema, e.name): to_pascal_case(table_name_for(e.schema, e.name, self.default_schema))
            for e in self.metadata.enums
        }

        types = self._types(entities, enum_names)
        node_names = {
            t.entity.identity: t.name
            for t in types
            if t.entity is not None and t.meta_kind == MetaKind.NODE
        }
        relationships = self._relationships(entity_by_identity)
        fields = self._fields(entities, tables_by_identity, node_names, enum_names, relationships)
        args = self._args(fields, {t.name: t for t in types})
        enum_values = self._enum_values(enum_names)

        return CatalogSnapshot(
            entities=entities,
            types=types,
            fields=fields,
            args=args,
            enum_values=enum_values,
            relationships=relationships,
            version=version,
        )

    # -------------------------------------------------------------------------
    # Entities and types
    # -------------------------------------------------------------------------

    def _entity(self, table: TableInfo) -> Entity:
        primary_key = []
        for column_name in table.primary_key:
            column = table.column(column_name)
            sql_type = column.sql_type if column else "text"
            primary_key.append(PrimaryKeyColumn(name=column_name, sql_type=sql_type))
        return Entity(schema_name=table.schema, name=table.name, primary_key=tuple(primary_key))

    def _table_name(self, entity: Entity) -> str:
        return table_name_for(entity.schema_name, entity.name, self.default_schema)

    def _types(
        self, entities: list[Entity], enum_names: dict[tuple[str, str], str]
    ) -> list[CatalogType]:
        types = [
            CatalogType(name=name, type_kind=kind, meta_kind=meta, description=description)
            for name, kind, meta, description in BUILTIN_TYPES
        ]
        for entity in entities:
            base = to_pascal_case(self._table_name(entity))
            types.append(
                CatalogType(name=base, type_kind=TypeKind.OBJECT, meta_kind=MetaKind.NODE, entity=entity)
            )
            types.append(
                CatalogType(
                    name=f"{base}Edge", type_kind=TypeKind.OBJECT, meta_kind=MetaKind.EDGE, entity=entity
                )
            )
            types.append(
                CatalogType(
                    name=f"{base}Connection",
                    type_kind=TypeKind.OBJECT,
                    meta_kind=MetaKind.CONNECTION,
                    entity=entity,
                )
            )
        for name in enum_names.values():
            types.append(CatalogType(name=name, type_kind=TypeKind.ENUM, meta_kind=MetaKind.CUSTOM_SCALAR))

        seen: set[str] = set()
        for t in types:
            if t.name in seen:
                raise CompileError(f"Ambiguous type name '{t.name}'")
            seen.add(t.name)
        return types

    def _relationships(self, entity_by_identity: dict[str, Entity]) -> list[Relationship]:
        relationships: list[Relationship] = []
        for fk in self.metadata.foreign_keys:
            local = entity_by_identity.get(f"{fk.schema}.{fk.table}")
            foreign = entity_by_identity.get(f"{fk.foreign_schema}.{fk.foreign_table}")
            if local is None or foreign is None:
                continue
            relationships.append(
                Relationship(
                    constraint_name=fk.name,
                    local_entity=local,
                    local_columns=fk.columns,
                    local_cardinality=Cardinality.MANY,
                    foreign_entity=foreign,
                    foreign_columns=fk.foreign_columns,
                    foreign_cardinality=Cardinality.ONE,
                )
            )
            relationships.append(
                Relationship(
                    constraint_name=fk.name,
                    local_entity=foreign,
                    local_columns=fk.foreign_columns,
                    local_cardinality=Cardinality.ONE,
                    foreign_entity=local,
                    foreign_columns=fk.columns,
                    foreign_cardinality=Cardinality.MANY,
                )
            )
        return relationships

    # -------------------------------------------------------------------------
    # Fields
    # -------------------------------------------------------------------------

    def _fields(
        self,
        entities: list[Entity],
        tables_by_identity: dict[str, TableInfo],
        node_names: dict[str, str],
        enum_names: dict[tuple[str, str], str],
        relationships: list[Relationship],
    ) -> list[CatalogField]:
        fields = [
            CatalogField(
                parent_type=parent,
                type_name=type_name,
                name=name,
                is_not_null=not_null,
                is_array=is_array,
                is_array_not_null=array_not_null,
                description=description,
            )
            for parent, type_name, name, not_null, is_array, array_not_null, description in BUILTIN_FIELDS
        ]
        fields.append(
            CatalogField(
                parent_type="Query",
                type_name="__Type",
                name="__type",
                is_hidden_from_schema=True,
            )
        )
        fields.append(
            CatalogField(
                parent_type="Query",
                type_name="__Schema",
                name="__schema",
                is_not_null=True,
                is_hidden_from_schema=True,
            )
        )

        relationships_by_parent: dict[str, list[Relationship]] = defaultdict(list)
        for rel in relationships:
            relationships_by_parent[rel.local_entity.identity].append(rel)

        for entity in entities:
            node = node_names[entity.identity]
            edge = f"{node}Edge"
            conn = f"{node}Connection"
            table_name = self._table_name(entity)

            fields.extend(
                [
                    CatalogField(
                        parent_type=node,
                        type_name="String",
                        name="__typename",
                        is_not_null=True,
                        is_hidden_from_schema=True,
                    ),
                    CatalogField(
                        parent_type=edge,
                        type_name="String",
                        name="__typename",
                        is_not_null=True,
                        is_hidden_from_schema=True,
                    ),
                    CatalogField(
                        parent_type=conn,
                        type_name="String",
                        name="__typename",
                        is_not_null=True,
                        is_hidden_from_schema=True,
                    ),
                    CatalogField(parent_type=edge, type_name=node, name="node"),
                    CatalogField(parent_type=edge, type_name="String", name="cursor", is_not_null=True),
                    CatalogField(
                        parent_type=conn,
                        type_name=edge,
                        name="edges",
                        is_array=True,
                        is_array_not_null=False,
                    ),
                    CatalogField(parent_type=conn, type_name="PageInfo", name="pageInfo", is_not_null=True),
                    CatalogField(parent_type=conn, type_name="Int", name="totalCount", is_not_null=True),
                    CatalogField(parent_type=node, type_name="ID", name="nodeId", is_not_null=True),
                    CatalogField(parent_type="Query", type_name=node, name=to_camel_case(table_name)),
                    CatalogField(
                        parent_type="Query",
                        type_name=conn,
                        name="all" + pluralize(to_pascal_case(table_name)),
                    ),
                ]
            )

            table = tables_by_identity[entity.identity]
            column_fields = [self._column_field(node, col, enum_names) for col in table.columns]
            fields.extend(column_fields)

            reserved = {"__typename", "nodeId"} | {f.name for f in column_fields}
            fields.extend(
                self._relationship_fields(
                    node, relationships_by_parent[entity.identity], node_names, tables_by_identity, reserved
                )
            )

        seen: set[tuple[str, str]] = set()
        for f in fields:
            key = (f.parent_type, f.name)
            if key in seen:
                raise CompileError(f"Ambiguous field name '{f.name}' on type '{f.parent_type}'")
            seen.add(key)
        return fields

    def _column_field(
        self, node: str, column: ColumnInfo, enum_names: dict[tuple[str, str], str]
    ) -> CatalogField:
        if column.is_enum and (column.type_schema, column.type_name) in enum_names:
            type_name = enum_names[(column.type_schema, column.type_name)]
        else:
            type_name = sql_type_to_graphql(column.type_name)
        return CatalogField(
            parent_type=node,
            type_name=type_name,
            name=to_camel_case(column.name),
            is_not_null=column.is_not_null and not column.is_array,
            is_array=column.is_array,
            is_array_not_null=column.is_not_null and column.is_array,
            column_name=column.name,
        )

    def _relationship_fields(
        self,
        node: str,
        relationships: list[Relationship],
        node_names: dict[str, str],
        tables_by_identity: dict[str, TableInfo],
        reserved: set[str],
    ) -> list[CatalogField]:
        """
        Derive one field per relationship leaving ``node``.

        To-many relationships are named after the pluralized foreign table; a
        single-column ``<name>_id`` foreign key yields a to-one field ``<name>``.
        Names produced more than once, or equal to a column field, get a
        ``By<KeyColumns>`` suffix on every clashing relationship.
        """
        candidates: list[tuple[str, Relationship]] = []
        for rel in sorted(relationships, key=lambda r: (r.constraint_name, r.foreign_cardinality)):
            foreign_table = self._table_name(rel.foreign_entity)
            if rel.foreign_cardinality == Cardinality.MANY:
                name = pluralize(to_camel_case(foreign_table))
            elif len(rel.local_columns) == 1 and rel.local_columns[0].endswith("_id"):
                name = to_camel_case(rel.local_columns[0][:-3])
            else:
                name = to_camel_case(foreign_table)
            candidates.append((name, rel))

        counts: dict[str, int] = defaultdict(int)
        for name, _ in candidates:
            counts[name] += 1

        fields: list[CatalogField] = []
        for name, rel in candidates:
            if counts[name] > 1 or name in reserved:
                key_columns = rel.local_columns if rel.foreign_cardinality == Cardinality.ONE else rel.foreign_columns
                name = f"{name}By{to_pascal_case('_'.join(key_columns))}"

            foreign_node = node_names[rel.foreign_entity.identity]
            if rel.foreign_cardinality == Cardinality.MANY:
                type_name = f"{foreign_node}Connection"
                is_not_null = False
            else:
                type_name = foreign_node
                table = tables_by_identity[rel.local_entity.identity]
                is_not_null = all(
                    (col := table.column(c)) is not None and col.is_not_null for c in rel.local_columns
                )

            fields.append(
                CatalogField(
                    parent_type=node,
                    type_name=type_name,
                    name=name,
                    is_not_null=is_not_null,
                    parent_columns=rel.local_columns,
                    local_columns=rel.foreign_columns,
                )
            )
        return fields

    # -------------------------------------------------------------------------
    # Arguments and enum values
    # -------------------------------------------------------------------------

    def _args(self, fields: list[CatalogField], types: dict[str, CatalogType]) -> list[CatalogArg]:
        args: list[CatalogArg] = []
        for f in fields:
            base = {"field_name": f.name, "field_parent_type": f.parent_type, "field_type": f.type_name}
            target = types.get(f.type_name)

            if f.type_name in INCLUDE_DEPRECATED_TARGETS:
                args.append(
                    CatalogArg(**base, name="includeDeprecated", type_name="Boolean", default_value="false")
                )
            if f.name == "__type" and f.parent_type == "Query":
                args.append(CatalogArg(**base, name="name", type_name="String", is_not_null=True))
            if target is None:
                continue
            if target.meta_kind == MetaKind.NODE and f.parent_type == "Query":
                args.append(CatalogArg(**base, name="nodeId", type_name="ID", is_not_null=True))
            if target.meta_kind == MetaKind.CONNECTION:
                for name in ("first", "last"):
                    args.append(CatalogArg(**base, name=name, type_name="Int"))
                for name in ("before", "after"):
                    args.append(CatalogArg(**base, name=name, type_name="Cursor"))
        return args

    def _enum_values(self, enum_names: dict[tuple[str, str], str]) -> list[EnumValue]:
        values = [EnumValue(type_name="__TypeKind", value=v) for v in TYPE_KIND_VALUES]
        values.extend(
            EnumValue(type_name="__DirectiveLocation", value=v, description=d)
            for v, d in DIRECTIVE_LOCATIONS
        )
        for enum in self.metadata.enums:
            type_name = enum_names[(enum.schema, enum.name)]
            values.extend(EnumValue(type_name=type_name, value=label) for label in enum.values)
        return values


def build_catalog(
    metadata: RelationalMetadata, *, default_schema: str = "public", version: int = 0
) -> CatalogSnapshot:
    """Convenience wrapper around ``CatalogBuilder``."""
    return CatalogBuilder(metadata, default_schema=default_schema).build(version)
