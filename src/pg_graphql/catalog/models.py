"""
Catalog entry types.

The catalog describes the GraphQL schema derived from the relational store:
entities, types, fields, arguments, enum values and relationships. Every entry
is an immutable pydantic model; a full set of entries is held by a
``CatalogSnapshot``.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field


class TypeKind(StrEnum):
    """GraphQL ``__TypeKind`` values."""

    SCALAR = "SCALAR"
    OBJECT = "OBJECT"
    INTERFACE = "INTERFACE"
    UNION = "UNION"
    ENUM = "ENUM"
    INPUT_OBJECT = "INPUT_OBJECT"
    LIST = "LIST"
    NON_NULL = "NON_NULL"


class MetaKind(StrEnum):
    """Internal classification of a type, used to dispatch compilation."""

    NODE = "NODE"
    EDGE = "EDGE"
    CONNECTION = "CONNECTION"
    CUSTOM_SCALAR = "CUSTOM_SCALAR"
    PAGE_INFO = "PAGE_INFO"
    CURSOR = "CURSOR"
    QUERY = "QUERY"
    MUTATION = "MUTATION"
    BUILTIN = "BUILTIN"
    INTERFACE = "INTERFACE"
    # Introspection types
    SCHEMA = "__SCHEMA"
    TYPE = "__TYPE"
    TYPE_KIND = "__TYPE_KIND"
    FIELD = "__FIELD"
    INPUT_VALUE = "__INPUT_VALUE"
    ENUM_VALUE = "__ENUM_VALUE"
    DIRECTIVE = "__DIRECTIVE"
    DIRECTIVE_LOCATION = "__DIRECTIVE_LOCATION"


class Cardinality(StrEnum):
    """Side of a foreign key relationship."""

    ONE = "ONE"
    MANY = "MANY"


class PrimaryKeyColumn(BaseModel):
    """One primary key column and the SQL type its cursor value is cast to."""

    name: str
    sql_type: str

    model_config = ConfigDict(frozen=True)


class Entity(BaseModel):
    """A backing relation (table)."""

    schema_name: str = Field(description="Namespace the relation lives in")
    name: str = Field(description="Relation name")
    primary_key: tuple[PrimaryKeyColumn, ...] = Field(
        default=(), description="Primary key columns in key order"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def identity(self) -> str:
        """Stable textual identity, element 0 of every cursor for this entity."""
        return f"{self.schema_name}.{self.name}"


class CatalogType(BaseModel):
    """A GraphQL type."""

    name: str
    type_kind: TypeKind
    meta_kind: MetaKind
    description: str | None = None
    entity: Entity | None = None

    model_config = ConfigDict(frozen=True)


class Relationship(BaseModel):
    """
    One direction of a foreign key constraint.

    Every constraint yields two entries: the forward entry (local side holds the
    foreign key, foreign cardinality ONE) and the reverse entry (foreign
    cardinality MANY).
    """

    constraint_name: str
    local_entity: Entity
    local_columns: tuple[str, ...]
    local_cardinality: Cardinality
    foreign_entity: Entity
    foreign_columns: tuple[str, ...]
    foreign_cardinality: Cardinality

    model_config = ConfigDict(frozen=True)


class CatalogField(BaseModel):
    """
    A field of a GraphQL type.

    A field is backed by exactly one of: a column (``column_name``), a
    relationship (``parent_columns`` on the parent row joined to
    ``local_columns`` on the target row), or nothing (synthetic meta field).
    """

    parent_type: str
    type_name: str
    name: str
    is_not_null: bool = False
    is_array: bool = False
    is_array_not_null: bool | None = None
    description: str | None = None
    column_name: str | None = None
    parent_columns: tuple[str, ...] | None = None
    local_columns: tuple[str, ...] | None = None
    is_hidden_from_schema: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def is_relationship(self) -> bool:
        return self.local_columns is not None


class CatalogArg(BaseModel):
    """An argument accepted by a field on a given parent type."""

    field_name: str
    field_parent_type: str
    field_type: str
    name: str
    type_name: str
    is_not_null: bool = False
    default_value: str | None = None

    model_config = ConfigDict(frozen=True)


class EnumValue(BaseModel):
    """One value of an ENUM type."""

    type_name: str
    value: str
    description: str | None = None

    model_config = ConfigDict(frozen=True)


class CatalogSnapshot:
    """
    One consistent, read-only view of the catalog.

    Snapshots are never mutated; a schema change produces a new snapshot with a
    higher ``version``.
    """

    def __init__(
        self,
        *,
        entities: Iterable[Entity],
        types: Iterable[CatalogType],
        fields: Iterable[CatalogField],
        args: Iterable[CatalogArg],
        enum_values: Iterable[EnumValue],
        relationships: Iterable[Relationship],
        version: int = 0,
    ) -> None:
        self.entities = tuple(entities)
        self.types = tuple(types)
        self.fields = tuple(fields)
        self.args = tuple(args)
        self.enum_values = tuple(enum_values)
        self.relationships = tuple(relationships)
        self.version = version

        self._types = MappingProxyType({t.name: t for t in self.types})
        self._entity_types = MappingProxyType(
            {(t.entity.identity, t.meta_kind): t for t in self.types if t.entity is not None}
        )

        fields_by_type: dict[str, list[CatalogField]] = {}
        for f in self.fields:
            fields_by_type.setdefault(f.parent_type, []).append(f)
        self._fields_by_type = MappingProxyType(
            {name: tuple(group) for name, group in fields_by_type.items()}
        )
        self._fields = MappingProxyType({(f.parent_type, f.name): f for f in self.fields})

        args_by_field: dict[tuple[str, str], list[CatalogArg]] = {}
        for a in self.args:
            args_by_field.setdefault((a.field_parent_type, a.field_name), []).append(a)
        self._args = MappingProxyType(
            {key: tuple(sorted(group, key=lambda a: a.name)) for key, group in args_by_field.items()}
        )

        values_by_type: dict[str, list[EnumValue]] = {}
        for v in self.enum_values:
            values_by_type.setdefault(v.type_name, []).append(v)
        self._enum_values = MappingProxyType(
            {name: tuple(group) for name, group in values_by_type.items()}
        )

    def __repr__(self) -> str:
        return (
            f"CatalogSnapshot(version={self.version}, types={len(self.types)}, "
            f"fields={len(self.fields)})"
        )

    def get_type(self, name: str) -> CatalogType | None:
        return self._types.get(name)

    def type_for_entity(self, entity: Entity, meta_kind: MetaKind) -> CatalogType | None:
        """Return the NODE, EDGE or CONNECTION type backed by an entity."""
        return self._entity_types.get((entity.identity, meta_kind))

    def fields_of(self, type_name: str) -> tuple[CatalogField, ...]:
        return self._fields_by_type.get(type_name, ())

    def get_field(self, parent_type: str, name: str) -> CatalogField | None:
        return self._fields.get((parent_type, name))

    def args_of(self, parent_type: str, field_name: str) -> tuple[CatalogArg, ...]:
        """Arguments of a field, sorted by name."""
        return self._args.get((parent_type, field_name), ())

    def enum_values_of(self, type_name: str) -> tuple[EnumValue, ...]:
        return self._enum_values.get(type_name, ())
