"""
Introspection resolver.

Answers ``__schema`` and ``__type`` from the catalog alone, applying the same
visibility rules as query compilation. Type modifiers are rebuilt from each
field's nullability and list flags as a ``NON_NULL``/``LIST`` chain linked
through ``ofType``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from pg_graphql.authz import Visibility
from pg_graphql.catalog.models import CatalogArg, CatalogField, CatalogType, EnumValue, TypeKind
from pg_graphql.document import AstNode, arguments, field_name, response_key, selections, value_from_ast
from pg_graphql.errors import CompileError, UnknownFieldError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypeRef:
    """A named type with the modifiers a field or argument applies to it."""

    type: CatalogType
    is_not_null: bool = False
    is_array: bool = False
    is_array_not_null: bool = False

    @property
    def kind(self) -> TypeKind:
        if self.is_array_not_null:
            return TypeKind.NON_NULL
        if self.is_array:
            return TypeKind.LIST
        if self.is_not_null:
            return TypeKind.NON_NULL
        return self.type.type_kind

    @property
    def is_named(self) -> bool:
        return not (self.is_array_not_null or self.is_array or self.is_not_null)

    def of_type(self) -> TypeRef | None:
        """The type this modifier wraps, None for a bare named type."""
        if self.is_array_not_null:
            return replace(self, is_array_not_null=False)
        if self.is_array:
            return replace(self, is_array=False)
        if self.is_not_null:
            return replace(self, is_not_null=False)
        return None


class IntrospectionResolver:
    """
    Resolve one introspection root field to its JSON value.

    Args:
        visibility: Visibility predicate bound to a snapshot and role
        variables: Request variables, for ``__type(name: $name)``
    """

    def __init__(self, visibility: Visibility, variables: Mapping[str, Any] | None = None) -> None:
        self.visibility = visibility
        self.snapshot = visibility.snapshot
        self.variables = variables or {}

    def resolve(self, selection: AstNode) -> Any:
        name = field_name(selection)
        if name == "__schema":
            return self._schema(selection)
        if name == "__type":
            args = arguments(selection)
            if "name" not in args:
                raise CompileError("Argument 'name' of type 'String!' is required on field 'Query.__type'")
            type_name = value_from_ast(args["name"], self.variables)
            type_ = self.snapshot.get_type(type_name) if isinstance(type_name, str) else None
            if type_ is None or not self.visibility.type_visible(type_):
                return None
            return self._type(TypeRef(type_), selection)
        raise UnknownFieldError(name, "Query")

    def _check(self, parent_type: str, selection: AstNode) -> str:
        name = field_name(selection)
        if name == "__typename":
            return name
        if self.visibility.lookup_field(parent_type, name) is None:
            raise UnknownFieldError(name, parent_type)
        return name

    # -------------------------------------------------------------------------
    # __Schema
    # -------------------------------------------------------------------------

    def _schema(self, selection: AstNode) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for sub in selections(selection):
            name = self._check("__Schema", sub)
            key = response_key(sub)
            match name:
                case "__typename":
                    result[key] = "__Schema"
                case "description":
                    result[key] = None
                case "types":
                    visible = sorted(
                        (t for t in self.snapshot.types if self.visibility.type_visible(t)),
                        key=lambda t: t.name,
                    )
                    result[key] = [self._type(TypeRef(t), sub) for t in visible]
                case "queryType":
                    query = self.snapshot.get_type("Query")
                    result[key] = self._type(TypeRef(query), sub) if query is not None else None
                case "mutationType" | "subscriptionType":
                    result[key] = None
                case "directives":
                    result[key] = []
                case _:
                    raise UnknownFieldError(name, "__Schema")
        return result

    # -------------------------------------------------------------------------
    # __Type
    # -------------------------------------------------------------------------

    def _type(self, ref: TypeRef, selection: AstNode) -> dict[str, Any]:
        result: dict[str, Any] = {}
        named = ref.is_named
        for sub in selections(selection):
            name = self._check("__Type", sub)
            key = response_key(sub)
            match name:
                case "__typename":
                    result[key] = "__Type"
                case "kind":
                    result[key] = ref.kind.value
                case "name":
                    result[key] = ref.type.name if named else None
                case "description":
                    result[key] = ref.type.description if named else None
                case "specifiedByURL":
                    result[key] = None
                case "fields":
                    if named and ref.type.type_kind == TypeKind.OBJECT:
                        result[key] = [self._field(f, sub) for f in self._visible_fields(ref.type.name)]
                    else:
                        result[key] = None
                case "interfaces":
                    result[key] = [] if named and ref.type.type_kind == TypeKind.OBJECT else None
                case "possibleTypes" | "inputFields":
                    result[key] = None
                case "enumValues":
                    if named and ref.type.type_kind == TypeKind.ENUM:
                        values = self.snapshot.enum_values_of(ref.type.name)
                        result[key] = [
                            self._enum_value(v, sub) for v in values if self.visibility.enum_value_visible(v)
                        ]
                    else:
                        result[key] = None
                case "ofType":
                    inner = ref.of_type()
                    result[key] = self._type(inner, sub) if inner is not None else None
                case _:
                    raise UnknownFieldError(name, "__Type")
        return result

    def _visible_fields(self, type_name: str) -> list[CatalogField]:
        return [
            f
            for f in self.snapshot.fields_of(type_name)
            if not f.is_hidden_from_schema and self.visibility.field_visible(f)
        ]

    # -------------------------------------------------------------------------
    # __Field, __InputValue, __EnumValue
    # -------------------------------------------------------------------------

    def _field(self, field: CatalogField, selection: AstNode) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for sub in selections(selection):
            name = self._check("__Field", sub)
            key = response_key(sub)
            match name:
                case "__typename":
                    result[key] = "__Field"
                case "name":
                    result[key] = field.name
                case "description":
                    result[key] = field.description
                case "isDeprecated":
                    result[key] = False
                case "deprecationReason":
                    result[key] = None
                case "args":
                    args = self.snapshot.args_of(field.parent_type, field.name)
                    result[key] = [self._input_value(a, sub) for a in args if self.visibility.arg_visible(a)]
                case "type":
                    target = self.snapshot.get_type(field.type_name)
                    if target is None:
                        raise CompileError(f"Type '{field.type_name}' not found in catalog")
                    ref = TypeRef(
                        target,
                        is_not_null=field.is_not_null,
                        is_array=field.is_array,
                        is_array_not_null=bool(field.is_array_not_null),
                    )
                    result[key] = self._type(ref, sub)
                case _:
                    raise UnknownFieldError(name, "__Field")
        return result

    def _input_value(self, arg: CatalogArg, selection: AstNode) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for sub in selections(selection):
            name = self._check("__InputValue", sub)
            key = response_key(sub)
            match name:
                case "__typename":
                    result[key] = "__InputValue"
                case "name":
                    result[key] = arg.name
                case "description":
                    result[key] = None
                case "defaultValue":
                    result[key] = arg.default_value
                case "isDeprecated":
                    result[key] = False
                case "deprecationReason":
                    result[key] = None
                case "type":
                    target = self.snapshot.get_type(arg.type_name)
                    if target is None:
                        raise CompileError(f"Type '{arg.type_name}' not found in catalog")
                    result[key] = self._type(TypeRef(target, is_not_null=arg.is_not_null), sub)
                case _:
                    raise UnknownFieldError(name, "__InputValue")
        return result

    def _enum_value(self, value: EnumValue, selection: AstNode) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for sub in selections(selection):
            name = self._check("__EnumValue", sub)
            key = response_key(sub)
            match name:
                case "__typename":
                    result[key] = "__EnumValue"
                case "name":
                    result[key] = value.value
                case "description":
                    result[key] = value.description
                case "isDeprecated":
                    result[key] = False
                case "deprecationReason":
                    result[key] = None
                case _:
                    raise UnknownFieldError(name, "__EnumValue")
        return result
