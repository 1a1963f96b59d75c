"""
GraphQL document handling.

Parsing is delegated to graphql-core; the resulting AST is converted to a plain
dict tree (``graphql.utilities.ast_to_dict``) which the rest of the engine
walks. This module normalizes that tree before compilation: location metadata
is stripped, fragments are inlined and the operation root is selected.

Node kinds follow graphql-core's snake_case naming (``field``,
``fragment_spread``, ``operation_definition``...).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from graphql import GraphQLSyntaxError, parse
from graphql.utilities import ast_to_dict

from pg_graphql.errors import CompileError, ParseError

logger = logging.getLogger(__name__)

AstNode = dict[str, Any]


@dataclass(frozen=True)
class VariableDefinition:
    """A variable declared by the operation."""

    name: str
    type_text: str
    default_value: Any = None
    has_default: bool = False


@dataclass(frozen=True)
class NormalizedDocument:
    """An operation ready for dispatch: fragments inlined, root field selected."""

    operation: AstNode
    root: AstNode
    variables: tuple[VariableDefinition, ...] = field(default_factory=tuple)


# =============================================================================
# Parsing
# =============================================================================


def parse_document(text: str) -> AstNode:
    """
    Parse query text into a dict tree (with locations).

    Raises:
        ParseError: the text is not a syntactically valid GraphQL document
    """
    try:
        node = parse(text)
    except GraphQLSyntaxError as e:
        raise ParseError(e.message) from e
    return ast_to_dict(node, locations=True)


def strip_locations(node: Any) -> Any:
    """Return a copy of the tree without ``loc`` entries."""
    if isinstance(node, dict):
        return {k: strip_locations(v) for k, v in node.items() if k != "loc"}
    if isinstance(node, list):
        return [strip_locations(item) for item in node]
    return node


# =============================================================================
# Fragments
# =============================================================================


def inline_fragments(document: AstNode) -> AstNode:
    """
    Replace every fragment spread and inline fragment with its selections.

    The returned document contains only operation definitions.

    Raises:
        CompileError: a fragment is unknown or (transitively) spreads itself
    """
    fragments = {
        d["name"]["value"]: d
        for d in document.get("definitions", [])
        if d["kind"] == "fragment_definition"
    }
    definitions = []
    for definition in document.get("definitions", []):
        if definition["kind"] != "operation_definition":
            continue
        definitions.append(
            {
                **definition,
                "selection_set": _inline_selection_set(definition["selection_set"], fragments, ()),
            }
        )
    return {**document, "definitions": definitions}


def _inline_selection_set(
    selection_set: AstNode | None, fragments: Mapping[str, AstNode], stack: tuple[str, ...]
) -> AstNode | None:
    if selection_set is None:
        return None
    return {**selection_set, "selections": _inline_selections(selection_set["selections"], fragments, stack)}


def _inline_selections(
    selections: list[AstNode], fragments: Mapping[str, AstNode], stack: tuple[str, ...]
) -> list[AstNode]:
    result: list[AstNode] = []
    for selection in selections:
        kind = selection["kind"]
        if kind == "field":
            result.append(
                {
                    **selection,
                    "selection_set": _inline_selection_set(selection.get("selection_set"), fragments, stack),
                }
            )
        elif kind == "fragment_spread":
            name = selection["name"]["value"]
            if name in stack:
                raise CompileError(f"Fragment '{name}' cannot spread itself")
            fragment = fragments.get(name)
            if fragment is None:
                raise CompileError(f"Unknown fragment '{name}'")
            result.extend(_inline_selections(fragment["selection_set"]["selections"], fragments, (*stack, name)))
        elif kind == "inline_fragment":
            result.extend(_inline_selections(selection["selection_set"]["selections"], fragments, stack))
        else:
            raise CompileError(f"Unsupported selection kind '{kind}'")
    return result


# =============================================================================
# Operation
# =============================================================================


def operation_root(document: AstNode) -> tuple[AstNode, AstNode]:
    """Return ``(operation, root_field)``: the first operation and its first selection."""
    for definition in document.get("definitions", []):
        if definition["kind"] != "operation_definition":
            continue
        operation_type = definition.get("operation", "query")
        if operation_type != "query":
            raise CompileError(f"Unsupported operation type '{operation_type}'")
        selections = definition["selection_set"]["selections"]
        if not selections:
            raise CompileError("Operation has no selections")
        return definition, selections[0]
    raise CompileError("Document contains no operation")


def variable_definitions(operation: AstNode) -> tuple[VariableDefinition, ...]:
    """Variables declared by the operation, sorted by name."""
    result = []
    for definition in operation.get("variable_definitions") or []:
        default = definition.get("default_value")
        result.append(
            VariableDefinition(
                name=definition["variable"]["name"]["value"],
                type_text=type_to_text(definition["type"]),
                default_value=value_from_ast(default) if default is not None else None,
                has_default=default is not None,
            )
        )
    return tuple(sorted(result, key=lambda v: v.name))


def normalize(document: AstNode) -> NormalizedDocument:
    """Strip locations, inline fragments and select the operation root."""
    inlined = inline_fragments(strip_locations(document))
    operation, root = operation_root(inlined)
    return NormalizedDocument(operation=operation, root=root, variables=variable_definitions(operation))


# =============================================================================
# Node helpers
# =============================================================================


def type_to_text(type_node: AstNode) -> str:
    """Render a type reference node as GraphQL text (``[Int!]!``)."""
    kind = type_node["kind"]
    if kind == "non_null_type":
        return type_to_text(type_node["type"]) + "!"
    if kind == "list_type":
        return "[" + type_to_text(type_node["type"]) + "]"
    return type_node["name"]["value"]


def value_from_ast(node: AstNode, variables: Mapping[str, Any] | None = None) -> Any:
    """
    Convert a value node to a Python value.

    Variable references are looked up in ``variables``; without a mapping they
    are a ``CompileError`` (a variable is not allowed in a default value).
    """
    kind = node["kind"]
    if kind == "int_value":
        return int(node["value"])
    if kind == "float_value":
        return float(node["value"])
    if kind in ("string_value", "enum_value", "boolean_value"):
        return node["value"]
    if kind == "null_value":
        return None
    if kind == "list_value":
        return [value_from_ast(v, variables) for v in node["values"]]
    if kind == "object_value":
        return {f["name"]["value"]: value_from_ast(f["value"], variables) for f in node["fields"]}
    if kind == "variable":
        name = node["name"]["value"]
        if variables is None:
            raise CompileError(f"Variable '${name}' is not allowed here")
        return variables.get(name)
    raise CompileError(f"Unsupported value kind '{kind}'")


def field_name(selection: AstNode) -> str:
    return selection["name"]["value"]


def response_key(selection: AstNode) -> str:
    """The key a field's value is returned under: its alias, else its name."""
    alias = selection.get("alias")
    if alias:
        return alias["value"]
    return field_name(selection)


def arguments(selection: AstNode) -> dict[str, AstNode]:
    """Argument value nodes of a field, by argument name."""
    return {arg["name"]["value"]: arg["value"] for arg in selection.get("arguments") or []}


def selections(selection: AstNode) -> list[AstNode]:
    selection_set = selection.get("selection_set")
    if not selection_set:
        return []
    return selection_set["selections"]
