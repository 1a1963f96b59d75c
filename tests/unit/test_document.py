"""Tests for parsing and normalizing GraphQL documents."""

import pytest

from pg_graphql.document import (
    field_name,
    inline_fragments,
    normalize,
    parse_document,
    response_key,
    selections,
    strip_locations,
    type_to_text,
    value_from_ast,
    variable_definitions,
)
from pg_graphql.errors import CompileError, ParseError


def _names(selection):
    return [field_name(s) for s in selections(selection)]


class TestParse:
    def test_returns_dict_tree_with_locations(self):
        document = parse_document("{ allAccounts { totalCount } }")

        assert document["kind"] == "document"
        assert "loc" in document

    def test_syntax_error(self):
        with pytest.raises(ParseError, match="Syntax Error"):
            parse_document("{ allAccounts { ")

    def test_strip_locations(self):
        stripped = strip_locations(parse_document("{ a { b } }"))

        assert "loc" not in stripped
        operation = stripped["definitions"][0]
        assert "loc" not in operation
        assert "loc" not in operation["selection_set"]["selections"][0]


class TestFragments:
    def test_named_fragment_is_inlined(self):
        document = parse_document(
            """
            { allAccounts { edges { node { ...AccountFields } } } }
            fragment AccountFields on Account { id email }
            """
        )
        normalized = normalize(document)
        node = selections(selections(normalized.root)[0])[0]

        assert _names(node) == ["id", "email"]

    def test_nested_fragments(self):
        document = parse_document(
            """
            { account(nodeId: "x") { ...A } }
            fragment A on Account { id ...B }
            fragment B on Account { email }
            """
        )

        assert _names(normalize(document).root) == ["id", "email"]

    def test_inline_fragment_is_flattened(self):
        document = parse_document('{ account(nodeId: "x") { id ... on Account { email } } }')

        assert _names(normalize(document).root) == ["id", "email"]

    def test_fragment_definitions_are_dropped(self):
        document = strip_locations(parse_document("{ a { ...F } } fragment F on T { b }"))

        assert [d["kind"] for d in inline_fragments(document)["definitions"]] == ["operation_definition"]

    def test_self_spread_is_rejected(self):
        document = parse_document("{ a { ...F } } fragment F on T { b ...F }")

        with pytest.raises(CompileError, match="Fragment 'F' cannot spread itself"):
            normalize(document)

    def test_indirect_cycle_is_rejected(self):
        document = parse_document("{ a { ...F } } fragment F on T { ...G } fragment G on T { ...F }")

        with pytest.raises(CompileError, match="cannot spread itself"):
            normalize(document)

    def test_unknown_fragment(self):
        with pytest.raises(CompileError, match="Unknown fragment 'Missing'"):
            normalize(parse_document("{ a { ...Missing } }"))


class TestOperation:
    def test_root_is_first_selection(self):
        normalized = normalize(parse_document("{ first: allAccounts { totalCount } allBlogs { totalCount } }"))

        assert field_name(normalized.root) == "allAccounts"
        assert response_key(normalized.root) == "first"

    def test_mutation_is_rejected(self):
        with pytest.raises(CompileError, match="mutation"):
            normalize(parse_document("mutation { createAccount { id } }"))

    def test_variable_definitions_sorted_by_name(self):
        document = strip_locations(
            parse_document('query Q($z: Int = 5, $after: Cursor, $id: ID!) { account(nodeId: $id) { id } }')
        )
        variables = variable_definitions(document["definitions"][0])

        assert [v.name for v in variables] == ["after", "id", "z"]
        assert [v.type_text for v in variables] == ["Cursor", "ID!", "Int"]
        assert variables[2].default_value == 5
        assert variables[2].has_default
        assert not variables[0].has_default


class TestValues:
    def test_literals(self):
        document = strip_locations(
            parse_document('{ f(a: 1, b: 1.5, c: "x", d: true, e: null, g: RED, h: [1, 2], i: {k: "v"}) }')
        )
        args = document["definitions"][0]["selection_set"]["selections"][0]["arguments"]
        values = {a["name"]["value"]: value_from_ast(a["value"]) for a in args}

        assert values == {
            "a": 1,
            "b": 1.5,
            "c": "x",
            "d": True,
            "e": None,
            "g": "RED",
            "h": [1, 2],
            "i": {"k": "v"},
        }

    def test_variable_lookup(self):
        node = {"kind": "variable", "name": {"kind": "name", "value": "n"}}

        assert value_from_ast(node, {"n": "Account"}) == "Account"
        with pytest.raises(CompileError):
            value_from_ast(node)

    def test_type_to_text(self):
        node = {
            "kind": "non_null_type",
            "type": {
                "kind": "list_type",
                "type": {"kind": "named_type", "name": {"kind": "name", "value": "Int"}},
            },
        }

        assert type_to_text(node) == "[Int]!"
