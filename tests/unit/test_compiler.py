"""
Unit tests for the AST compiler.

These check the shape of the generated SQL; execution against a live
database is covered by the integration suite.
"""

import pytest

from pg_graphql.authz import StaticPrivilegeOracle, Visibility
from pg_graphql.compiler import AliasGenerator, compile_query
from pg_graphql.cursor import encode_cursor
from pg_graphql.document import normalize, parse_document
from pg_graphql.errors import CompileError, CursorDecodeError, UnknownFieldError


def _compile(snapshot, visibility, text, page_size=10):
    return compile_query(snapshot, visibility, normalize(parse_document(text)), page_size=page_size)


class TestAliasGenerator:
    def test_aliases_are_monotonic(self):
        aliases = AliasGenerator()

        assert [aliases.next() for _ in range(3)] == ["t1", "t2", "t3"]


class TestConnection:
    def test_default_page(self, snapshot, visibility):
        compiled = _compile(snapshot, visibility, "{ allAccounts { totalCount edges { node { id email } } } }")

        assert compiled.sql.startswith("select (select jsonb_build_object(")
        assert compiled.sql.endswith('as "result"')
        assert 'from "public"."account" as "t1"' in compiled.sql
        assert 'order by "t1"."id" asc limit 10' in compiled.sql
        assert "'totalCount', (select count(*) from \"public\".\"account\"" in compiled.sql
        assert "coalesce(jsonb_agg(" in compiled.sql
        assert "'[]'::jsonb" in compiled.sql
        assert compiled.param_names == ()

    def test_page_selects_referenced_columns(self, snapshot, visibility):
        compiled = _compile(snapshot, visibility, "{ allAccounts { edges { node { email } } } }")

        assert '"t1"."id" as "id"' in compiled.sql
        assert '"t1"."email" as "email"' in compiled.sql
        assert '"t1"."status"' not in compiled.sql

    def test_configured_page_size(self, snapshot, visibility):
        compiled = _compile(snapshot, visibility, "{ allAccounts { totalCount } }", page_size=25)

        assert "limit 25" in compiled.sql

    def test_connection_without_aggregates_is_one_row(self, snapshot, visibility):
        compiled = _compile(snapshot, visibility, "{ allAccounts { __typename totalCount } }")

        assert compiled.sql.endswith('as "t2" group by ()) as "result"')

    def test_first_literal(self, snapshot, visibility):
        compiled = _compile(snapshot, visibility, "{ allAccounts(first: 3) { totalCount } }")

        assert "limit 3" in compiled.sql

    def test_last_pages_backward(self, snapshot, visibility):
        compiled = _compile(snapshot, visibility, "{ allAccounts(last: 2) { edges { cursor } } }")

        assert 'order by "t1"."id" desc limit 2' in compiled.sql
        # Edges are still aggregated in ascending key order
        assert 'order by "t2"."id" asc' in compiled.sql

    def test_variables_become_parameters(self, snapshot, visibility):
        compiled = _compile(
            snapshot,
            visibility,
            "query Page($first: Int, $after: Cursor) { allAccounts(first: $first, after: $after) { totalCount } }",
        )

        assert compiled.param_names == ("after", "first")
        assert "coalesce(($2)::int, 10)" in compiled.sql
        assert "($1 is null or row(" in compiled.sql
        assert "decode($1, 'base64')" in compiled.sql

    def test_literal_cursor_is_inlined_with_key_casts(self, snapshot, visibility):
        after = encode_cursor("public.account", [3])
        compiled = _compile(snapshot, visibility, f'{{ allAccounts(after: "{after}") {{ totalCount }} }}')

        assert "('public.account')::text" in compiled.sql
        assert "('3')::integer" in compiled.sql
        assert "row('public.account'::text, \"t1\".\"id\") > row(" in compiled.sql

    def test_page_info(self, snapshot, visibility):
        compiled = _compile(
            snapshot,
            visibility,
            "{ allAccounts { pageInfo { hasNextPage hasPreviousPage startCursor endCursor } } }",
        )

        assert "'hasNextPage', coalesce(" in compiled.sql
        assert "'startCursor', (array_agg(" in compiled.sql

    def test_aliases_are_response_keys(self, snapshot, visibility):
        compiled = _compile(snapshot, visibility, "{ allAccounts { count: totalCount } }")

        assert "'count', (select count(*)" in compiled.sql

    def test_typename(self, snapshot, visibility):
        compiled = _compile(snapshot, visibility, "{ allAccounts { __typename edges { __typename } } }")

        assert "'__typename', 'AccountConnection'" in compiled.sql
        assert "'__typename', 'AccountEdge'" in compiled.sql


class TestNode:
    def test_node_by_id(self, snapshot, visibility):
        node_id = encode_cursor("public.account", [1])
        compiled = _compile(snapshot, visibility, f'{{ account(nodeId: "{node_id}") {{ id nodeId }} }}')

        assert 'from "public"."account" as "t1" where row(' in compiled.sql
        assert "limit 1" in compiled.sql
        assert "'nodeId', translate(encode(convert_to(" in compiled.sql

    def test_node_id_is_required(self, snapshot, visibility):
        with pytest.raises(CompileError, match="Argument 'nodeId'"):
            _compile(snapshot, visibility, "{ account { id } }")

    def test_to_one_relationship_joins_parent(self, snapshot, visibility):
        compiled = _compile(snapshot, visibility, "{ allBlogs { edges { node { owner { email } } } } }")

        assert 'from "public"."account" as "t3" where "t3"."id" = "t2"."owner_id" limit 1' in compiled.sql
        assert '"t1"."owner_id" as "owner_id"' in compiled.sql

    def test_to_many_relationship(self, snapshot, visibility):
        compiled = _compile(
            snapshot, visibility, "{ allAccounts { edges { node { blogs(first: 2) { totalCount } } } } }"
        )

        assert '"owner_id" = "t2"."id"' in compiled.sql
        assert "limit 2" in compiled.sql


class TestDeterminism:
    def test_same_query_compiles_to_same_text(self, snapshot, visibility):
        text = "query($after: Cursor) { allBlogs(after: $after) { edges { cursor node { name owner { email } } } } }"

        assert _compile(snapshot, visibility, text) == _compile(snapshot, visibility, text)


class TestErrors:
    def test_unknown_root_field(self, snapshot, visibility):
        with pytest.raises(UnknownFieldError, match="Unknown field 'nope' on type 'Query'"):
            _compile(snapshot, visibility, "{ nope { id } }")

    def test_unknown_nested_field(self, snapshot, visibility):
        with pytest.raises(UnknownFieldError, match="Unknown field 'x' on type 'Account'"):
            _compile(snapshot, visibility, "{ allAccounts { edges { node { x } } } }")

    def test_hidden_column_looks_unknown(self, snapshot):
        visibility = Visibility(snapshot, StaticPrivilegeOracle({"public.account": ["id"]}))

        with pytest.raises(UnknownFieldError, match="Unknown field 'email' on type 'Account'"):
            _compile(snapshot, visibility, "{ allAccounts { edges { node { email } } } }")

    def test_unknown_argument(self, snapshot, visibility):
        with pytest.raises(CompileError, match="Unknown argument 'offset'"):
            _compile(snapshot, visibility, "{ allAccounts(offset: 3) { totalCount } }")

    def test_first_and_last_together(self, snapshot, visibility):
        with pytest.raises(CompileError, match="'first' and 'last' cannot be used together"):
            _compile(snapshot, visibility, "{ allAccounts(first: 1, last: 1) { totalCount } }")

    def test_negative_first(self, snapshot, visibility):
        with pytest.raises(CompileError, match="non-negative integer"):
            _compile(snapshot, visibility, "{ allAccounts(first: -1) { totalCount } }")

    def test_undeclared_variable(self, snapshot, visibility):
        with pytest.raises(CompileError, match=r"Variable '\$n' is not defined"):
            _compile(snapshot, visibility, "{ allAccounts(first: $n) { totalCount } }")

    def test_malformed_literal_cursor(self, snapshot, visibility):
        with pytest.raises(CursorDecodeError):
            _compile(snapshot, visibility, '{ allAccounts(after: "not a cursor") { totalCount } }')

    def test_cursor_with_wrong_arity(self, snapshot, visibility):
        after = encode_cursor("public.account", [1, 2])

        with pytest.raises(CursorDecodeError, match="wrong number of key values"):
            _compile(snapshot, visibility, f'{{ allAccounts(after: "{after}") {{ totalCount }} }}')

    def test_introspection_root_is_not_compiled(self, snapshot, visibility):
        with pytest.raises(CompileError, match="cannot be compiled"):
            _compile(snapshot, visibility, "{ __schema { queryType { name } } }")
