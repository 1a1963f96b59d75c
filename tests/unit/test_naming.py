"""Tests for name derivation helpers."""

import pytest

from pg_graphql.naming import pluralize, sanitize_name, table_name_for, to_camel_case, to_pascal_case


class TestCaseConversion:
    @pytest.mark.parametrize(
        "name,expected",
        [("account", "Account"), ("blog_post", "BlogPost"), ("API_key", "ApiKey")],
    )
    def test_pascal_case(self, name, expected):
        assert to_pascal_case(name) == expected

    @pytest.mark.parametrize(
        "name,expected",
        [("created_at", "createdAt"), ("id", "id"), ("blog_post", "blogPost")],
    )
    def test_camel_case(self, name, expected):
        assert to_camel_case(name) == expected


class TestPluralize:
    @pytest.mark.parametrize(
        "word,expected",
        [
            ("blog", "blogs"),
            ("blogPost", "blogPosts"),
            ("category", "categories"),
            ("day", "days"),
            ("box", "boxes"),
            ("person", "people"),
            ("Person", "People"),
            ("address", "addresses"),
        ],
    )
    def test_pluralize(self, word, expected):
        assert pluralize(word) == expected


class TestTableName:
    def test_default_schema_keeps_bare_name(self):
        assert table_name_for("public", "account") == "account"

    def test_other_schema_is_prefixed(self):
        assert table_name_for("billing", "invoice") == "billing_invoice"

    def test_invalid_characters_are_replaced(self):
        assert sanitize_name("order-items 2") == "order_items_2"
