"""Tests for settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from pg_graphql.config import GraphQLSettings, load_settings


class TestLoadSettings:
    def test_defaults_without_file(self, tmp_path):
        settings = load_settings(tmp_path / "missing.toml", environ={})

        assert settings == GraphQLSettings()
        assert settings.default_page_size == 10
        assert settings.watch_ignored_tags == ("REFRESH MATERIALIZED VIEW",)

    def test_values_from_file(self, tmp_path):
        path = tmp_path / "pg_graphql.toml"
        path.write_text(
            """
[graphql]
database_url = "postgresql://app@localhost/app"
default_schema = "app"
exclude_schemas = ["audit", "internal"]
default_page_size = 25
log_dir = "logs"

[graphql.watch]
channel = "ddl"
ignored_tags = ["COMMENT"]
"""
        )

        settings = load_settings(path, environ={})

        assert settings.database_url == "postgresql://app@localhost/app"
        assert settings.default_schema == "app"
        assert settings.exclude_schemas == ("audit", "internal")
        assert settings.default_page_size == 25
        assert settings.log_dir == Path("logs")
        assert settings.watch_channel == "ddl"
        assert settings.watch_ignored_tags == ("COMMENT",)

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "pg_graphql.toml"
        path.write_text('[graphql]\ndatabase_url = "postgresql://file/db"\nlog_level = "INFO"\n')

        settings = load_settings(
            path, environ={"DATABASE_URL": "postgresql://env/db", "PG_GRAPHQL_LOG_LEVEL": "DEBUG"}
        )

        assert settings.database_url == "postgresql://env/db"
        assert settings.log_level == "DEBUG"

    def test_other_tables_are_ignored(self, tmp_path):
        path = tmp_path / "pg_graphql.toml"
        path.write_text('[tool.other]\ndatabase_url = "postgresql://nope/db"\n')

        assert load_settings(path, environ={}).database_url is None


class TestGraphQLSettings:
    def test_settings_are_frozen(self):
        settings = GraphQLSettings()

        with pytest.raises(ValidationError):
            settings.default_page_size = 5

    def test_negative_page_size_is_rejected(self):
        with pytest.raises(ValidationError):
            GraphQLSettings(default_page_size=-1)
