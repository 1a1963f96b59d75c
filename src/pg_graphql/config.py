"""
Configuration.

Settings come from the ``[graphql]`` table of a TOML file (``pg_graphql.toml``
by default); ``DATABASE_URL`` and ``PG_GRAPHQL_LOG_LEVEL`` environment
variables override file values.

Example pg_graphql.toml:

    [graphql]
    database_url = "postgresql://app@localhost/app"
    exclude_schemas = ["audit"]
    default_page_size = 25

    [graphql.watch]
    channel = "pg_graphql_schema_change"
    ignored_tags = ["REFRESH MATERIALIZED VIEW"]
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CONFIG_FILE = "pg_graphql.toml"


class GraphQLSettings(BaseModel):
    """Runtime settings of the GraphQL engine."""

    database_url: str | None = Field(default=None, description="PostgreSQL connection URL")
    default_schema: str = Field(default="public", description="Schema whose tables keep bare names")
    exclude_schemas: tuple[str, ...] = Field(default=(), description="Schemas never exposed")
    default_page_size: int = Field(default=10, ge=0, description="Page size without first/last")
    watch_channel: str = Field(default="pg_graphql_schema_change", description="DDL notification channel")
    watch_ignored_tags: tuple[str, ...] = Field(
        default=("REFRESH MATERIALIZED VIEW",), description="Command tags that never rebuild"
    )
    log_level: str = Field(default="INFO", description="Log level name")
    log_dir: Path | None = Field(default=None, description="Directory for the JSONL log file")

    model_config = ConfigDict(frozen=True)


def load_settings(toml_path: Path | None = None, environ: Mapping[str, str] | None = None) -> GraphQLSettings:
    """
    Load settings from a TOML file and the environment.

    Args:
        toml_path: Path to the TOML file; a missing file yields defaults
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        GraphQLSettings with file values and environment overrides applied
    """
    env = os.environ if environ is None else environ
    toml_path = toml_path or Path(DEFAULT_CONFIG_FILE)

    data: dict[str, Any] = {}
    if toml_path.exists():
        with open(toml_path, "rb") as f:
            data = tomllib.load(f).get("graphql", {})

    config: dict[str, Any] = {
        key: data[key]
        for key in ("database_url", "default_schema", "exclude_schemas", "default_page_size", "log_level", "log_dir")
        if key in data
    }

    # Watch section
    if "watch" in data:
        watch_data = data["watch"]
        if "channel" in watch_data:
            config["watch_channel"] = watch_data["channel"]
        if "ignored_tags" in watch_data:
            config["watch_ignored_tags"] = tuple(watch_data["ignored_tags"])

    if env.get("DATABASE_URL"):
        config["database_url"] = env["DATABASE_URL"]
    if env.get("PG_GRAPHQL_LOG_LEVEL"):
        config["log_level"] = env["PG_GRAPHQL_LOG_LEVEL"]

    return GraphQLSettings(**config)
