"""
pg-graphql: expose a PostgreSQL schema as a GraphQL API.

Each GraphQL query is compiled into one SQL statement, prepared once per role
and query text, and executed with the request's variables.

Example:
    from pg_graphql import EngineRuntime, load_settings

    with EngineRuntime(load_settings()) as runtime:
        runtime.engine.resolve("{ allAccounts { totalCount } }")
"""

from pg_graphql.config import GraphQLSettings, load_settings
from pg_graphql.cursor import decode_cursor, encode_cursor
from pg_graphql.engine import ResolutionEngine, Stage
from pg_graphql.errors import (
    CompileError,
    CursorDecodeError,
    ExecuteError,
    GraphQLEngineError,
    ParseError,
    PrepareError,
    UnknownFieldError,
)
from pg_graphql.runtime import EngineRuntime

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Engine
    "EngineRuntime",
    "ResolutionEngine",
    "Stage",
    # Configuration
    "GraphQLSettings",
    "load_settings",
    # Cursors
    "decode_cursor",
    "encode_cursor",
    # Errors
    "CompileError",
    "CursorDecodeError",
    "ExecuteError",
    "GraphQLEngineError",
    "ParseError",
    "PrepareError",
    "UnknownFieldError",
]
