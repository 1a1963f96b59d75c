"""
AST compiler: turns a normalized GraphQL selection into one SQL statement.

Example:
    compiled = compile_query(snapshot, visibility, normalize(parse_document(text)))
    compiled.sql          # 'select (select jsonb_build_object(...) ...) as "result"'
    compiled.param_names  # ('after', 'first')
"""

from pg_graphql.authz import Visibility
from pg_graphql.catalog.models import CatalogSnapshot
from pg_graphql.compiler.builders import CompiledQuery, build_connection, build_node, compile_root
from pg_graphql.compiler.context import AliasGenerator, CompileContext, RowScope
from pg_graphql.document import NormalizedDocument, field_name
from pg_graphql.errors import UnknownFieldError

__all__ = [
    "AliasGenerator",
    "CompileContext",
    "CompiledQuery",
    "RowScope",
    "build_connection",
    "build_node",
    "compile_query",
    "compile_root",
]


def compile_query(
    snapshot: CatalogSnapshot,
    visibility: Visibility,
    document: NormalizedDocument,
    page_size: int = 10,
) -> CompiledQuery:
    """Compile the root selection of a normalized document."""
    ctx = CompileContext(
        snapshot=snapshot, visibility=visibility, variables=document.variables, page_size=page_size
    )
    name = field_name(document.root)
    field = visibility.lookup_field("Query", name)
    if field is None:
        raise UnknownFieldError(name, "Query")
    return compile_root(ctx, document.root, field)
