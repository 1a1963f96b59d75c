"""
HTTP surface.

``POST /graphql`` accepts ``{"query": ..., "variables": {...}}`` and always
answers 200 with the ``{"data", "errors"}`` envelope; a body without ``query``
is rejected with 422 by request validation. ``GET /health`` reports liveness.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, FastAPI
from pydantic import BaseModel, Field

from pg_graphql.engine import ResolutionEngine


class GraphQLRequest(BaseModel):
    """A GraphQL-over-HTTP request body."""

    query: str
    variables: dict[str, Any] | None = None
    operation_name: str | None = Field(default=None, alias="operationName")


class GraphQLResponse(BaseModel):
    data: Any = None
    errors: list[str] = Field(default_factory=list)


def create_graphql_router(engine_factory: Callable[[], ResolutionEngine]) -> APIRouter:
    """
    Create the GraphQL router.

    The engine is created on first use. An engine owns one session, so
    requests are serialized through it.
    """
    router = APIRouter(tags=["GraphQL"])
    lock = threading.Lock()
    holder: dict[str, ResolutionEngine] = {}

    @router.post("/graphql", response_model=GraphQLResponse)
    def graphql_endpoint(request: GraphQLRequest) -> dict[str, Any]:
        with lock:
            if "engine" not in holder:
                holder["engine"] = engine_factory()
            return holder["engine"].resolve(request.query, request.variables)

    return router


def create_app(engine_factory: Callable[[], ResolutionEngine]) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        engine_factory: Callable returning the engine that serves requests

    Example:
        >>> runtime = EngineRuntime(load_settings())
        >>> app = create_app(lambda: runtime.engine)
        >>> # Run with uvicorn: uvicorn mymodule:app
    """
    app = FastAPI(title="pg-graphql", description="GraphQL API compiled to PostgreSQL")
    app.include_router(create_graphql_router(engine_factory))

    @app.get("/health", tags=["System"])
    def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app
