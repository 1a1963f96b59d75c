"""
pg-graphql command line.

Commands:
- resolve:       Resolve one query and print the response envelope
- schema:        List the types and fields visible to the connecting role
- install-watch: Install the DDL event trigger used by ``watch``
- watch:         Rebuild the catalog on every schema change (foreground)
- serve:         Serve the GraphQL endpoint over HTTP
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from pg_graphql.authz import PostgresPrivilegeOracle, Visibility
from pg_graphql.catalog.watcher import SchemaWatcher, install_schema_watch
from pg_graphql.config import DEFAULT_CONFIG_FILE, GraphQLSettings, load_settings
from pg_graphql.executor import connect
from pg_graphql.logging import setup_logging
from pg_graphql.runtime import EngineRuntime

app = typer.Typer(
    help="Expose a PostgreSQL schema as a GraphQL API",
    no_args_is_help=True,
)

console = Console()

ConfigOption = typer.Option(
    Path(DEFAULT_CONFIG_FILE),
    "--config",
    "-c",
    help="TOML file with a [graphql] table",
)


def _settings(config: Path) -> GraphQLSettings:
    settings = load_settings(config)
    setup_logging(settings.log_dir, settings.log_level)
    _database_url(settings)
    return settings


def _database_url(settings: GraphQLSettings) -> str:
    if not settings.database_url:
        console.print("[red]No database configured: set DATABASE_URL or graphql.database_url[/red]")
        raise typer.Exit(1)
    return settings.database_url


@app.command(name="resolve")
def resolve_command(
    query: str = typer.Argument(None, help="GraphQL query text"),
    variables: str = typer.Option(None, "--variables", "-v", help="Variables as a JSON object"),
    file: Path = typer.Option(None, "--file", "-f", help="Read the query from a file"),
    config: Path = ConfigOption,
) -> None:
    """Resolve a query and print the response envelope."""
    if file is not None:
        query = file.read_text(encoding="utf-8")
    if not query:
        console.print("[red]Provide a query or --file[/red]")
        raise typer.Exit(1)

    parsed_variables: dict[str, Any] = {}
    if variables:
        try:
            parsed_variables = json.loads(variables)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid --variables JSON: {e}[/red]")
            raise typer.Exit(1)
        if not isinstance(parsed_variables, dict):
            console.print("[red]--variables must be a JSON object[/red]")
            raise typer.Exit(1)

    with EngineRuntime(_settings(config)) as runtime:
        result = runtime.engine.resolve(query, parsed_variables)

    console.print_json(json.dumps(result, default=str))
    if result["errors"]:
        raise typer.Exit(1)


@app.command(name="schema")
def schema_command(config: Path = ConfigOption) -> None:
    """Show the types and fields visible to the connecting role."""
    with EngineRuntime(_settings(config)) as runtime:
        snapshot = runtime.store.snapshot()
        visibility = Visibility(snapshot, PostgresPrivilegeOracle(runtime.conn))

        table = Table(title=f"GraphQL schema (catalog version {snapshot.version})")
        table.add_column("Type", style="cyan")
        table.add_column("Kind")
        table.add_column("Fields")
        for type_ in sorted(snapshot.types, key=lambda t: t.name):
            if type_.name.startswith("__") or not visibility.type_visible(type_):
                continue
            fields = [
                f.name
                for f in snapshot.fields_of(type_.name)
                if not f.is_hidden_from_schema and visibility.field_visible(f)
            ]
            table.add_row(type_.name, str(type_.meta_kind), ", ".join(fields))

    console.print(table)


@app.command(name="install-watch")
def install_watch_command(config: Path = ConfigOption) -> None:
    """Install the DDL event trigger that reports schema changes."""
    settings = _settings(config)
    with connect(_database_url(settings)) as conn:
        try:
            install_schema_watch(conn, settings.watch_channel)
        except Exception as e:
            console.print(f"[red]Failed to install schema watch: {e}[/red]")
            raise typer.Exit(1)
    console.print(f"[green]Schema watch installed on channel {settings.watch_channel}[/green]")


@app.command(name="watch")
def watch_command(config: Path = ConfigOption) -> None:
    """Rebuild the catalog whenever the schema changes (Ctrl+C to stop)."""
    settings = _settings(config)
    database_url = _database_url(settings)
    with EngineRuntime(settings) as runtime:
        snapshot = runtime.store.snapshot()
        console.print(f"[green]Catalog version {snapshot.version}: {len(snapshot.types)} types[/green]")
        watcher = SchemaWatcher(
            runtime.store,
            lambda: connect(database_url),
            channel=settings.watch_channel,
            ignored_tags=settings.watch_ignored_tags,
        )
        try:
            watcher.run_forever()
        except KeyboardInterrupt:
            console.print("Stopped")


@app.command(name="serve")
def serve_command(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind"),
    watch: bool = typer.Option(False, "--watch/--no-watch", help="Rebuild the catalog on schema changes"),
    config: Path = ConfigOption,
) -> None:
    """Serve POST /graphql over HTTP."""
    import uvicorn

    from pg_graphql.http import create_app

    settings = _settings(config)
    database_url = _database_url(settings)
    runtime = EngineRuntime(settings)
    watcher = None
    if watch:
        watcher = SchemaWatcher(
            runtime.store,
            lambda: connect(database_url),
            channel=settings.watch_channel,
            ignored_tags=settings.watch_ignored_tags,
        )
        watcher.start()

    try:
        uvicorn.run(create_app(lambda: runtime.engine), host=host, port=port)
    finally:
        if watcher is not None:
            watcher.stop()
        runtime.close()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
