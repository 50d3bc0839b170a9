"""Entry point: python -m openapi_bridge

Reads settings from the environment and .env, fetches every configured
OpenAPI spec and serves the operations as MCP tools over stdio or HTTP.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from .config import VERSION, Settings, TransportType, load_settings
from .errors import BridgeError
from .log import get_logger, setup_logging
from .server import create_server
from .service import ApiService
from .vocabulary import build_vocabulary

logger = get_logger("cli")

app = typer.Typer(
    name="openapi-bridge",
    help="Expose the operations of any OpenAPI-described REST API as MCP tools",
    add_completion=False,
)


def _load(env_file: Path | None, overrides: dict[str, object]) -> Settings:
    try:
        return load_settings(env_file=env_file, **overrides)
    except BridgeError as e:
        typer.echo(e.to_message(), err=True)
        raise typer.Exit(1) from e


async def _serve(settings: Settings) -> None:
    bridge = await create_server(settings)
    try:
        if settings.effective_transport == TransportType.HTTP:
            logger.info("Starting HTTP transport", host=settings.host, port=settings.effective_port)
            await bridge.mcp.run_http_async(host=settings.host, port=settings.effective_port)
        else:
            logger.info("Starting stdio transport")
            await bridge.mcp.run_stdio_async()
    finally:
        await bridge.aclose()


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Start the server when no command is given."""
    if ctx.invoked_subcommand is None:
        serve(env_file=Path(".env"), transport=None, port=None)


@app.command()
def serve(
    env_file: Path | None = typer.Option(
        Path(".env"),
        "--env-file",
        "-e",
        help="Path to a .env file",
        dir_okay=False,
    ),
    transport: str | None = typer.Option(
        None,
        "--transport",
        "-t",
        help="Transport type: stdio or http (overrides TRANSPORT)",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        help="HTTP port (overrides PORT)",
    ),
) -> None:
    """Start the MCP server."""
    overrides: dict[str, object] = {}
    if transport:
        overrides["transport"] = transport
    if port:
        overrides["port"] = port

    settings = _load(env_file, overrides)
    setup_logging(settings.log_level, json_output=settings.log_json, verbose=settings.mcp_verbose)

    try:
        asyncio.run(_serve(settings))
    except BridgeError as e:
        typer.echo(e.to_message(), err=True)
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        logger.info("Shutting down")


@app.command()
def tools(
    source: str = typer.Argument(..., help="OpenAPI document path or URL"),
    action_words: str = typer.Option(
        "",
        "--action-words",
        help="Comma-separated extra action verbs",
    ),
) -> None:
    """Print the tool names and descriptions generated for an OpenAPI document."""
    setup_logging()
    vocabulary = build_vocabulary(w.strip() for w in action_words.split(",") if w.strip())

    async def _list() -> None:
        service = ApiService(source, vocabulary=vocabulary)
        try:
            for name, tool in (await service.toolset()).items():
                typer.echo(f"{name}: {tool.description}")
        finally:
            await service.aclose()

    try:
        asyncio.run(_list())
    except BridgeError as e:
        typer.echo(e.to_message(), err=True)
        raise typer.Exit(1) from e


@app.command("check-config")
def check_config(
    env_file: Path | None = typer.Option(
        Path(".env"),
        "--env-file",
        "-e",
        help="Path to a .env file",
        dir_okay=False,
    ),
) -> None:
    """Validate settings without starting the server."""
    settings = _load(env_file, {})

    typer.echo("Configuration is valid")
    typer.echo(f"  Default environment: {settings.effective_default_environment}")
    for name, env in settings.environment_configs.items():
        typer.echo(f"  {name}: spec={env.spec_url or '(missing)'} base={env.base_url or '(from spec)'}")
    typer.echo(f"  Transport: {settings.effective_transport.value}")
    if settings.effective_transport == TransportType.HTTP:
        typer.echo(f"  Address: {settings.host}:{settings.effective_port}")
    if settings.rate_limit_enabled:
        typer.echo(
            f"  Rate limit: {settings.rate_limit_max_requests} requests "
            f"per {settings.rate_limit_window_seconds:g}s"
        )


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"openapi-bridge version {VERSION}")


if __name__ == "__main__":
    app()
