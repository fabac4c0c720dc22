"""CLI commands for pcall.

``serve`` runs a router (or a ready FastAPI app) over HTTP + websocket,
``call`` performs one RPC call against a running server, ``config``
writes or shows the configuration file.
"""

import asyncio
import json
from pathlib import Path

import typer
from fastapi import FastAPI
from loguru import logger
from rich.console import Console

from pcall import __logo__, __version__
from pcall.cli.shared.logging_utils import configure_console_logging, ensure_rotating_log_file
from pcall.cli.shared.runtime_utils import is_port_in_use, load_target

app = typer.Typer(
    name="pcall",
    help=f"{__logo__} pcall - typed RPC over HTTP and websockets",
    no_args_is_help=True,
)

console = Console()


@app.command()
def version():
    """Show the pcall version."""
    console.print(f"{__logo__} pcall v{__version__}")


@app.command()
def serve(
    target: str = typer.Argument(..., help="module:attribute of a Router or FastAPI app"),
    host: str = typer.Option(None, "--host", "-h", help="Bind host (default from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port (default from config)"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
    with_socket: bool = typer.Option(True, "--socket/--no-socket", help="Mount the socket layer for a Router target"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Serve a router over HTTP (single + batch) and websocket."""
    from pcall.config.access import get_config
    from pcall.router import Router
    from pcall.server.app import create_app, run_server
    from pcall.socket.server import IO

    cfg = get_config(config_path=config_path)
    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port

    if is_port_in_use(bind_host, bind_port):
        console.print(
            f"[red]Port {bind_port} is already in use.[/red] "
            f"Close the process using it, or pass [cyan]--port[/cyan] (current: {bind_host}:{bind_port})."
        )
        raise typer.Exit(1)

    configure_console_logging(verbose, level=cfg.logging.level)
    if cfg.logging.file:
        log_path = ensure_rotating_log_file("serve", level="DEBUG" if verbose else cfg.logging.level)
        console.print(f"[dim]Logs: {log_path}[/dim]")

    try:
        obj = load_target(target)
    except (ImportError, ValueError) as e:
        console.print(f"[red]Cannot load {target}:[/red] {e}")
        raise typer.Exit(1)

    if isinstance(obj, Router):
        io = IO(prune_empty_channels=cfg.socket.prune_empty_channels) if with_socket else None
        server_app = create_app(obj, io=io, config=cfg)
    elif isinstance(obj, FastAPI):
        server_app = obj
    else:
        console.print(f"[red]{target} is neither a Router nor a FastAPI app[/red]")
        raise typer.Exit(1)

    console.print(f"{__logo__} Serving [cyan]{target}[/cyan] at http://{bind_host}:{bind_port}{cfg.server.endpoint}")
    run_server(server_app, host=bind_host, port=bind_port)


@app.command()
def call(
    url: str = typer.Argument(..., help="RPC endpoint URL, e.g. http://127.0.0.1:8000/rpc"),
    method: str = typer.Argument(..., help="Dotted procedure path, e.g. users.getById"),
    params: str = typer.Argument(None, help="JSON params"),
    batch: bool = typer.Option(False, "--batch", help="Send through the batching link"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log the request and response"),
):
    """Call one procedure and print its result as JSON."""
    from pcall.client.client import create_client
    from pcall.errors import RPCError
    from pcall.utils.exceptions import TransportError

    configure_console_logging(verbose)
    if not verbose:
        logger.disable("pcall")

    try:
        decoded = json.loads(params) if params else None
    except json.JSONDecodeError as e:
        console.print(f"[red]params is not valid JSON:[/red] {e}")
        raise typer.Exit(2)

    async def _run():
        async with create_client(url, link="batch" if batch else "linear") as client:
            node = client.api
            for segment in method.split("."):
                node = node[segment]
            return await node(decoded)

    try:
        result = asyncio.run(_run())
    except RPCError as e:
        console.print(f"[red]{e.status.value}[/red] ({e.code}): {e.message}")
        raise typer.Exit(1)
    except TransportError as e:
        console.print(f"[red]Transport error:[/red] {e.message}")
        raise typer.Exit(1)

    console.print_json(json.dumps(result))


@app.command("config")
def config_command(
    init: bool = typer.Option(False, "--init", help="Write a default config file"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show the effective configuration, or write defaults with --init."""
    from pcall.config.access import get_config
    from pcall.config.loader import convert_to_camel, get_config_path, save_config
    from pcall.config.schema import Config

    path = config_path or get_config_path()
    if init:
        if path.exists() and not typer.confirm(f"{path} exists. Overwrite with defaults?"):
            raise typer.Exit(0)
        save_config(Config(), path)
        console.print(f"[green]✓[/green] Created config at {path}")
        return
    try:
        cfg = get_config(config_path=path, force_reload=True)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print_json(json.dumps(convert_to_camel(cfg.model_dump())))


if __name__ == "__main__":
    app()
