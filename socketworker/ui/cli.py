"""Command-line interface: run a worker, query its status, send commands."""

import json
import logging
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console

from socketworker.commands import SocketCommand
from socketworker.config import WorkerSettings, get_worker_settings, load_raw_config
from socketworker.dispatcher import SocketDispatcher
from socketworker.errors import CodecError
from socketworker.handlers import echo_handler, shutdown_on
from socketworker.protocol import get_codec
from socketworker.worker import SocketWorker

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="socketworker - run and talk to a Unix socket command worker.",
)

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


def _load_settings() -> WorkerSettings:
    """Load settings or exit with a readable error."""
    try:
        return get_worker_settings(load_raw_config())
    except ValueError as e:
        err_console.print(f"[red]Error loading configuration: {e}[/red]")
        raise typer.Exit(1)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _parse_arguments(pairs: List[str]) -> Dict[str, Any]:
    """Turn key=value pairs into a dict; values are JSON when they parse as JSON."""
    arguments: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{pair}'")
        try:
            arguments[key] = json.loads(value)
        except json.JSONDecodeError:
            arguments[key] = value
    return arguments


@app.command()
def serve() -> None:
    """Run an echo worker until it receives the shutdown command."""
    settings = _load_settings()
    _configure_logging(settings.log_level)

    worker = SocketWorker(
        socket_path=settings.socket_path,
        status_path=settings.status_path,
        handler=echo_handler,
        shutdown=shutdown_on(settings.shutdown_command),
        codec=get_codec(settings.codec),
        reuse_socket_file=settings.reuse_socket_file,
    )
    console.print(f"[green]Worker listening on {settings.socket_path}[/green]")

    try:
        while worker.get_status() is not None:
            try:
                worker.accept()
            except CodecError as e:
                logger.warning(f"Dropped malformed request: {e}")
            except OSError as e:
                logger.warning(f"Connection failed mid-request: {e}")
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down")
        worker.close()
        console.print("[dim]Worker stopped[/dim]")
        raise typer.Exit(130)

    console.print("[dim]Worker stopped[/dim]")


@app.command()
def status() -> None:
    """Print the worker's published status."""
    settings = _load_settings()
    dispatcher = SocketDispatcher(settings.socket_path, settings.status_path)

    current = dispatcher.get_status()
    if current is None:
        console.print("absent")
        raise typer.Exit(1)
    console.print(current.value)


@app.command()
def send(
    name: str = typer.Argument(..., help="Command name"),
    arg: Optional[List[str]] = typer.Option(
        None, "--arg", "-a", help="Command argument as key=value (repeatable)"
    ),
    command_id: Optional[str] = typer.Option(None, "--id", help="Correlation id"),
    no_block: bool = typer.Option(
        False, "--no-block", help="Give up unless the worker is waiting"
    ),
) -> None:
    """Send one command to the worker and print its response as JSON."""
    settings = _load_settings()
    _configure_logging(settings.log_level)

    command = SocketCommand(name=name, arguments=_parse_arguments(arg or []), id=command_id)
    dispatcher = SocketDispatcher(
        settings.socket_path, settings.status_path, codec=get_codec(settings.codec)
    )

    try:
        response = dispatcher.execute(command, blocking=not no_block)
    except CodecError as e:
        err_console.print(f"[red]Malformed response: {e}[/red]")
        raise typer.Exit(2)

    if response is None:
        err_console.print("[yellow]No response (worker absent or busy)[/yellow]")
        raise typer.Exit(1)

    typer.echo(
        json.dumps(
            {"status": response.status, "data": dict(response.data), "id": response.id},
            default=repr,
        )
    )


def run() -> None:
    app()
