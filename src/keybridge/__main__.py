"""CLI entry point for keybridge."""

from __future__ import annotations

import contextlib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console

from keybridge import __version__
from keybridge.config import BridgeConfig, load_config
from keybridge.debug_log import setup_debug_logging
from keybridge.errors import BridgeError
from keybridge.paths import SOCKET_NAMES

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger("keybridge.cli")


def _load(ctx: click.Context, **overrides: Any) -> BridgeConfig:
    """Resolve configuration for a subcommand and start stderr logging."""
    try:
        config = load_config(debug=ctx.obj.get("debug"), **overrides)
    except ValueError as exc:
        raise click.UsageError(str(exc), ctx=ctx) from exc
    setup_debug_logging(config.debug)
    return config


@contextlib.contextmanager
def _fatal_errors() -> Iterator[None]:
    """Turn bridge and I/O failures into a stderr message and exit status 1."""
    try:
        yield
    except (BridgeError, OSError) as exc:
        logger.debug("Fatal error", exc_info=True)
        console = Console(stderr=True)
        console.print(
            f"keybridge: {exc}", style="red", markup=False, highlight=False, soft_wrap=True
        )
        raise SystemExit(1) from exc


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option(
    "--debug/--no-debug",
    default=None,
    help="Log diagnostics to stderr (env: KEYBRIDGE_DEBUG)",
)
@click.pass_context
def cli(ctx: click.Context, version: bool, debug: bool | None) -> None:
    """Relay ssh-agent and gpg-agent traffic on stdio to Windows key agents."""
    if version:
        click.echo(f"keybridge {__version__}")
        ctx.exit(0)

    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def pageant(ctx: click.Context) -> None:
    """Answer framed ssh-agent requests on stdin using Pageant.

    Each request is a 4-byte big-endian length followed by the message. The
    response is written to stdout in the same framing. Exits when stdin closes.
    """
    from keybridge.transports.pageant import PageantChannel, serve_requests

    _load(ctx)
    logger.info("Starting Pageant bridge")
    with _fatal_errors():
        serve_requests(
            sys.stdin.buffer,
            sys.stdout.buffer,
            PageantChannel(),
        )


@cli.command(name="gpg-agent")
@click.option(
    "--socket-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Rendezvous file to read (default: <gnupg home>/<socket name>)",
)
@click.option(
    "--socket-name",
    type=click.Choice(SOCKET_NAMES),
    default=None,
    help="Which gpg-agent socket to attach to",
)
@click.option(
    "--chunk-size",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum bytes per relay read (env: KEYBRIDGE_CHUNK_SIZE)",
)
@click.pass_context
def gpg_agent(
    ctx: click.Context,
    socket_file: Path | None,
    socket_name: str | None,
    chunk_size: int | None,
) -> None:
    """Attach stdin/stdout to gpg-agent's loopback Assuan socket.

    \b
    Examples:
        keybridge gpg-agent
        keybridge gpg-agent --socket-name S.gpg-agent.extra
        keybridge gpg-agent --socket-file /mnt/c/Users/me/AppData/Local/gnupg/S.gpg-agent
    """
    from keybridge.relay import run_relay
    from keybridge.transports.assuan import AssuanConnection

    config = _load(ctx, socket_file=socket_file, socket_name=socket_name, chunk_size=chunk_size)
    stdin = sys.stdin.buffer
    # Unbuffered: partial reads return at once and a parked reader pins no buffer lock.
    client_in = getattr(stdin, "raw", stdin)

    with _fatal_errors():
        connection = AssuanConnection.connect(config.rendezvous_path)
        try:
            outcome = run_relay(
                client_in,
                sys.stdout.buffer,
                connection,
                chunk_size=config.chunk_size,
            )
        finally:
            connection.close()
    logger.info("Relay closed by %s", outcome.closed_by)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
