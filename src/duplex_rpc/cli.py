"""duplex-rpc command line.

Usage:
    duplex-rpc serve mypkg.tools:FUNCTIONS       # expose functions on stdio
    duplex-rpc serve mypkg.tools                 # expose a module's functions
    duplex-rpc call --exec "duplex-rpc serve mypkg.tools" add 2 3
    duplex-rpc call --exec "..." --event log '"hello"'

Protocol traffic uses stdout; logs always go to stderr.
"""

from __future__ import annotations

import asyncio
import contextlib
import importlib
import json
import logging
import shlex
import sys
from typing import Any

import click

from .config import RpcOptions
from .correlator import Correlator
from .errors import RpcError
from .transport.stream import SubprocessChannel, open_stdio_channel

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def load_target(target: str) -> Any:
    """Import ``module`` or ``module:attribute``."""
    module_name, _, attribute = target.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name!r}: {e}") from e

    if not attribute:
        return module
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise click.BadParameter(f"{module_name!r} has no attribute {attribute!r}") from None


def parse_arg(value: str) -> Any:
    """Parse a command-line argument as JSON, falling back to the raw string."""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def build_options(timeout: float | None, event_names: tuple[str, ...]) -> RpcOptions:
    """Environment defaults overridden by command-line flags."""
    return RpcOptions.from_env().merged(
        timeout=timeout,
        event_names=event_names or None,
    )


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Logging level (logs go to stderr)",
)
def main(log_level: str) -> None:
    """Bidirectional RPC over stdio."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.argument("target")
@click.option("--timeout", type=float, default=None, help="Call timeout in ms (negative disables)")
@click.option("--event-name", "event_names", multiple=True, help="Remote name sent as event")
def serve(target: str, timeout: float | None, event_names: tuple[str, ...]) -> None:
    """Expose TARGET's functions to a peer on stdin/stdout.

    TARGET is "module" or "module:attribute"; the attribute may be a
    mapping of names to callables or any object with public methods.
    """
    functions = load_target(target)
    options = build_options(timeout, event_names)
    asyncio.run(_serve(functions, options))


async def _serve(functions: Any, options: RpcOptions) -> None:
    channel = await open_stdio_channel()
    rpc = Correlator(functions, channel.binding(), options)
    logger.info("duplex-rpc serving on stdio")
    try:
        await channel.run()
        await rpc.wait_inbound()
        await channel.drain()
    finally:
        rpc.close()
        logger.info("stdin closed, shutting down")


@main.command()
@click.option("--exec", "command", required=True, help="Command line of the serving peer")
@click.option("--event", "as_event", is_flag=True, help="Send as event, do not wait")
@click.option("--timeout", type=float, default=None, help="Call timeout in ms (negative disables)")
@click.argument("method")
@click.argument("args", nargs=-1)
def call(
    command: str,
    as_event: bool,
    timeout: float | None,
    method: str,
    args: tuple[str, ...],
) -> None:
    """Call METHOD on a peer started with --exec and print the JSON result.

    Each ARG is parsed as JSON when possible, otherwise passed as a string.
    """
    argv = shlex.split(command)
    if not argv:
        raise click.UsageError("--exec must not be empty")

    options = build_options(timeout, ())
    values = [parse_arg(a) for a in args]

    try:
        result = asyncio.run(_call(argv, method, values, as_event, options))
    except (RpcError, OSError) as e:
        raise click.ClickException(str(e)) from e

    if not as_event:
        click.echo(json.dumps(result, default=str))


async def _call(
    argv: list[str],
    method: str,
    values: list[Any],
    as_event: bool,
    options: RpcOptions,
) -> Any:
    channel = await SubprocessChannel.spawn(*argv)
    rpc = Correlator({}, channel.binding(), options)
    reader = asyncio.create_task(channel.run())
    try:
        if as_event:
            rpc.event(method, *values)
            await channel.drain()
            return None
        return await rpc.call(method, *values)
    finally:
        rpc.close()
        await channel.close()
        reader.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reader


if __name__ == "__main__":
    main()
