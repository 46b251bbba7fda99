"""Portal Client CLI.

Usage:
    portal-client create-session                       # Session bus, no options
    portal-client create-session --bus system          # System bus
    portal-client create-session -o handle_token=t1    # Pass CreateSession options
    portal-client create-session --timeout 30 --json   # Give up after 30s, JSON output
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any

import click

from .client import PortalClient, create_client
from .config import BUS_KINDS, PortalClientConfig
from .errors import PortalError, PortalResponseError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_option(raw: str) -> tuple[str, Any]:
    """Parse a KEY=VALUE option. Digit-only values become integers."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise click.BadParameter(f"Expected KEY=VALUE, got {raw!r}")
    if value.isdigit():
        return key, int(value)
    return key, value


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for messages written to stderr",
)
def main(log_level: str) -> None:
    """Portal Client - negotiate desktop portal requests over D-Bus."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


@main.command("create-session")
@click.option(
    "--bus",
    type=click.Choice(list(BUS_KINDS)),
    default=None,
    help="Bus to connect to (default: PORTAL_CLIENT_BUS or session)",
)
@click.option("-o", "--option", "raw_options", multiple=True, help="CreateSession option KEY=VALUE")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for the portal response")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def create_session_cmd(
    bus: str | None,
    raw_options: tuple[str, ...],
    timeout: float | None,
    output_json: bool,
) -> None:
    """Create a screen cast session and print its handle."""
    options = dict(parse_option(raw) for raw in raw_options)

    try:
        config = PortalClientConfig.from_env()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if bus:
        config = dataclasses.replace(config, bus=bus)

    try:
        session_path = asyncio.run(_create_session(create_client(config), options, timeout))
    except TimeoutError:
        click.echo(f"No response from the portal within {timeout}s", err=True)
        sys.exit(1)
    except PortalResponseError as e:
        reason = "cancelled by the user" if e.cancelled else "ended by the portal"
        click.echo(f"Request {reason}", err=True)
        sys.exit(1)
    except PortalError as e:
        click.echo(f"Error ({e.kind.value}): {e}", err=True)
        sys.exit(1)

    if output_json:
        click.echo(json.dumps({"session_handle": session_path}))
    else:
        click.echo(session_path)


async def _create_session(
    client: PortalClient, options: dict[str, Any], timeout: float | None
) -> str:
    async with client:
        session = await asyncio.wait_for(client.screencast.create_session(options), timeout)
    return str(session.path)


if __name__ == "__main__":
    main()
