# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from brokerhooks.config import build_registry, load_settings
from brokerhooks.exceptions import BrokerHooksError
from brokerhooks.hooks.fanout import EventFanoutHook
from brokerhooks.hooks.http_auth import HttpAuthHook
from brokerhooks.logging import configure_logging
from brokerhooks.protocols import HookEvent


console = Console()

app = typer.Typer(help="Broker extension hooks: remote authorization and event fan-out.")

BUILTIN_HOOKS = (HttpAuthHook.DESCRIPTOR, EventFanoutHook.DESCRIPTOR)


@app.callback()
def main_callback(
    log_level: Annotated[
        str, typer.Option("--log-level", help="Minimum log level to print.")
    ] = "WARNING",
) -> None:
    """
    brokerhooks: pluggable decision and observation points for an MQTT broker.
    """
    configure_logging(log_level)


@app.command()
def validate(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Settings file (default: brokerhooks.yaml)."),
    ] = None,
) -> None:
    """Load the settings file and configure every hook it describes."""
    try:
        settings = load_settings(config)
        registry = build_registry(settings)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None
    except BrokerHooksError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1) from None

    try:
        hooks = registry.list_hooks()
    finally:
        registry.stop()

    if not hooks:
        typer.echo("No hooks configured.")
        return

    table = Table(title="Configured hooks")
    table.add_column("Hook", style="cyan", no_wrap=True)
    table.add_column("Type", no_wrap=True)
    table.add_column("Events")
    for hook in hooks:
        table.add_row(hook["id"], hook["type"], ", ".join(hook["capabilities"]))
    console.print(table)


@app.command()
def capabilities() -> None:
    """Show which built-in hook handles each broker event."""
    table = Table(title="Broker events")
    table.add_column("Event", style="cyan", no_wrap=True)
    table.add_column("Handled by", no_wrap=True)
    for event in HookEvent:
        handlers = [d.id for d in BUILTIN_HOOKS if d.provides(event)]
        table.add_row(event.value, ", ".join(handlers) or "-")
    console.print(table)


if __name__ == "__main__":
    app()
