"""``medauth grant-admin <identity>`` — Grant the administrative capability.

Only a holder of the root capability (initially the ledger owner) may
grant. Granting to an identity that already holds the capability succeeds
without recording anything.
"""

from __future__ import annotations

import click

from medauth.cli.context import (
    CliState,
    emit_json,
    format_option,
    handle_errors,
    pass_state,
)
from medauth.cli.output import console


@click.command("grant-admin")
@click.argument("identity")
@format_option
@pass_state
@handle_errors
def grant_admin_command(state: CliState, identity: str, output_format: str) -> None:
    """Grant the administrative capability to IDENTITY."""
    granted = state.engine.grant_admin(identity)
    if output_format == "json":
        emit_json({"identity": identity, "capability": "ADMINISTRATIVE",
                   "granted": granted})
    elif granted:
        console.print(f"[green]Granted administrative capability to[/green] {identity}")
    else:
        console.print(f"[dim]{identity} already holds the administrative capability.[/dim]")
