"""Lifecycle stage commands: ``add-stage`` and ``get-history``."""

from __future__ import annotations

import click

from medauth.cli.context import (
    CliState,
    emit_json,
    format_option,
    handle_errors,
    pass_state,
)
from medauth.cli.output import print_history, print_stage_added
from medauth.core.fingerprint import format_instant


@click.command("add-stage")
@click.argument("product_id")
@click.argument("stage_name")
@format_option
@pass_state
@handle_errors
def add_stage_command(
    state: CliState, product_id: str, stage_name: str, output_format: str
) -> None:
    """Append STAGE_NAME to the history of PRODUCT_ID."""
    event = state.engine.add_stage(product_id, stage_name)
    timestamp = format_instant(event.timestamp)
    if output_format == "json":
        emit_json({
            "product_id": event.product_id,
            "stage_name": event.stage_name,
            "authenticator": event.authenticator,
            "timestamp": timestamp,
            "sequence": event.sequence,
        })
    else:
        print_stage_added(event, timestamp)


@click.command("get-history")
@click.argument("product_id")
@format_option
@pass_state
@handle_errors
def get_history_command(state: CliState, product_id: str, output_format: str) -> None:
    """Show the lifecycle stages of PRODUCT_ID, oldest first."""
    entries = state.engine.get_history(product_id)
    if output_format == "json":
        emit_json({
            "product_id": product_id,
            "history": [entry.as_dict() for entry in entries],
        })
    else:
        print_history(product_id, entries)
