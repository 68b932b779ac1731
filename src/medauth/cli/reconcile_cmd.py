"""``medauth reconcile`` — Settle registrations left half-finished.

Walks the pending-registration markers and, for each one, drops it,
replays the missing store write, or flags it for an operator.

Exit Codes:
    0 — Every marker was settled.
    1 — At least one marker was flagged and still needs attention.
    2 — The ledger, store or marker log could not be opened.
"""

from __future__ import annotations

import sys

import click

from medauth.cli.context import (
    EXIT_NEGATIVE,
    CliState,
    emit_json,
    format_option,
    handle_errors,
    pass_state,
)
from medauth.cli.output import print_sweep_report
from medauth.config import build_sweep


@click.command("reconcile")
@click.option(
    "--no-replay", is_flag=True, default=False,
    help="Flag missing store rows instead of replaying them.",
)
@format_option
@pass_state
@handle_errors
def reconcile_command(state: CliState, no_replay: bool, output_format: str) -> None:
    """Replay or flag pending registrations."""
    report = build_sweep(state.engine).run(replay=not no_replay)
    if output_format == "json":
        emit_json(report.as_dict())
    else:
        print_sweep_report(report)
    if not report.is_clean:
        sys.exit(EXIT_NEGATIVE)
