"""MedAuth CLI — Tamper-evident product authentication.

Entry point for the ``medauth`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    register-product — Register a product on the ledger and in the store.
    verify-product   — Recompute a product's fingerprint and compare.
    add-stage        — Append a lifecycle stage to a product.
    get-history      — Show a product's lifecycle stages.
    grant-admin      — Grant the administrative capability.
    reconcile        — Settle registrations left half-finished.

Usage::

    medauth register-product P-001 Vaccine BATCH-42
    medauth verify-product P-001
    medauth add-stage P-001 Distributed
    medauth get-history P-001 --format json
    medauth --identity 0xabc grant-admin 0xdef
    medauth reconcile --no-replay
"""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from medauth import __version__
from medauth.cli.admin_cmd import grant_admin_command
from medauth.cli.context import CliState
from medauth.cli.reconcile_cmd import reconcile_command
from medauth.cli.register_cmd import register_command
from medauth.cli.stage_cmd import add_stage_command, get_history_command
from medauth.cli.verify_cmd import verify_command

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def configure_logging(level: str) -> None:
    """Route ``medauth`` log records to stderr through Rich."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root = logging.getLogger("medauth")
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (default: ./medauth.yaml if present).",
)
@click.option(
    "--identity",
    default=None,
    help="Identity to act as on the ledger (default: the configured identity).",
)
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Verbosity of diagnostic logging on stderr.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, identity: str | None,
        log_level: str) -> None:
    """MedAuth: Tamper-evident product authentication.

    Registers product fingerprints on an append-only ledger, keeps the
    descriptive fields in a metadata store, and verifies that the two
    still agree.
    """
    configure_logging(log_level.upper())
    ctx.obj = CliState(config_path=config_path, identity=identity)


# Register all subcommands
cli.add_command(register_command)
cli.add_command(verify_command)
cli.add_command(add_stage_command)
cli.add_command(get_history_command)
cli.add_command(grant_admin_command)
cli.add_command(reconcile_command)
