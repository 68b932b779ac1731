"""Rich output formatting helpers for the MedAuth CLI.

Provides consistent terminal output for registrations, verification
verdicts, lifecycle histories, and sweep reports.

Verdict Color Mapping:
    AUTHENTIC = bold green, NOT AUTHENTIC = bold red, FLAGGED = yellow
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from medauth.core.engine import (
    RegistrationResult,
    SweepOutcome,
    SweepReport,
    VerificationResult,
)
from medauth.core.history import HistoryEntry
from medauth.core.ledger import StageEvent

_OUTCOME_STYLES: dict[SweepOutcome, str] = {
    SweepOutcome.RESOLVED: "green",
    SweepOutcome.DISCARDED: "dim",
    SweepOutcome.REPLAYED: "cyan",
    SweepOutcome.FLAGGED: "yellow",
}

console = Console()


def outcome_style(outcome: SweepOutcome) -> str:
    """Return the Rich style string for a sweep outcome."""
    return _OUTCOME_STYLES.get(outcome, "white")


def print_registration(result: RegistrationResult) -> None:
    """Print the outcome of a successful registration."""
    record = result.record
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Product ID", record.product_id)
    table.add_row("Type", record.product_type)
    table.add_row("Batch", record.batch_number)
    table.add_row("Manufactured", result.as_dict()["record"]["manufactured_at"])
    table.add_row("Expires", result.as_dict()["record"]["expires_at"])
    table.add_row("Fingerprint", Text(result.fingerprint, style="cyan"))
    console.print(Panel(table, title="Product Registered", border_style="green"))


def print_verification(result: VerificationResult) -> None:
    """Print a verification verdict with both fingerprints.

    Both digests are shown regardless of the verdict so that a failed
    verification can be audited from the output alone.
    """
    if result.is_authentic:
        verdict = Text("AUTHENTIC", style="bold green")
    else:
        verdict = Text("NOT AUTHENTIC", style="bold red")

    header = Text.assemble(
        ("Product: ", "bold"), (result.product_id, ""),
        ("  Status: ", "bold"), verdict,
    )
    console.print(Panel(header, title="Verification Result"))

    record = result.record.as_dict()
    details = Table(title="Store Record", show_header=True)
    details.add_column("Field", style="bold")
    details.add_column("Value")
    for key in ("product_type", "batch_number", "manufactured_at", "expires_at"):
        details.add_row(key, record[key])
    console.print(details)

    digests = Table(title="Fingerprints", show_header=True)
    digests.add_column("Source", style="bold")
    digests.add_column("Fingerprint")
    style = "green" if result.is_authentic else "red"
    digests.add_row("Store (recomputed)", Text(result.store_fingerprint, style=style))
    digests.add_row("Ledger", Text(result.ledger_fingerprint, style=style))
    console.print(digests)


def print_stage_added(event: StageEvent, timestamp: str) -> None:
    console.print(
        f"[green]Added stage[/green] [bold]{event.stage_name}[/bold] to product "
        f"{event.product_id} [dim](by {event.authenticator} at {timestamp})[/dim]"
    )


def print_history(product_id: str, entries: list[HistoryEntry]) -> None:
    """Print a product's lifecycle history as a table."""
    if not entries:
        console.print(f"[dim]No stages recorded for product {product_id}.[/dim]")
        return

    table = Table(title=f"History for product {product_id}", show_header=True,
                  header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Stage", style="bold")
    table.add_column("Authenticated By")
    table.add_column("Timestamp", style="dim")
    for entry in entries:
        table.add_row(str(entry.position), entry.stage_name,
                      entry.authenticator, entry.timestamp)
    console.print(table)


def print_sweep_report(report: SweepReport) -> None:
    """Print one row per settled marker plus a summary line."""
    if not report.items:
        console.print("[dim]No pending registrations to reconcile.[/dim]")
        return

    table = Table(title="Reconciliation Sweep", show_header=True, header_style="bold")
    table.add_column("Product", style="bold")
    table.add_column("Outcome", justify="center")
    table.add_column("Reason")
    for item in report.items:
        table.add_row(
            item.product_id,
            Text(item.outcome.value, style=outcome_style(item.outcome)),
            item.reason,
        )
    console.print(table)

    parts = [f"[bold]{len(report.items)}[/bold] markers"]
    if report.replayed:
        parts.append(f"[cyan]{len(report.replayed)} replayed[/cyan]")
    if report.resolved:
        parts.append(f"[green]{len(report.resolved)} resolved[/green]")
    if report.discarded:
        parts.append(f"{len(report.discarded)} discarded")
    if report.flagged:
        parts.append(f"[yellow]{len(report.flagged)} flagged[/yellow]")
    console.print(" | ".join(parts))
