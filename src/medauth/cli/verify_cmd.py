"""``medauth verify-product <id>`` — Check a product against the ledger.

Exit Codes:
    0 — The store's values reproduce the ledger fingerprint.
    1 — The fingerprints differ; the product is NOT authentic.
    2 — The product is missing from the ledger or the store, or another
        error occurred.
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
from medauth.cli.output import print_verification


@click.command("verify-product")
@click.argument("product_id")
@format_option
@pass_state
@handle_errors
def verify_command(state: CliState, product_id: str, output_format: str) -> None:
    """Verify that PRODUCT_ID has not been tampered with."""
    result = state.engine.verify(product_id)
    if output_format == "json":
        emit_json(result.as_dict())
    else:
        print_verification(result)
    if not result.is_authentic:
        sys.exit(EXIT_NEGATIVE)
