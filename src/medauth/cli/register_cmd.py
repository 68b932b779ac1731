"""``medauth register-product <id> <type> <batch>`` — Register a product.

The manufacturing date is the time of registration; the expiry date comes
from the configured shelf-life policy for the product type.

Exit Codes:
    0 — Product registered on the ledger and in the store.
    2 — Registration refused (invalid input, unauthorized, duplicate).
    3 — Ledger registration succeeded but the store write failed.
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
from medauth.cli.output import print_registration


@click.command("register-product")
@click.argument("product_id")
@click.argument("product_type")
@click.argument("batch_number")
@format_option
@pass_state
@handle_errors
def register_command(
    state: CliState,
    product_id: str,
    product_type: str,
    batch_number: str,
    output_format: str,
) -> None:
    """Register PRODUCT_ID with its PRODUCT_TYPE and BATCH_NUMBER."""
    result = state.engine.register(product_id, product_type, batch_number)
    if output_format == "json":
        emit_json(result.as_dict())
    else:
        print_registration(result)
