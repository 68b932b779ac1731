"""Shared plumbing for MedAuth CLI commands.

Holds the per-invocation state built by the ``medauth`` group (resolved
settings, lazily built engine) and the error handling every command shares.

Exit Codes:
    0 — Command succeeded.
    1 — Command ran but the outcome is negative (not authentic, flagged).
    2 — A MedAuth error was raised (invalid input, unauthorized, not found,
        already exists, unavailable, bad settings).
    3 — Partial commit: the ledger holds the product, the store does not.
"""

from __future__ import annotations

import functools
import json
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import click

from medauth.config import Settings, build_engine, load_settings
from medauth.core.engine import ReconciliationEngine
from medauth.core.ledger import is_identity
from medauth.exceptions import ConfigError, MedAuthError, PartialCommitError

EXIT_OK = 0
EXIT_NEGATIVE = 1
EXIT_ERROR = 2
EXIT_PARTIAL_COMMIT = 3

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class CliState:
    """State shared between the group callback and its subcommands."""

    config_path: Path | None = None
    identity: str | None = None
    _settings: Settings | None = field(default=None, repr=False)
    _engine: ReconciliationEngine | None = field(default=None, repr=False)

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            settings = load_settings(self.config_path)
            if self.identity:
                if not is_identity(self.identity):
                    raise ConfigError(f"Malformed identity: {self.identity!r}")
                settings.identity = self.identity
            self._settings = settings
        return self._settings

    @property
    def engine(self) -> ReconciliationEngine:
        if self._engine is None:
            self._engine = build_engine(self.settings)
        return self._engine


pass_state = click.make_pass_decorator(CliState, ensure=True)


def format_option(func: F) -> F:
    """Attach the shared ``--format text|json`` option."""
    return click.option(
        "--format", "output_format",
        type=click.Choice(["text", "json"]),
        default="text",
        help="Output format (default: text).",
    )(func)


def emit_json(payload: Any, *, err: bool = False) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True), err=err)


def handle_errors(func: F) -> F:
    """Turn MedAuth errors into a message on stderr and a non-zero exit.

    The message carries the error type, operation, product id and
    underlying cause so that a failure can be diagnosed without re-running.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except PartialCommitError as exc:
            _report(exc, kwargs.get("output_format", "text"))
            click.echo(
                "The ledger holds this product but the metadata store does not. "
                "Run `medauth reconcile` to replay the store write.",
                err=True,
            )
            sys.exit(EXIT_PARTIAL_COMMIT)
        except MedAuthError as exc:
            _report(exc, kwargs.get("output_format", "text"))
            sys.exit(EXIT_ERROR)

    return wrapper  # type: ignore[return-value]


def _report(exc: MedAuthError, output_format: str) -> None:
    ctx = exc.context()
    if output_format == "json":
        payload = {k: v for k, v in ctx.items() if k != "error"}
        payload.update(error=str(exc), type=ctx["error"])
        emit_json(payload, err=True)
        return
    details = ", ".join(f"{k}={v}" for k, v in ctx.items() if k != "error")
    suffix = f" ({details})" if details else ""
    click.echo(f"Error: {ctx['error']}: {exc}{suffix}", err=True)
