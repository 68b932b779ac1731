"""Shared fixtures for CLI tests.

Every test gets its own ledger journal, SQLite database and pending log
under ``tmp_path``, passed to the CLI through ``MEDAUTH_*`` environment
variables.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner, Result

from medauth.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def cli_env(state_dir: Path, owner: str) -> dict[str, str]:
    return {
        "MEDAUTH_LEDGER_PATH": str(state_dir / "ledger.jsonl"),
        "MEDAUTH_DATABASE_URL": f"sqlite:///{state_dir / 'metadata.db'}",
        "MEDAUTH_PENDING_PATH": str(state_dir / "pending.json"),
        "MEDAUTH_OWNER": owner,
        "MEDAUTH_IDENTITY": "",
    }


@pytest.fixture
def invoke(runner: CliRunner, cli_env: dict[str, str]) -> Callable[..., Result]:
    """Invoke ``medauth`` with the per-test environment.

    Diagnostic logging is limited to errors so that JSON output on stdout
    can be parsed even when stderr is mixed in.
    """

    def _invoke(*args: str, env: dict[str, str] | None = None) -> Result:
        merged = {**cli_env, **(env or {})}
        return runner.invoke(cli, ["--log-level", "ERROR", *args], env=merged)

    return _invoke


@pytest.fixture
def invoke_json(invoke: Callable[..., Result]) -> Callable[..., tuple[Result, Any]]:
    """Invoke a command with ``--format json`` and parse its stdout."""

    def _invoke_json(*args: str, env: dict[str, str] | None = None) -> tuple[Result, Any]:
        result = invoke(*args, "--format", "json", env=env)
        return result, json.loads(result.output)

    return _invoke_json
