"""Settings loading and engine wiring.

Settings come from a YAML file and are then overridden by environment
variables, so a deployment can keep one checked-in file and vary the
location of its ledger journal or database per environment.

Example ``medauth.yaml``::

    ledger_path: .medauth/ledger.jsonl
    database_url: sqlite:///.medauth/metadata.db
    pending_path: .medauth/pending.json
    owner: "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
    identity: "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
    shelf_life:
      default: {years: 2}
      product_types:
        Vaccine: {months: 6}

Environment overrides: ``MEDAUTH_LEDGER_PATH``, ``MEDAUTH_DATABASE_URL``,
``MEDAUTH_PENDING_PATH``, ``MEDAUTH_OWNER``, ``MEDAUTH_IDENTITY``.
Hex addresses must be quoted in YAML, which would otherwise read them as
integers.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from medauth.core.engine import (
    DEFAULT_SHELF_LIFE,
    FilePendingLog,
    ReconciliationEngine,
    ReconciliationSweep,
    ShelfLife,
    ShelfLifePolicy,
)
from medauth.core.ledger import JournalLedger, is_identity
from medauth.core.store import SqlMetadataStore
from medauth.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "medauth.yaml"
DEFAULT_OWNER = "owner"

_ENV_OVERRIDES: dict[str, str] = {
    "MEDAUTH_LEDGER_PATH": "ledger_path",
    "MEDAUTH_DATABASE_URL": "database_url",
    "MEDAUTH_PENDING_PATH": "pending_path",
    "MEDAUTH_OWNER": "owner",
    "MEDAUTH_IDENTITY": "identity",
}

_KNOWN_KEYS = frozenset(_ENV_OVERRIDES.values()) | {"shelf_life"}


@dataclass
class Settings:
    """Resolved runtime settings.

    Attributes:
        ledger_path: Ledger journal file.
        database_url: SQLAlchemy URL of the metadata store.
        pending_path: Pending-registration marker file.
        owner: Ledger owner used when a new journal is bootstrapped.
        identity: Identity the CLI acts as. Defaults to ``owner``.
        shelf_life: Expiry policy for new registrations.
    """

    ledger_path: Path = Path(".medauth/ledger.jsonl")
    database_url: str = "sqlite:///.medauth/metadata.db"
    pending_path: Path = Path(".medauth/pending.json")
    owner: str = DEFAULT_OWNER
    identity: str | None = None
    shelf_life: ShelfLifePolicy = field(default_factory=ShelfLifePolicy)

    @property
    def acting_identity(self) -> str:
        return self.identity or self.owner


def _parse_shelf_life(value: Any, where: str) -> ShelfLife:
    if not isinstance(value, Mapping):
        raise ConfigError(f"{where} must be a mapping of years/months/days")
    unknown = set(value) - {"years", "months", "days"}
    if unknown:
        raise ConfigError(f"{where} has unknown keys: {', '.join(sorted(unknown))}")
    window = ShelfLife(
        years=value.get("years", 0),
        months=value.get("months", 0),
        days=value.get("days", 0),
    )
    try:
        window.validate()
    except ValueError as exc:
        raise ConfigError(f"{where}: {exc}") from exc
    return window


def _parse_shelf_life_policy(value: Any) -> ShelfLifePolicy:
    if value is None:
        return ShelfLifePolicy()
    if not isinstance(value, Mapping):
        raise ConfigError("shelf_life must be a mapping")
    default = DEFAULT_SHELF_LIFE
    if "default" in value:
        default = _parse_shelf_life(value["default"], "shelf_life.default")
    product_types = value.get("product_types") or {}
    if not isinstance(product_types, Mapping):
        raise ConfigError("shelf_life.product_types must be a mapping")
    overrides = {
        str(name): _parse_shelf_life(window, f"shelf_life.product_types.{name}")
        for name, window in product_types.items()
    }
    return ShelfLifePolicy(default=default, overrides=overrides)


def settings_from_dict(
    data: Mapping[str, Any],
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Build ``Settings`` from a parsed mapping plus environment overrides.

    Raises:
        ConfigError: On unknown keys or invalid values.
    """
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")

    merged: dict[str, Any] = {k: v for k, v in data.items() if k != "shelf_life"}
    for var, key in _ENV_OVERRIDES.items():
        if env and env.get(var):
            merged[key] = env[var]

    for key, value in merged.items():
        if value is not None and not isinstance(value, str):
            raise ConfigError(
                f"Setting {key!r} must be a string, got {type(value).__name__}"
            )

    settings = Settings(shelf_life=_parse_shelf_life_policy(data.get("shelf_life")))
    if "ledger_path" in merged:
        settings.ledger_path = Path(merged["ledger_path"])
    if "pending_path" in merged:
        settings.pending_path = Path(merged["pending_path"])
    if "database_url" in merged:
        settings.database_url = merged["database_url"]
    if "owner" in merged:
        settings.owner = merged["owner"]
    if merged.get("identity"):
        settings.identity = merged["identity"]

    for name in ("owner", "acting_identity"):
        value = getattr(settings, name)
        if not is_identity(value):
            raise ConfigError(f"Malformed identity for {name}: {value!r}")
    return settings


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from a YAML file and the environment.

    Args:
        path: Settings file. When None, ``medauth.yaml`` in the working
            directory is used if it exists; otherwise defaults apply.
        env: Environment mapping. Defaults to ``os.environ``.

    Raises:
        ConfigError: If an explicit ``path`` is missing, or the file is not a
            valid YAML mapping of known settings.
    """
    env = os.environ if env is None else env
    if path is None:
        candidate = Path(DEFAULT_CONFIG_FILE)
        path = candidate if candidate.is_file() else None
    elif not Path(path).is_file():
        raise ConfigError(f"Settings file not found: {path}")

    data: Any = {}
    if path is not None:
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ConfigError(f"Settings file {path} must contain a YAML mapping")
        logger.debug("Loaded settings from %s", path)
    return settings_from_dict(data, env)


def build_engine(settings: Settings) -> ReconciliationEngine:
    """Wire a journal ledger, SQL store and file pending log into an engine."""
    ledger = JournalLedger(settings.ledger_path, settings.owner)
    store = SqlMetadataStore(settings.database_url)
    return ReconciliationEngine(
        ledger,
        store,
        settings.acting_identity,
        shelf_life=settings.shelf_life,
        pending=FilePendingLog(settings.pending_path),
    )


def build_sweep(engine: ReconciliationEngine) -> ReconciliationSweep:
    """Return a sweep over the same boundaries and marker log as ``engine``."""
    return ReconciliationSweep(engine.ledger, engine.store, engine.pending)
