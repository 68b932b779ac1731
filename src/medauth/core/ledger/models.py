"""Ledger data models --- stage events, ledger events, capabilities.

Pure data holders with no business logic, safe to import from anywhere in
the package without circular-dependency concerns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Identities are opaque account names or addresses (e.g. "0xf39F...2266").
_IDENTITY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:@-]{0,127}$")


def is_identity(value: str) -> bool:
    """Return True if ``value`` is a well-formed identity string."""
    return isinstance(value, str) and bool(_IDENTITY_RE.match(value))


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


class Capability(str, Enum):
    """Capability tags an identity can be granted on the ledger.

    - **ADMINISTRATIVE**: may register products and append stages.
    - **ROOT**: may grant capabilities. Self-granted to the ledger owner at
      bootstrap and its own admin (the admin-of-admin relation).
    """

    ADMINISTRATIVE = "ADMINISTRATIVE"
    ROOT = "ROOT"


# ---------------------------------------------------------------------------
# StageEvent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageEvent:
    """One lifecycle milestone recorded on the ledger.

    Attributes:
        product_id: Product the stage belongs to.
        stage_name: Name of the stage (e.g. "Packaged", "Shipped").
        authenticator: Identity that recorded the stage.
        timestamp: Ledger-assigned UTC instant of recording.
        sequence: Ledger-wide sequence number; strictly increasing.
    """

    product_id: str
    stage_name: str
    authenticator: str
    timestamp: datetime
    sequence: int


# ---------------------------------------------------------------------------
# LedgerEvent
# ---------------------------------------------------------------------------


class LedgerEventKind(str, Enum):
    """Kinds of events emitted by successful ledger mutations."""

    PRODUCT_REGISTERED = "PRODUCT_REGISTERED"
    STAGE_ADDED = "STAGE_ADDED"
    CAPABILITY_GRANTED = "CAPABILITY_GRANTED"


@dataclass(frozen=True)
class LedgerEvent:
    """An event emitted by the ledger after a committed mutation.

    Attributes:
        kind: What happened.
        sequence: Ledger-wide sequence number of the mutation.
        timestamp: Ledger-assigned UTC instant.
        actor: Identity that issued the mutation.
        product_id: Product concerned, or None for capability grants.
        detail: Kind-specific payload (fingerprint, stage name, grantee).
    """

    kind: LedgerEventKind
    sequence: int
    timestamp: datetime
    actor: str
    product_id: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)
