"""Access-control ledger model --- role-gated registration and stage history.

The package is split into focused submodules:

- ``models``: ``Capability``, ``StageEvent``, ``LedgerEvent`` data classes.
- ``policy``: ``AuthorizationPolicy``, the single place where operation
  requirements are evaluated.
- ``ledger``: the ``Ledger`` capability interface and ``InMemoryLedger``.
- ``journal``: ``JournalLedger``, the in-memory model persisted as JSON Lines.
"""

from medauth.core.ledger.journal import JournalLedger
from medauth.core.ledger.ledger import InMemoryLedger, Ledger
from medauth.core.ledger.models import (
    Capability,
    LedgerEvent,
    LedgerEventKind,
    StageEvent,
    is_identity,
)
from medauth.core.ledger.policy import (
    OPERATION_REQUIREMENTS,
    AuthorizationPolicy,
    Requirement,
)

__all__ = [
    "AuthorizationPolicy",
    "Capability",
    "InMemoryLedger",
    "JournalLedger",
    "Ledger",
    "LedgerEvent",
    "LedgerEventKind",
    "OPERATION_REQUIREMENTS",
    "Requirement",
    "StageEvent",
    "is_identity",
]
