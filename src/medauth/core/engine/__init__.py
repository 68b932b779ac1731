"""Reconciliation engine --- registration saga, verification, and the sweep.

- ``models``: ``ShelfLife``, ``ShelfLifePolicy``, result data classes.
- ``saga``: pending-registration markers and their logs.
- ``engine``: ``ReconciliationEngine``.
- ``sweep``: ``ReconciliationSweep`` and its report.
"""

from medauth.core.engine.engine import ReconciliationEngine
from medauth.core.engine.models import (
    DEFAULT_SHELF_LIFE,
    RegistrationResult,
    ShelfLife,
    ShelfLifePolicy,
    VerificationResult,
)
from medauth.core.engine.saga import (
    FilePendingLog,
    InMemoryPendingLog,
    PendingLog,
    PendingRegistration,
    PendingState,
)
from medauth.core.engine.sweep import (
    ReconciliationSweep,
    SweepItem,
    SweepOutcome,
    SweepReport,
)

__all__ = [
    "DEFAULT_SHELF_LIFE",
    "FilePendingLog",
    "InMemoryPendingLog",
    "PendingLog",
    "PendingRegistration",
    "PendingState",
    "ReconciliationEngine",
    "ReconciliationSweep",
    "RegistrationResult",
    "ShelfLife",
    "ShelfLifePolicy",
    "SweepItem",
    "SweepOutcome",
    "SweepReport",
    "VerificationResult",
]
