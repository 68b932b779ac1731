"""Reconciliation sweep --- settle registrations left half-finished.

For every pending marker the sweep compares what the marker intended with
what the ledger and the store actually hold:

- store row present: ``RESOLVED``, marker dropped.
- store row absent, ledger lacks the product: ``DISCARDED``, marker dropped.
- store row absent, ledger fingerprint equals the marker's: ``REPLAYED``,
  the row is inserted from the marker.
- store row absent, ledger fingerprint differs: ``FLAGGED``, marker kept.

With ``replay=False`` the replay case is flagged instead of replayed. A replay
that fails is flagged as well, and so is a marker whose ledger or store
lookup raises: the sweep never raises for a single marker, so one bad entry
cannot block the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from medauth.core.engine.saga import PendingLog, PendingRegistration
from medauth.core.ledger import Ledger
from medauth.core.store import MetadataStore
from medauth.exceptions import MedAuthError, NotFoundError

logger = logging.getLogger(__name__)


class SweepOutcome(str, Enum):
    RESOLVED = "RESOLVED"
    DISCARDED = "DISCARDED"
    REPLAYED = "REPLAYED"
    FLAGGED = "FLAGGED"


@dataclass(frozen=True)
class SweepItem:
    """What the sweep did with one marker.

    Attributes:
        product_id: Product the marker names.
        outcome: Action taken.
        reason: Human-readable explanation.
    """

    product_id: str
    outcome: SweepOutcome
    reason: str

    def as_dict(self) -> dict[str, str]:
        return {
            "product_id": self.product_id,
            "outcome": self.outcome.value,
            "reason": self.reason,
        }


@dataclass
class SweepReport:
    """Aggregate result of one sweep run."""

    items: list[SweepItem] = field(default_factory=list)

    def _by(self, outcome: SweepOutcome) -> list[SweepItem]:
        return [i for i in self.items if i.outcome is outcome]

    @property
    def resolved(self) -> list[SweepItem]:
        return self._by(SweepOutcome.RESOLVED)

    @property
    def discarded(self) -> list[SweepItem]:
        return self._by(SweepOutcome.DISCARDED)

    @property
    def replayed(self) -> list[SweepItem]:
        return self._by(SweepOutcome.REPLAYED)

    @property
    def flagged(self) -> list[SweepItem]:
        return self._by(SweepOutcome.FLAGGED)

    @property
    def is_clean(self) -> bool:
        """True if nothing was left flagged for an operator."""
        return not self.flagged

    def as_dict(self) -> dict[str, object]:
        return {
            "items": [i.as_dict() for i in self.items],
            "summary": {o.value.lower(): len(self._by(o)) for o in SweepOutcome},
        }


class ReconciliationSweep:
    """Walks pending markers and settles each one.

    Args:
        ledger: Ledger capability to check registrations against.
        store: Metadata store to check and replay rows into.
        pending: Marker log produced by the reconciliation engine.
    """

    def __init__(self, ledger: Ledger, store: MetadataStore, pending: PendingLog) -> None:
        self._ledger = ledger
        self._store = store
        self._pending = pending

    def run(self, *, replay: bool = True) -> SweepReport:
        """Settle every pending marker.

        Args:
            replay: Insert missing store rows whose ledger fingerprint matches
                the marker. When False such markers are flagged instead.

        Returns:
            A report listing the outcome for every marker.
        """
        report = SweepReport()
        for marker in self._pending.markers():
            try:
                item = self._settle(marker, replay=replay)
            except MedAuthError as exc:
                item = SweepItem(
                    marker.product_id, SweepOutcome.FLAGGED,
                    f"could not settle marker: {type(exc).__name__}: {exc}",
                )
            report.items.append(item)
            if item.outcome is SweepOutcome.FLAGGED:
                logger.warning("Sweep flagged %s: %s", item.product_id, item.reason)
            else:
                logger.info("Sweep %s %s: %s", item.outcome.value.lower(),
                            item.product_id, item.reason)
        return report

    def _settle(self, marker: PendingRegistration, *, replay: bool) -> SweepItem:
        pid = marker.product_id
        if self._store.contains(pid):
            self._pending.clear(pid)
            return SweepItem(pid, SweepOutcome.RESOLVED, "store row already present")

        try:
            ledger_fingerprint = self._ledger.get_fingerprint(pid)
        except NotFoundError:
            self._pending.clear(pid)
            return SweepItem(pid, SweepOutcome.DISCARDED, "ledger never registered the product")

        if ledger_fingerprint != marker.fingerprint:
            return SweepItem(
                pid, SweepOutcome.FLAGGED,
                f"ledger fingerprint {ledger_fingerprint} differs from pending "
                f"fingerprint {marker.fingerprint}",
            )
        if not replay:
            return SweepItem(pid, SweepOutcome.FLAGGED, "store row missing; replay disabled")

        try:
            self._store.insert(marker.record)
        except MedAuthError as exc:
            return SweepItem(
                pid, SweepOutcome.FLAGGED,
                f"store replay failed: {type(exc).__name__}: {exc}",
            )
        self._pending.clear(pid)
        return SweepItem(pid, SweepOutcome.REPLAYED, "store row replayed from pending marker")
