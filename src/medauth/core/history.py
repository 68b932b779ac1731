"""Lifecycle history view --- display-shaped stage events.

Not a stateful component: ``shape_history`` maps the raw ``StageEvent``
sequence returned by the ledger into ``HistoryEntry`` rows ordered
chronologically by ledger sequence, with timestamps rendered in the
canonical instant format.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from medauth.core.fingerprint import format_instant
from medauth.core.ledger.models import StageEvent


@dataclass(frozen=True)
class HistoryEntry:
    """One row of a product's lifecycle history.

    Attributes:
        position: 1-based position in the history.
        stage_name: Name of the stage.
        authenticator: Identity that recorded the stage.
        recorded_at: Aware UTC instant assigned by the ledger.
        sequence: Ledger sequence number of the stage event.
    """

    position: int
    stage_name: str
    authenticator: str
    recorded_at: datetime
    sequence: int

    @property
    def timestamp(self) -> str:
        """Return ``recorded_at`` in the canonical ISO-8601 format."""
        return format_instant(self.recorded_at)

    def as_dict(self) -> dict[str, object]:
        return {
            "position": self.position,
            "stage_name": self.stage_name,
            "authenticator": self.authenticator,
            "timestamp": self.timestamp,
            "sequence": self.sequence,
        }


def shape_history(events: Iterable[StageEvent]) -> list[HistoryEntry]:
    """Order stage events by ledger sequence and number them from 1."""
    ordered = sorted(events, key=lambda e: e.sequence)
    return [
        HistoryEntry(
            position=index,
            stage_name=event.stage_name,
            authenticator=event.authenticator,
            recorded_at=event.timestamp,
            sequence=event.sequence,
        )
        for index, event in enumerate(ordered, start=1)
    ]
