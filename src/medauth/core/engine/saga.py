"""Pending-registration markers for the ledger-then-store registration saga.

Registration writes to two stores that share no transaction. A marker is
written before the ledger call, advanced to ``LEDGER_COMMITTED`` after it,
and cleared once the store insert succeeds. A marker left behind therefore
names exactly the registrations whose second phase never completed, which
is what the reconciliation sweep works from.

Two logs are provided:

- ``InMemoryPendingLog`` for tests and embedded use.
- ``FilePendingLog``, a JSON document rewritten atomically under a
  cross-process file lock on every change.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from medauth.core.fingerprint import format_instant, parse_instant
from medauth.core.locking import locked_file
from medauth.core.store.models import ProductRecord
from medauth.exceptions import UnavailableError


class PendingState(str, Enum):
    """How far a registration got before its marker was last written."""

    PENDING = "PENDING"
    LEDGER_COMMITTED = "LEDGER_COMMITTED"


@dataclass(frozen=True)
class PendingRegistration:
    """A registration whose store write has not been confirmed.

    Attributes:
        record: The full record that registration intends to store.
        state: Saga progress.
        created_at: When the marker was first written.
    """

    record: ProductRecord
    state: PendingState
    created_at: datetime

    @property
    def product_id(self) -> str:
        return self.record.product_id

    @property
    def fingerprint(self) -> str:
        return self.record.fingerprint

    def to_dict(self) -> dict[str, Any]:
        return {
            "record": self.record.to_row(),
            "state": self.state.value,
            "created_at": format_instant(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingRegistration:
        return cls(
            record=ProductRecord.from_row(data["record"]),
            state=PendingState(data["state"]),
            created_at=parse_instant(data["created_at"]),
        )


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


class PendingLog(ABC):
    """Keyed collection of pending-registration markers.

    A product holds at most one marker. ``add`` claims the slot for one
    registration; only the claimant (or the sweep) may replace or clear it.
    """

    @abstractmethod
    def add(self, marker: PendingRegistration) -> bool:
        """Insert ``marker`` unless the product already has one.

        Returns:
            True if the marker was written, False if another marker for
            ``marker.product_id`` is already present.
        """

    @abstractmethod
    def put(self, marker: PendingRegistration) -> None:
        """Insert or replace the marker for ``marker.product_id``."""

    @abstractmethod
    def get(self, product_id: str) -> PendingRegistration | None:
        """Return the marker for ``product_id``, or None."""

    @abstractmethod
    def clear(self, product_id: str) -> None:
        """Remove the marker for ``product_id`` if present."""

    @abstractmethod
    def markers(self) -> list[PendingRegistration]:
        """Return all markers ordered by creation time."""

    def mark_committed(self, marker: PendingRegistration) -> PendingRegistration:
        """Write ``marker`` advanced to ``LEDGER_COMMITTED`` and return it.

        The committed marker is written even if the original was cleared in
        the meantime, so a later store failure always leaves a marker.
        """
        committed = replace(marker, state=PendingState.LEDGER_COMMITTED)
        self.put(committed)
        return committed


class InMemoryPendingLog(PendingLog):
    """Dictionary-backed ``PendingLog``."""

    def __init__(self) -> None:
        self._markers: dict[str, PendingRegistration] = {}
        self._lock = threading.Lock()

    def add(self, marker: PendingRegistration) -> bool:
        with self._lock:
            if marker.product_id in self._markers:
                return False
            self._markers[marker.product_id] = marker
            return True

    def put(self, marker: PendingRegistration) -> None:
        with self._lock:
            self._markers[marker.product_id] = marker

    def get(self, product_id: str) -> PendingRegistration | None:
        with self._lock:
            return self._markers.get(product_id)

    def clear(self, product_id: str) -> None:
        with self._lock:
            self._markers.pop(product_id, None)

    def markers(self) -> list[PendingRegistration]:
        with self._lock:
            return sorted(self._markers.values(), key=lambda m: m.created_at)


class FilePendingLog(PendingLog):
    """``PendingLog`` persisted as a single JSON document.

    Every change re-reads and rewrites the document under an exclusive file
    lock shared with other processes, so concurrent writers never drop each
    other's markers. Writes go through a temporary file and ``os.replace``,
    so readers never observe a half-written file.

    Args:
        path: Location of the JSON document. Parent directories are created
            on first write.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock, locked_file(self._path):
            yield

    def _read(self) -> dict[str, PendingRegistration]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise UnavailableError(f"Cannot read pending log {self._path}: {exc}") from exc
        return {
            pid: PendingRegistration.from_dict(entry)
            for pid, entry in data.get("pending", {}).items()
        }

    def _write(self, markers: dict[str, PendingRegistration]) -> None:
        payload = {
            "pending": {pid: markers[pid].to_dict() for pid in sorted(markers)},
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, sort_keys=True)
            os.replace(tmp, self._path)
        except OSError as exc:
            raise UnavailableError(f"Cannot write pending log {self._path}: {exc}") from exc

    def add(self, marker: PendingRegistration) -> bool:
        with self._locked():
            markers = self._read()
            if marker.product_id in markers:
                return False
            markers[marker.product_id] = marker
            self._write(markers)
            return True

    def put(self, marker: PendingRegistration) -> None:
        with self._locked():
            markers = self._read()
            markers[marker.product_id] = marker
            self._write(markers)

    def get(self, product_id: str) -> PendingRegistration | None:
        with self._locked():
            return self._read().get(product_id)

    def clear(self, product_id: str) -> None:
        with self._locked():
            markers = self._read()
            if markers.pop(product_id, None) is not None:
                self._write(markers)

    def markers(self) -> list[PendingRegistration]:
        with self._locked():
            return sorted(self._read().values(), key=lambda m: m.created_at)
