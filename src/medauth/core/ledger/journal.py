"""Journal-backed ledger --- the in-memory model persisted as JSON Lines.

Each committed mutation is appended to the journal as one JSON object per
line *before* it is applied in memory. Opening a ``JournalLedger`` replays
the journal, so state survives across processes (the CLI opens a fresh
ledger on every invocation).

Several processes may hold the same journal open. Every call therefore
takes an exclusive file lock (see :mod:`medauth.core.locking`), replays the
lines other processes appended since the last call, and only then
authorizes, validates and appends. Two processes registering one product id
see each other's entry: exactly one succeeds.

Journal format::

    {"op": "bootstrap", "owner": "0xf39F..."}
    {"op": "register_product", "sequence": 1, "timestamp": "...", ...}
    {"op": "append_stage", "sequence": 2, "timestamp": "...", ...}

The first line always bootstraps the owner. Lines are never rewritten.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from medauth.core.fingerprint import utc_now
from medauth.core.ledger.ledger import InMemoryLedger
from medauth.core.locking import locked_file
from medauth.exceptions import AlreadyExistsError, UnavailableError

logger = logging.getLogger(__name__)


class JournalLedger(InMemoryLedger):
    """Ledger whose committed mutations are appended to a journal file.

    Args:
        path: Journal file. Created, together with its parent directories,
            if it does not exist.
        owner: Owner identity written to a new journal. For an existing
            journal the recorded owner wins.
        clock: Source of the current UTC instant.

    Raises:
        UnavailableError: If the journal cannot be read, locked or created.
    """

    def __init__(
        self,
        path: Path,
        owner: str,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._path = Path(path)
        self._offset = 0
        self._lines_read = 0
        with locked_file(self._path):
            entries = self._read_new()
            if entries:
                head = entries[0]
                if head.get("op") != "bootstrap":
                    raise UnavailableError(
                        f"Journal {self._path} does not start with a bootstrap entry"
                    )
                recorded = head["owner"]
                if recorded != owner:
                    logger.warning(
                        "Journal %s is owned by %s; ignoring configured owner %s",
                        self._path, recorded, owner,
                    )
                owner = recorded
            super().__init__(owner, clock=clock)
            if entries:
                self._replay(entries[1:])
                logger.debug("Replayed %d journal entries from %s", len(entries) - 1, self._path)
            else:
                self._append({"op": "bootstrap", "owner": owner})

    @property
    def path(self) -> Path:
        """Return the journal file path."""
        return self._path

    @contextmanager
    def _synchronized(self) -> Iterator[None]:
        with self._lock, locked_file(self._path):
            entries = self._read_new()
            if entries:
                self._replay(entries)
                logger.debug(
                    "Caught up on %d journal entries appended to %s",
                    len(entries), self._path,
                )
            yield

    def _replay(self, entries: list[dict[str, Any]]) -> None:
        for entry in entries:
            try:
                self._apply(entry)
            except AlreadyExistsError as exc:
                # The first registration wins; later ones are never applied.
                logger.warning("Ignoring journal entry in %s: %s", self._path, exc)
                self._sequence = int(entry["sequence"])
            except (KeyError, ValueError) as exc:
                raise UnavailableError(
                    f"Malformed ledger journal entry in {self._path}: {entry!r}"
                ) from exc

    def _read_new(self) -> list[dict[str, Any]]:
        """Parse the complete lines appended since the last read."""
        try:
            with self._path.open("rb") as fh:
                fh.seek(self._offset)
                data = fh.read()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise UnavailableError(f"Cannot read ledger journal {self._path}: {exc}") from exc
        complete = data[: data.rfind(b"\n") + 1]
        entries: list[dict[str, Any]] = []
        for line in complete.decode("utf-8", errors="replace").splitlines():
            self._lines_read += 1
            if not line.strip():
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise UnavailableError(
                    f"Corrupt ledger journal {self._path} at line {self._lines_read}: {exc}"
                ) from exc
        self._offset += len(complete)
        return entries

    def _append(self, entry: dict[str, Any]) -> None:
        line = (json.dumps(entry, sort_keys=True) + "\n").encode("utf-8")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("ab") as fh:
                fh.write(line)
                self._offset = fh.tell()
        except OSError as exc:
            raise UnavailableError(
                f"Cannot write ledger journal {self._path}: {exc}",
                product_id=entry.get("product_id"),
                operation=entry.get("op"),
            ) from exc
        self._lines_read += 1

    def _commit(self, entry: dict[str, Any]) -> None:
        self._append(entry)
