"""Access-controlled ledger --- capability interface and in-memory model.

``Ledger`` is the capability interface the reconciliation engine consumes.
``InMemoryLedger`` reproduces the ledger's state machine exactly:

- Per product: **Unregistered -> Registered**, with the fingerprint stored
  immutably on registration.
- Per product: an append-only list of ``StageEvent`` records.
- Ledger-wide: role grants held by an ``AuthorizationPolicy``.

Every mutating call runs, under one lock, in three phases:

1. **Authorize** through the policy object.
2. **Validate** arguments and current state.
3. **Commit** a mutation entry via ``_commit`` and then ``_apply`` it.

No state is touched before phase 3, so a rejected call leaves the ledger
exactly as it was. The lock is the ledger's own write serialization:
concurrent registrations of the same product id resolve to exactly one
success, every other caller observing ``AlreadyExistsError``.

Subclasses persist state by overriding ``_commit`` and extend the lock to
other processes by overriding ``_synchronized`` (see
:mod:`medauth.core.ledger.journal`).
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from medauth.core.fingerprint import format_instant, parse_instant, utc_now
from medauth.core.ledger.models import (
    Capability,
    LedgerEvent,
    LedgerEventKind,
    StageEvent,
    is_identity,
)
from medauth.core.ledger.policy import AuthorizationPolicy
from medauth.exceptions import (
    AlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Capability interface
# ---------------------------------------------------------------------------


class Ledger(ABC):
    """Capability interface over an append-only, role-gated ledger.

    All mutating operations take the caller identity explicitly. Reads are
    public and never consult the caller.
    """

    @abstractmethod
    def register_product(self, caller: str, product_id: str, fingerprint: str) -> None:
        """Register a product fingerprint.

        Raises:
            UnauthorizedError: Caller lacks the administrative capability.
            InvalidArgumentError: Empty product id or fingerprint.
            AlreadyExistsError: Product already registered.
        """

    @abstractmethod
    def append_stage(self, caller: str, product_id: str, stage_name: str) -> StageEvent:
        """Append a lifecycle stage to a registered product.

        Raises:
            UnauthorizedError: Caller lacks the administrative capability.
            InvalidArgumentError: Empty stage name.
            NotFoundError: Product not registered.
        """

    @abstractmethod
    def get_fingerprint(self, product_id: str) -> str:
        """Return the registered fingerprint.

        Raises:
            NotFoundError: Product not registered.
        """

    @abstractmethod
    def get_history(self, product_id: str) -> tuple[StageEvent, ...]:
        """Return the product's stage events in insertion order.

        Raises:
            NotFoundError: Product not registered.
        """

    @abstractmethod
    def exists(self, product_id: str) -> bool:
        """Return True if the product is registered. Never fails."""

    @abstractmethod
    def grant_capability(
        self,
        caller: str,
        identity: str,
        capability: Capability = Capability.ADMINISTRATIVE,
    ) -> bool:
        """Grant ``capability`` to ``identity``.

        Returns:
            True if the grant is new, False if it was already held.

        Raises:
            UnauthorizedError: Caller lacks the capability's admin.
            InvalidArgumentError: Malformed identity.
        """

    @abstractmethod
    def has_capability(self, identity: str, capability: Capability) -> bool:
        """Return True if ``identity`` holds ``capability``."""

    def grant_administrative_capability(self, caller: str, identity: str) -> bool:
        """Grant the administrative capability to ``identity``."""
        return self.grant_capability(caller, identity, Capability.ADMINISTRATIVE)


# ---------------------------------------------------------------------------
# In-memory model
# ---------------------------------------------------------------------------


class InMemoryLedger(Ledger):
    """Reference ledger holding all state in process memory.

    Args:
        owner: Identity bootstrapped with root and administrative capability.
        clock: Source of the current UTC instant. Ledger timestamps have
            second precision, like block timestamps, and never decrease.
    """

    def __init__(
        self,
        owner: str,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not is_identity(owner):
            raise InvalidArgumentError(f"Malformed owner identity: {owner!r}")
        self._clock = clock
        self._lock = threading.RLock()
        self._policy = AuthorizationPolicy(owner)
        self._fingerprints: dict[str, str] = {}
        self._stages: dict[str, list[StageEvent]] = {}
        self._events: list[LedgerEvent] = []
        self._sequence = 0
        self._last_timestamp: datetime | None = None

    @property
    def owner(self) -> str:
        """Return the bootstrap owner identity."""
        return self._policy.owner

    @property
    def policy(self) -> AuthorizationPolicy:
        """Return the authorization policy consulted before every call."""
        return self._policy

    # -- Mutations ----------------------------------------------------------

    def register_product(self, caller: str, product_id: str, fingerprint: str) -> None:
        with self._synchronized():
            self._policy.enforce(caller, "register_product", product_id=product_id)
            if not product_id:
                raise InvalidArgumentError(
                    "Product ID is required", operation="register_product",
                )
            if not fingerprint:
                raise InvalidArgumentError(
                    "Fingerprint is required",
                    product_id=product_id, operation="register_product",
                )
            if product_id in self._fingerprints:
                raise AlreadyExistsError(
                    f"Product {product_id} already exists on the ledger",
                    product_id=product_id, operation="register_product",
                )
            self._record({
                "op": "register_product",
                "actor": caller,
                "product_id": product_id,
                "fingerprint": fingerprint,
            })
        logger.info("Registered product %s with fingerprint %s", product_id, fingerprint)

    def append_stage(self, caller: str, product_id: str, stage_name: str) -> StageEvent:
        with self._synchronized():
            self._policy.enforce(caller, "append_stage", product_id=product_id)
            if not stage_name:
                raise InvalidArgumentError(
                    "Stage name is required",
                    product_id=product_id, operation="append_stage",
                )
            self._require_registered(product_id, "append_stage")
            self._record({
                "op": "append_stage",
                "actor": caller,
                "product_id": product_id,
                "stage_name": stage_name,
            })
            event = self._stages[product_id][-1]
        logger.info("Added stage %r to product %s", stage_name, product_id)
        return event

    def grant_capability(
        self,
        caller: str,
        identity: str,
        capability: Capability = Capability.ADMINISTRATIVE,
    ) -> bool:
        capability = Capability(capability)
        with self._synchronized():
            self._policy.enforce_grant(caller, capability)
            if not is_identity(identity):
                raise InvalidArgumentError(
                    f"Malformed identity: {identity!r}", operation="grant_capability",
                )
            if self._policy.has(identity, capability):
                return False
            self._record({
                "op": "grant_capability",
                "actor": caller,
                "identity": identity,
                "capability": capability.value,
            })
        logger.info("Granted %s to %s", capability.value, identity)
        return True

    # -- Reads --------------------------------------------------------------

    def get_fingerprint(self, product_id: str) -> str:
        with self._synchronized():
            self._require_registered(product_id, "get_fingerprint")
            return self._fingerprints[product_id]

    def get_history(self, product_id: str) -> tuple[StageEvent, ...]:
        with self._synchronized():
            self._require_registered(product_id, "get_history")
            return tuple(self._stages[product_id])

    def exists(self, product_id: str) -> bool:
        with self._synchronized():
            return product_id in self._fingerprints

    def has_capability(self, identity: str, capability: Capability) -> bool:
        with self._synchronized():
            return self._policy.has(identity, Capability(capability))

    def events(self) -> tuple[LedgerEvent, ...]:
        """Return every emitted ledger event in commit order."""
        with self._synchronized():
            return tuple(self._events)

    @property
    def product_count(self) -> int:
        """Return the number of registered products."""
        with self._synchronized():
            return len(self._fingerprints)

    # -- Internals ----------------------------------------------------------

    @contextmanager
    def _synchronized(self) -> Iterator[None]:
        """Hold the ledger lock for one authorize-validate-commit step."""
        with self._lock:
            yield

    def _require_registered(self, product_id: str, operation: str) -> None:
        if product_id not in self._fingerprints:
            raise NotFoundError(
                f"Product {product_id} not found on the ledger",
                source="ledger", product_id=product_id, operation=operation,
            )

    def _next_timestamp(self) -> datetime:
        now = self._clock().replace(microsecond=0)
        if self._last_timestamp is not None and now < self._last_timestamp:
            return self._last_timestamp
        return now

    def _record(self, entry: dict[str, Any]) -> None:
        """Stamp a mutation entry, commit it, then apply it."""
        entry["sequence"] = self._sequence + 1
        entry["timestamp"] = format_instant(self._next_timestamp())
        self._commit(entry)
        self._apply(entry)

    def _commit(self, entry: dict[str, Any]) -> None:
        """Make a mutation durable before it is applied. No-op in memory."""

    def _apply(self, entry: dict[str, Any]) -> None:
        """Apply a committed mutation entry to in-memory state.

        Raises:
            AlreadyExistsError: The entry registers a product that already
                holds a fingerprint. Registered fingerprints never change.
        """
        op = entry["op"]
        sequence = int(entry["sequence"])
        timestamp = parse_instant(entry["timestamp"])
        actor = entry["actor"]

        if op == "register_product":
            product_id = entry["product_id"]
            if product_id in self._fingerprints:
                raise AlreadyExistsError(
                    f"Product {product_id} is already registered; refusing to "
                    f"replace its fingerprint (sequence {sequence})",
                    product_id=product_id, operation="register_product",
                )
            self._fingerprints[product_id] = entry["fingerprint"]
            self._stages[product_id] = []
            event = LedgerEvent(
                kind=LedgerEventKind.PRODUCT_REGISTERED,
                sequence=sequence, timestamp=timestamp, actor=actor,
                product_id=product_id,
                detail={"fingerprint": entry["fingerprint"]},
            )
        elif op == "append_stage":
            product_id = entry["product_id"]
            self._stages[product_id].append(StageEvent(
                product_id=product_id,
                stage_name=entry["stage_name"],
                authenticator=actor,
                timestamp=timestamp,
                sequence=sequence,
            ))
            event = LedgerEvent(
                kind=LedgerEventKind.STAGE_ADDED,
                sequence=sequence, timestamp=timestamp, actor=actor,
                product_id=product_id,
                detail={"stage_name": entry["stage_name"]},
            )
        elif op == "grant_capability":
            self._policy.add_grant(entry["identity"], Capability(entry["capability"]))
            event = LedgerEvent(
                kind=LedgerEventKind.CAPABILITY_GRANTED,
                sequence=sequence, timestamp=timestamp, actor=actor,
                detail={"identity": entry["identity"], "capability": entry["capability"]},
            )
        else:
            raise ValueError(f"Unknown ledger operation: {op!r}")

        self._events.append(event)
        self._sequence = sequence
        self._last_timestamp = timestamp
