"""Reconciliation engine --- registration, verification, and stage history.

The engine owns the consistency invariant between the ledger (source of
truth for fingerprints and stage history) and the metadata store (source of
truth for descriptive fields):

    ledger.get_fingerprint(p) == fingerprint(store.get(p))

Registration
------------
1. Validate inputs.
2. Stamp ``manufactured_at = now`` (millisecond precision) and derive
   ``expires_at`` from the shelf-life policy.
3. Compute the fingerprint.
4. Refuse if the ledger already knows the product.
5. Claim the pending marker for the product (refused if another
   registration holds it), then register on the ledger. The ledger write is
   the commit point: if it fails no store write happens.
6. Insert into the store. If that fails the ledger already holds the
   product, so the failure is raised as ``PartialCommitError`` and the marker
   is kept for the reconciliation sweep. The ledger write is never rolled
   back.

Verification
------------
Reads the store, recomputes the fingerprint from the values found there,
reads the ledger, and compares byte-for-byte. Nothing is cached between
calls, so divergence introduced after a previous read is always seen.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from medauth.core.fingerprint import fingerprint as compute_fingerprint
from medauth.core.fingerprint import truncate_to_millis, utc_now
from medauth.core.engine.models import (
    RegistrationResult,
    ShelfLifePolicy,
    VerificationResult,
)
from medauth.core.engine.saga import (
    InMemoryPendingLog,
    PendingLog,
    PendingRegistration,
    PendingState,
)
from medauth.core.history import HistoryEntry, shape_history
from medauth.core.ledger import Capability, Ledger, StageEvent
from medauth.core.store import MetadataStore, ProductRecord
from medauth.exceptions import (
    AlreadyExistsError,
    InvalidArgumentError,
    MedAuthError,
    PartialCommitError,
    UnavailableError,
)

logger = logging.getLogger(__name__)


def _require(operation: str, subject: str | None = None, **fields: str) -> None:
    """Raise InvalidArgumentError naming every empty field."""
    missing = [name for name, value in fields.items() if not value or not value.strip()]
    if missing:
        raise InvalidArgumentError(
            f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required",
            product_id=subject or None,
            operation=operation,
        )


class ReconciliationEngine:
    """Drives registration and verification across the ledger and the store.

    All collaborators are injected, so tests can substitute fakes for both
    boundaries.

    Args:
        ledger: Ledger capability (fingerprints, stage history, grants).
        store: Metadata store capability (descriptive fields).
        identity: Identity the engine acts as on the ledger.
        shelf_life: Policy deciding expiry from product type.
        pending: Saga marker log. Defaults to an in-memory log.
        clock: Source of the current UTC instant.
    """

    def __init__(
        self,
        ledger: Ledger,
        store: MetadataStore,
        identity: str,
        *,
        shelf_life: ShelfLifePolicy | None = None,
        pending: PendingLog | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._identity = identity
        self._shelf_life = shelf_life or ShelfLifePolicy()
        self._pending = pending if pending is not None else InMemoryPendingLog()
        self._clock = clock

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def store(self) -> MetadataStore:
        return self._store

    @property
    def pending(self) -> PendingLog:
        return self._pending

    @property
    def shelf_life(self) -> ShelfLifePolicy:
        return self._shelf_life

    # -- Registration -------------------------------------------------------

    def register(
        self, product_id: str, product_type: str, batch_number: str
    ) -> RegistrationResult:
        """Register a product on the ledger, then in the metadata store.

        Returns:
            The product id, its fingerprint and the stored record.

        Raises:
            InvalidArgumentError: An input is empty.
            AlreadyExistsError: The ledger already holds ``product_id``, or
                another registration of it is pending.
            UnauthorizedError: The engine identity lacks the capability.
            UnavailableError: The ledger could not be reached.
            PartialCommitError: The ledger write succeeded, the store write
                did not.
        """
        _require(
            "register", product_id,
            product_id=product_id, product_type=product_type, batch_number=batch_number,
        )

        manufactured_at = truncate_to_millis(self._clock())
        expires_at = self._shelf_life.expiry_for(product_type, manufactured_at)
        digest = compute_fingerprint(
            product_id, product_type, batch_number, manufactured_at, expires_at
        )
        record = ProductRecord(
            product_id=product_id,
            product_type=product_type,
            batch_number=batch_number,
            manufactured_at=manufactured_at,
            expires_at=expires_at,
            fingerprint=digest,
        )

        if self._ledger.exists(product_id):
            raise AlreadyExistsError(
                f"Product {product_id} already exists on the ledger",
                product_id=product_id, operation="register",
            )

        marker = PendingRegistration(
            record=record,
            state=PendingState.PENDING,
            created_at=truncate_to_millis(self._clock()),
        )
        if not self._pending.add(marker):
            raise AlreadyExistsError(
                f"Product {product_id} has a registration pending; run the "
                "reconciliation sweep before registering it again",
                product_id=product_id, operation="register",
            )
        logger.info("Adding product %s to the ledger", product_id)
        try:
            self._ledger.register_product(self._identity, product_id, digest)
        except UnavailableError:
            # Outcome unknown: keep the marker so the sweep can settle it.
            logger.warning(
                "Ledger unavailable while registering %s; pending marker kept",
                product_id,
            )
            raise
        except MedAuthError:
            # The sweep may have settled the marker and let another caller in.
            if self._pending.get(product_id) == marker:
                self._pending.clear(product_id)
            raise
        self._pending.mark_committed(marker)

        try:
            self._store.insert(record)
        except MedAuthError as exc:
            logger.error(
                "Partial commit for product %s: ledger holds fingerprint %s but "
                "the metadata store insert failed (%s: %s). Run the reconciliation "
                "sweep to replay the store write.",
                product_id, digest, type(exc).__name__, exc,
            )
            raise PartialCommitError(
                f"Product {product_id} was registered on the ledger but the "
                f"metadata store insert failed: {exc}",
                product_id=product_id, fingerprint=digest, operation="register",
            ) from exc

        self._pending.clear(product_id)
        logger.info("Registered product %s with fingerprint %s", product_id, digest)
        return RegistrationResult(product_id=product_id, fingerprint=digest, record=record)

    # -- Verification -------------------------------------------------------

    def verify(self, product_id: str) -> VerificationResult:
        """Recompute a product's fingerprint from the store and compare it.

        A mismatch is a successful verification with ``is_authentic`` False,
        not an error.

        Raises:
            InvalidArgumentError: ``product_id`` is empty.
            NotFoundError: The store (``source="store"``) or the ledger
                (``source="ledger"``) has no such product.
        """
        _require("verify", product_id, product_id=product_id)

        record = self._store.get(product_id)
        ledger_fingerprint = self._ledger.get_fingerprint(product_id)
        store_fingerprint = record.compute_fingerprint()
        is_authentic = store_fingerprint == ledger_fingerprint

        if is_authentic:
            logger.info("Product %s is authentic", product_id)
        else:
            logger.warning(
                "Product %s failed verification: store fingerprint %s, "
                "ledger fingerprint %s",
                product_id, store_fingerprint, ledger_fingerprint,
            )
        return VerificationResult(
            product_id=product_id,
            is_authentic=is_authentic,
            store_fingerprint=store_fingerprint,
            ledger_fingerprint=ledger_fingerprint,
            record=record,
        )

    # -- Stages and history -------------------------------------------------

    def add_stage(self, product_id: str, stage_name: str) -> StageEvent:
        """Append a lifecycle stage, attributed to the engine identity."""
        _require("add_stage", product_id, product_id=product_id, stage_name=stage_name)
        return self._ledger.append_stage(self._identity, product_id, stage_name)

    def get_history(self, product_id: str) -> list[HistoryEntry]:
        """Return the product's stage history in chronological order."""
        _require("get_history", product_id, product_id=product_id)
        return shape_history(self._ledger.get_history(product_id))

    # -- Capabilities -------------------------------------------------------

    def grant_admin(self, identity: str) -> bool:
        """Grant the administrative capability to ``identity``.

        Returns:
            True if the grant is new, False if ``identity`` already held it.
        """
        _require("grant_admin", identity=identity)
        return self._ledger.grant_capability(
            self._identity, identity, Capability.ADMINISTRATIVE
        )
