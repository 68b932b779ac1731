"""Tests for the in-memory ledger state machine.

Covers:
    - Registration, fingerprint immutability, duplicate refusal.
    - Stage appends, history order, timestamps.
    - Authorization gate: a refused call changes nothing.
    - Capability grants and emitted events.
    - Concurrent registration of one product id.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from medauth.core.ledger import Capability, InMemoryLedger, LedgerEventKind
from medauth.exceptions import (
    AlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
    UnauthorizedError,
)

FP_A = "0x" + "a" * 64
FP_B = "0x" + "b" * 64


class TestRegisterProduct:

    def test_register_then_read(self, ledger: InMemoryLedger, owner: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        assert ledger.exists("P-1")
        assert ledger.get_fingerprint("P-1") == FP_A
        assert ledger.get_history("P-1") == ()

    def test_duplicate_refused_and_fingerprint_kept(self, ledger: InMemoryLedger, owner: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        with pytest.raises(AlreadyExistsError):
            ledger.register_product(owner, "P-1", FP_B)
        assert ledger.get_fingerprint("P-1") == FP_A

    def test_empty_product_id_rejected(self, ledger: InMemoryLedger, owner: str) -> None:
        with pytest.raises(InvalidArgumentError):
            ledger.register_product(owner, "", FP_A)

    def test_empty_fingerprint_rejected(self, ledger: InMemoryLedger, owner: str) -> None:
        with pytest.raises(InvalidArgumentError):
            ledger.register_product(owner, "P-1", "")
        assert not ledger.exists("P-1")

    def test_unknown_product_reads(self, ledger: InMemoryLedger) -> None:
        assert not ledger.exists("P-404")
        with pytest.raises(NotFoundError) as excinfo:
            ledger.get_fingerprint("P-404")
        assert excinfo.value.source == "ledger"
        with pytest.raises(NotFoundError):
            ledger.get_history("P-404")

    def test_product_count(self, ledger: InMemoryLedger, owner: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        ledger.register_product(owner, "P-2", FP_B)
        assert ledger.product_count == 2


class TestAppendStage:

    def test_history_in_insertion_order(self, ledger: InMemoryLedger, owner: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        for stage in ("Packaged", "Shipped", "Received"):
            ledger.append_stage(owner, "P-1", stage)
        history = ledger.get_history("P-1")
        assert [e.stage_name for e in history] == ["Packaged", "Shipped", "Received"]
        assert all(e.authenticator == owner for e in history)

    def test_sequences_strictly_increase(self, ledger: InMemoryLedger, owner: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        events = [ledger.append_stage(owner, "P-1", s) for s in ("A", "B", "C")]
        sequences = [e.sequence for e in events]
        assert sequences == sorted(sequences)
        assert len(set(sequences)) == 3

    def test_timestamp_is_second_precision_utc(self, ledger: InMemoryLedger, owner: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        event = ledger.append_stage(owner, "P-1", "Packaged")
        assert event.timestamp.microsecond == 0
        assert event.timestamp.tzinfo is not None

    def test_timestamps_never_decrease(self, owner: str, make_clock) -> None:
        backwards = make_clock(
            start=datetime(2024, 1, 1, 12, tzinfo=timezone.utc),
            step=timedelta(seconds=-10),
        )
        ledger = InMemoryLedger(owner, clock=backwards)
        ledger.register_product(owner, "P-1", FP_A)
        first = ledger.append_stage(owner, "P-1", "A")
        second = ledger.append_stage(owner, "P-1", "B")
        assert second.timestamp >= first.timestamp

    def test_unregistered_product(self, ledger: InMemoryLedger, owner: str) -> None:
        with pytest.raises(NotFoundError):
            ledger.append_stage(owner, "P-404", "Packaged")

    def test_empty_stage_name(self, ledger: InMemoryLedger, owner: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        with pytest.raises(InvalidArgumentError):
            ledger.append_stage(owner, "P-1", "")
        assert ledger.get_history("P-1") == ()

    def test_history_snapshot_is_immutable(self, ledger: InMemoryLedger, owner: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        snapshot = ledger.get_history("P-1")
        ledger.append_stage(owner, "P-1", "Packaged")
        assert snapshot == ()


class TestAuthorizationGate:
    """A caller without the required capability changes nothing."""

    def test_stranger_cannot_register(self, ledger: InMemoryLedger, stranger: str) -> None:
        with pytest.raises(UnauthorizedError):
            ledger.register_product(stranger, "P-1", FP_A)
        assert not ledger.exists("P-1")
        assert ledger.events() == ()

    def test_stranger_cannot_append(self, ledger: InMemoryLedger, owner: str, stranger: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        with pytest.raises(UnauthorizedError):
            ledger.append_stage(stranger, "P-1", "Packaged")
        assert ledger.get_history("P-1") == ()

    def test_authorization_checked_before_existence(self, ledger: InMemoryLedger, stranger: str) -> None:
        with pytest.raises(UnauthorizedError):
            ledger.append_stage(stranger, "P-404", "Packaged")

    def test_stranger_cannot_grant(self, ledger: InMemoryLedger, admin: str, stranger: str) -> None:
        with pytest.raises(UnauthorizedError):
            ledger.grant_capability(stranger, admin)
        assert not ledger.has_capability(admin, Capability.ADMINISTRATIVE)


class TestGrantCapability:

    def test_grant_enables_registration(self, ledger: InMemoryLedger, owner: str, admin: str) -> None:
        assert ledger.grant_administrative_capability(owner, admin) is True
        ledger.register_product(admin, "P-1", FP_A)
        assert ledger.get_fingerprint("P-1") == FP_A

    def test_regrant_is_noop(self, ledger: InMemoryLedger, owner: str, admin: str) -> None:
        ledger.grant_capability(owner, admin)
        before = len(ledger.events())
        assert ledger.grant_capability(owner, admin) is False
        assert len(ledger.events()) == before

    def test_admin_cannot_grant_further(self, ledger: InMemoryLedger, owner: str, admin: str, stranger: str) -> None:
        ledger.grant_capability(owner, admin)
        with pytest.raises(UnauthorizedError):
            ledger.grant_capability(admin, stranger)

    def test_malformed_identity_rejected(self, ledger: InMemoryLedger, owner: str) -> None:
        with pytest.raises(InvalidArgumentError):
            ledger.grant_capability(owner, "not an identity")

    def test_root_grant(self, ledger: InMemoryLedger, owner: str, admin: str, stranger: str) -> None:
        ledger.grant_capability(owner, admin, Capability.ROOT)
        assert ledger.grant_capability(admin, stranger) is True


class TestEvents:

    def test_each_mutation_emits_one_event(self, ledger: InMemoryLedger, owner: str, admin: str) -> None:
        ledger.register_product(owner, "P-1", FP_A)
        ledger.append_stage(owner, "P-1", "Packaged")
        ledger.grant_capability(owner, admin)
        kinds = [e.kind for e in ledger.events()]
        assert kinds == [
            LedgerEventKind.PRODUCT_REGISTERED,
            LedgerEventKind.STAGE_ADDED,
            LedgerEventKind.CAPABILITY_GRANTED,
        ]
        registered = ledger.events()[0]
        assert registered.product_id == "P-1"
        assert registered.detail == {"fingerprint": FP_A}
        assert registered.actor == owner


class TestConcurrency:

    def test_one_winner_for_same_product_id(self, ledger: InMemoryLedger, owner: str) -> None:
        workers = 16
        barrier = threading.Barrier(workers)
        outcomes: list[str] = []
        lock = threading.Lock()

        def register(n: int) -> None:
            barrier.wait()
            try:
                ledger.register_product(owner, "P-1", f"0x{n:064x}")
                result = "ok"
            except AlreadyExistsError:
                result = "dup"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=register, args=(n,)) for n in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("dup") == workers - 1
        assert ledger.product_count == 1


class TestConstruction:

    def test_malformed_owner_rejected(self) -> None:
        with pytest.raises(InvalidArgumentError):
            InMemoryLedger("")
