"""Tests for shaping ledger stage events into history rows."""

from __future__ import annotations

from datetime import datetime, timezone

from medauth.core.history import shape_history
from medauth.core.ledger import StageEvent


def event(name: str, sequence: int) -> StageEvent:
    return StageEvent(
        product_id="P-1",
        stage_name=name,
        authenticator="0xabc",
        timestamp=datetime(2024, 1, 1, 0, 0, sequence, tzinfo=timezone.utc),
        sequence=sequence,
    )


class TestShapeHistory:

    def test_orders_by_sequence(self) -> None:
        rows = shape_history([event("Shipped", 7), event("Packaged", 3)])
        assert [r.stage_name for r in rows] == ["Packaged", "Shipped"]

    def test_positions_start_at_one(self) -> None:
        rows = shape_history([event("A", 1), event("B", 2)])
        assert [r.position for r in rows] == [1, 2]

    def test_timestamp_is_canonical_text(self) -> None:
        row = shape_history([event("A", 5)])[0]
        assert row.timestamp == "2024-01-01T00:00:05.000Z"

    def test_as_dict(self) -> None:
        row = shape_history([event("A", 5)])[0]
        assert row.as_dict() == {
            "position": 1,
            "stage_name": "A",
            "authenticator": "0xabc",
            "timestamp": "2024-01-01T00:00:05.000Z",
            "sequence": 5,
        }

    def test_empty(self) -> None:
        assert shape_history([]) == []
