"""Reconciliation engine data models --- shelf life policy and results.

``ShelfLifePolicy`` decides the expiry of a newly registered product. The
default is two calendar years from manufacture, with optional overrides per
product type. Calendar arithmetic overflows the way a JavaScript
``Date.setFullYear`` does: 29 February plus one year is 1 March.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from medauth.core.store.models import ProductRecord


# ---------------------------------------------------------------------------
# Shelf life
# ---------------------------------------------------------------------------


def _add_months(instant: datetime, months: int) -> datetime:
    total = instant.month - 1 + months
    year = instant.year + total // 12
    month = total % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    overflow = max(0, instant.day - last_day)
    shifted = instant.replace(year=year, month=month, day=min(instant.day, last_day))
    return shifted + timedelta(days=overflow)


@dataclass(frozen=True)
class ShelfLife:
    """A shelf-life window expressed in calendar units.

    Attributes:
        years: Whole calendar years.
        months: Whole calendar months.
        days: Whole days, added after years and months.
    """

    years: int = 0
    months: int = 0
    days: int = 0

    def validate(self) -> None:
        """Raise ValueError if the window is negative or empty."""
        for name in ("years", "months", "days"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(
                    f"Shelf life '{name}' must be a non-negative integer, got {value!r}"
                )
        if self.years == 0 and self.months == 0 and self.days == 0:
            raise ValueError("Shelf life must be longer than zero")

    def apply(self, instant: datetime) -> datetime:
        """Return ``instant`` advanced by this window."""
        shifted = _add_months(instant, self.years * 12 + self.months)
        return shifted + timedelta(days=self.days)

    def as_dict(self) -> dict[str, int]:
        return {"years": self.years, "months": self.months, "days": self.days}


DEFAULT_SHELF_LIFE = ShelfLife(years=2)


@dataclass(frozen=True)
class ShelfLifePolicy:
    """Shelf life per product type, with a default for unlisted types.

    Attributes:
        default: Window used when ``product_type`` has no override.
        overrides: Product type to window mapping.
    """

    default: ShelfLife = DEFAULT_SHELF_LIFE
    overrides: dict[str, ShelfLife] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.default.validate()
        for window in self.overrides.values():
            window.validate()

    def window_for(self, product_type: str) -> ShelfLife:
        return self.overrides.get(product_type, self.default)

    def expiry_for(self, product_type: str, manufactured_at: datetime) -> datetime:
        """Return the expiry instant of a product manufactured at ``manufactured_at``."""
        return self.window_for(product_type).apply(manufactured_at)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a successful registration."""

    product_id: str
    fingerprint: str
    record: ProductRecord

    def as_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "fingerprint": self.fingerprint,
            "record": self.record.as_dict(),
        }


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification, authentic or not.

    Both digests and the record are always present so that a failed
    verification can be audited, not merely reported as a boolean.

    Attributes:
        product_id: Product verified.
        is_authentic: True iff ``store_fingerprint == ledger_fingerprint``.
        store_fingerprint: Fingerprint recomputed from the store's values.
        ledger_fingerprint: Fingerprint registered on the ledger.
        record: The store record the recomputation used.
    """

    product_id: str
    is_authentic: bool
    store_fingerprint: str
    ledger_fingerprint: str
    record: ProductRecord

    def as_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "is_authentic": self.is_authentic,
            "store_fingerprint": self.store_fingerprint,
            "ledger_fingerprint": self.ledger_fingerprint,
            "record": self.record.as_dict(),
        }
