"""Product identity record --- the descriptive copy held by the metadata store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from medauth.core.fingerprint import fingerprint as compute_fingerprint
from medauth.core.fingerprint import format_instant, parse_instant


@dataclass(frozen=True)
class ProductRecord:
    """A product's descriptive fields plus the fingerprint taken at registration.

    Attributes:
        product_id: Opaque unique identifier; the store's primary key.
        product_type: Product type (e.g. "Aspirin").
        batch_number: Manufacturing batch number.
        manufactured_at: Aware UTC instant of registration.
        expires_at: Aware UTC instant of expiry.
        fingerprint: Fingerprint in ``0x<64-hex>`` format as registered.
    """

    product_id: str
    product_type: str
    batch_number: str
    manufactured_at: datetime
    expires_at: datetime
    fingerprint: str

    def compute_fingerprint(self) -> str:
        """Recompute the fingerprint from the record's current field values."""
        return compute_fingerprint(
            self.product_id,
            self.product_type,
            self.batch_number,
            self.manufactured_at,
            self.expires_at,
        )

    def to_row(self) -> dict[str, str]:
        """Serialize to the column layout of the ``products`` table."""
        return {
            "product_id": self.product_id,
            "product_type": self.product_type,
            "batch_number": self.batch_number,
            "manufacturing_date": format_instant(self.manufactured_at),
            "expiry_date": format_instant(self.expires_at),
            "product_hash": self.fingerprint,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ProductRecord:
        """Build a record from a ``products`` row (column-name mapping)."""
        return cls(
            product_id=row["product_id"],
            product_type=row["product_type"],
            batch_number=row["batch_number"],
            manufactured_at=parse_instant(row["manufacturing_date"]),
            expires_at=parse_instant(row["expiry_date"]),
            fingerprint=row["product_hash"],
        )

    def as_dict(self) -> dict[str, str]:
        """Return a JSON-friendly mapping using the record's field names."""
        return {
            "product_id": self.product_id,
            "product_type": self.product_type,
            "batch_number": self.batch_number,
            "manufactured_at": format_instant(self.manufactured_at),
            "expires_at": format_instant(self.expires_at),
            "fingerprint": self.fingerprint,
        }
