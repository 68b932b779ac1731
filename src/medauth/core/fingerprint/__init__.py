"""Fingerprint codec --- deterministic identity digests for products.

Re-exports the public names of :mod:`medauth.core.fingerprint.codec` so that
callers can write ``from medauth.core.fingerprint import fingerprint``.
"""

from medauth.core.fingerprint.codec import (
    FINGERPRINT_LENGTH,
    FINGERPRINT_PREFIX,
    canonical_bytes,
    fingerprint,
    format_instant,
    is_fingerprint,
    parse_instant,
    truncate_to_millis,
    utc_now,
)

__all__ = [
    "FINGERPRINT_LENGTH",
    "FINGERPRINT_PREFIX",
    "canonical_bytes",
    "fingerprint",
    "format_instant",
    "is_fingerprint",
    "parse_instant",
    "truncate_to_millis",
    "utc_now",
]
