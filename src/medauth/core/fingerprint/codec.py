"""Canonical encoding and fingerprinting of product identity fields.

The fingerprint binds the five identity fields of a product together so that
any out-of-band change to the descriptive copy is detectable. Producer and
verifier must agree bit-for-bit, so every step here is fixed:

- **Instant format:** ISO-8601 UTC with millisecond precision and a ``Z``
  suffix, e.g. ``2024-01-01T00:00:00.000Z``.
- **Encoding:** a magic header, a field count, then one record per field of
  ``tag (1 byte) | length (4 bytes, big-endian) | UTF-8 payload``. The length
  prefix makes field boundaries unambiguous: ``("ab", "c")`` and
  ``("a", "bc")`` encode differently.
- **Hash:** SHA3-256, rendered as ``0x`` followed by 64 lowercase hex digits.

All functions are pure. Malformed inputs (naive datetimes) are rejected by
``format_instant`` before any hashing happens.
"""

from __future__ import annotations

import hashlib
import re
import struct
from datetime import datetime, timezone

from medauth.exceptions import InvalidArgumentError

FINGERPRINT_PREFIX: str = "0x"
FINGERPRINT_LENGTH: int = 66

_FINGERPRINT_RE = re.compile(r"^0x[0-9a-f]{64}$")

# Bump the trailing version byte if the record layout ever changes.
_MAGIC: bytes = b"MAFP\x01"

TAG_TEXT: bytes = b"s"
TAG_INSTANT: bytes = b"t"


# ---------------------------------------------------------------------------
# Instant formatting
# ---------------------------------------------------------------------------


def format_instant(instant: datetime) -> str:
    """Render an aware datetime in the canonical instant format.

    Sub-millisecond precision is truncated, not rounded.

    Args:
        instant: A timezone-aware datetime.

    Returns:
        ISO-8601 UTC text such as ``2024-03-05T10:20:30.123Z``.

    Raises:
        InvalidArgumentError: If ``instant`` is naive.
    """
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise InvalidArgumentError(
            f"Instant must be timezone-aware, got naive {instant!r}"
        )
    utc = instant.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def parse_instant(text: str) -> datetime:
    """Parse ISO-8601 text back into an aware UTC datetime.

    Accepts a trailing ``Z`` or an explicit offset. Text without any offset
    is rejected because its instant is ambiguous.

    Raises:
        InvalidArgumentError: If the text is not a valid aware timestamp.
    """
    raw = text.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise InvalidArgumentError(f"Invalid ISO-8601 instant: {text!r}") from exc
    if parsed.tzinfo is None:
        raise InvalidArgumentError(f"Instant has no UTC offset: {text!r}")
    return parsed.astimezone(timezone.utc)


def utc_now() -> datetime:
    """Return the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def truncate_to_millis(instant: datetime) -> datetime:
    """Drop sub-millisecond precision so the instant survives a text round trip."""
    return instant.replace(microsecond=(instant.microsecond // 1000) * 1000)


# ---------------------------------------------------------------------------
# Canonical encoding
# ---------------------------------------------------------------------------


def _encode_field(tag: bytes, value: str) -> bytes:
    payload = value.encode("utf-8")
    return tag + struct.pack(">I", len(payload)) + payload


def canonical_bytes(
    product_id: str,
    product_type: str,
    batch_number: str,
    manufactured_at: datetime,
    expires_at: datetime,
) -> bytes:
    """Encode the identity tuple in its canonical, type-tagged form.

    Field order is fixed: product id, product type, batch number,
    manufacturing instant, expiry instant.

    Returns:
        The canonical byte string fed to the hash function.
    """
    fields = (
        (TAG_TEXT, product_id),
        (TAG_TEXT, product_type),
        (TAG_TEXT, batch_number),
        (TAG_INSTANT, format_instant(manufactured_at)),
        (TAG_INSTANT, format_instant(expires_at)),
    )
    parts = [_MAGIC, struct.pack(">H", len(fields))]
    parts.extend(_encode_field(tag, value) for tag, value in fields)
    return b"".join(parts)


def fingerprint(
    product_id: str,
    product_type: str,
    batch_number: str,
    manufactured_at: datetime,
    expires_at: datetime,
) -> str:
    """Compute the identity fingerprint of a product.

    Identical inputs always produce identical output; changing any field,
    swapping two fields, or changing the instant formatting changes it.

    Returns:
        Fingerprint string in ``0x<64-hex-chars>`` format.
    """
    encoded = canonical_bytes(
        product_id, product_type, batch_number, manufactured_at, expires_at
    )
    return FINGERPRINT_PREFIX + hashlib.sha3_256(encoded).hexdigest()


def is_fingerprint(value: str) -> bool:
    """Return True if ``value`` is a well-formed fingerprint string."""
    return bool(_FINGERPRINT_RE.match(value))
