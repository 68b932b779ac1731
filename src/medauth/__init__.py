"""MedAuth: Tamper-evident product authenticity anchored on an access-controlled ledger."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"
