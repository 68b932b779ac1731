"""MedAuth exception hierarchy.

All public exceptions inherit from MedAuthError, giving callers a single
base class to catch when they want to handle any MedAuth-specific failure
without swallowing unrelated errors.

Every error optionally carries the ``product_id`` and ``operation`` it
concerns so that a failure can be diagnosed from its message alone.
"""

from __future__ import annotations


class MedAuthError(Exception):
    """Base exception for all MedAuth errors.

    Args:
        message: Human-readable description of the failure.
        product_id: Product the failure concerns, if any.
        operation: Name of the operation that failed, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        product_id: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.product_id = product_id
        self.operation = operation
        super().__init__(message)

    def context(self) -> dict[str, str]:
        """Return the non-empty context fields as a dictionary."""
        ctx: dict[str, str] = {"error": type(self).__name__}
        if self.operation:
            ctx["operation"] = self.operation
        if self.product_id:
            ctx["product_id"] = self.product_id
        if self.__cause__ is not None:
            ctx["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return ctx


class InvalidArgumentError(MedAuthError):
    """Raised for malformed or missing input. Never retried automatically."""


class UnauthorizedError(MedAuthError):
    """Raised when the caller lacks the capability an operation requires.

    Attributes:
        identity: The identity whose capability check failed.
        capability: Name of the missing capability.
    """

    def __init__(
        self,
        message: str,
        *,
        identity: str,
        capability: str,
        product_id: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.identity = identity
        self.capability = capability
        super().__init__(message, product_id=product_id, operation=operation)


class NotFoundError(MedAuthError):
    """Raised when a referenced product is absent.

    Attributes:
        source: Which side reported the absence, ``"ledger"`` or
            ``"store"``. Ledger and store disagreeing on existence is a
            reportable anomaly, so the two are never merged.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str,
        product_id: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.source = source
        super().__init__(message, product_id=product_id, operation=operation)


class AlreadyExistsError(MedAuthError):
    """Raised when registering a product id that is already registered."""


class ConflictError(AlreadyExistsError):
    """Raised when the metadata store rejects a duplicate primary key."""


class PartialCommitError(MedAuthError):
    """Raised when the ledger write succeeded but the store write failed.

    The system is left in a detectable inconsistent state: the ledger has
    the product, the store does not. The pending-registration marker is
    kept so that a reconciliation sweep can replay the store write.

    Attributes:
        fingerprint: The fingerprint committed to the ledger.
    """

    def __init__(
        self,
        message: str,
        *,
        product_id: str,
        fingerprint: str,
        operation: str | None = None,
    ) -> None:
        self.fingerprint = fingerprint
        super().__init__(message, product_id=product_id, operation=operation)


class UnavailableError(MedAuthError):
    """Raised when a ledger or store boundary cannot be reached."""


class ConfigError(MedAuthError):
    """Raised when the settings file or environment overrides are invalid."""
