"""Authorization policy for ledger operations.

Every ledger operation is mapped to exactly one ``Requirement`` in
``OPERATION_REQUIREMENTS``, and every call consults ``AuthorizationPolicy``
before touching state. Keeping the table and the grants in one object makes
the whole authorization surface auditable from a single place.

Role model
----------
- ``Requirement.PUBLIC``: anyone, including unknown identities.
- ``Requirement.ADMINISTRATIVE``: holders of ``Capability.ADMINISTRATIVE``.
- ``Requirement.ROOT``: holders of ``Capability.ROOT``.

Each capability has an admin capability that is required to grant it.
``ROOT`` administers both itself and ``ADMINISTRATIVE``.
"""

from __future__ import annotations

from enum import Enum

from medauth.core.ledger.models import Capability
from medauth.exceptions import UnauthorizedError


class Requirement(str, Enum):
    """What an operation demands of its caller."""

    PUBLIC = "PUBLIC"
    ADMINISTRATIVE = "ADMINISTRATIVE"
    ROOT = "ROOT"


OPERATION_REQUIREMENTS: dict[str, Requirement] = {
    "register_product": Requirement.ADMINISTRATIVE,
    "append_stage": Requirement.ADMINISTRATIVE,
    "grant_capability": Requirement.ROOT,
    "get_fingerprint": Requirement.PUBLIC,
    "get_history": Requirement.PUBLIC,
    "exists": Requirement.PUBLIC,
}

CAPABILITY_ADMINS: dict[Capability, Capability] = {
    Capability.ADMINISTRATIVE: Capability.ROOT,
    Capability.ROOT: Capability.ROOT,
}

_REQUIRED_CAPABILITY: dict[Requirement, Capability | None] = {
    Requirement.PUBLIC: None,
    Requirement.ADMINISTRATIVE: Capability.ADMINISTRATIVE,
    Requirement.ROOT: Capability.ROOT,
}


class AuthorizationPolicy:
    """Holds role grants and evaluates requirements against them.

    The policy does no locking of its own; the owning ledger serializes
    access to it together with the rest of its state.

    Args:
        owner: Identity bootstrapped with ``ROOT`` and ``ADMINISTRATIVE``.
    """

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._grants: dict[str, set[Capability]] = {}
        self.add_grant(owner, Capability.ROOT)
        self.add_grant(owner, Capability.ADMINISTRATIVE)

    @property
    def owner(self) -> str:
        """Return the bootstrap owner identity."""
        return self._owner

    def has(self, identity: str, capability: Capability) -> bool:
        """Return True if ``identity`` holds ``capability``."""
        return capability in self._grants.get(identity, ())

    def add_grant(self, identity: str, capability: Capability) -> bool:
        """Record a grant without any authorization check.

        Only the ledger calls this, after ``enforce`` has passed or while
        replaying already-committed state.

        Returns:
            True if the grant is new, False if it was already held.
        """
        held = self._grants.setdefault(identity, set())
        if capability in held:
            return False
        held.add(capability)
        return True

    def holders(self, capability: Capability) -> list[str]:
        """Return the sorted identities holding ``capability``."""
        return sorted(i for i, caps in self._grants.items() if capability in caps)

    def evaluate(self, identity: str, requirement: Requirement) -> bool:
        """Return True if ``identity`` satisfies ``requirement``."""
        needed = _REQUIRED_CAPABILITY[requirement]
        return needed is None or self.has(identity, needed)

    def enforce(
        self,
        identity: str,
        operation: str,
        *,
        product_id: str | None = None,
    ) -> None:
        """Check ``identity`` against the requirement of ``operation``.

        Raises:
            UnauthorizedError: If the requirement is not satisfied.
            KeyError: If ``operation`` has no entry in the requirement table.
        """
        requirement = OPERATION_REQUIREMENTS[operation]
        if not self.evaluate(identity, requirement):
            raise UnauthorizedError(
                f"{identity!r} lacks {requirement.value} capability "
                f"required for {operation}",
                identity=identity,
                capability=requirement.value,
                product_id=product_id,
                operation=operation,
            )

    def enforce_grant(self, identity: str, capability: Capability) -> None:
        """Check that ``identity`` holds the admin capability of ``capability``.

        Raises:
            UnauthorizedError: If it does not.
        """
        admin = CAPABILITY_ADMINS[capability]
        if not self.has(identity, admin):
            raise UnauthorizedError(
                f"{identity!r} lacks {admin.value} capability required to "
                f"grant {capability.value}",
                identity=identity,
                capability=admin.value,
                operation="grant_capability",
            )
