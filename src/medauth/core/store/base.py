"""Metadata store capability interface.

The store is authoritative for descriptive product fields. It supports keyed
insert and keyed get only; there is no update or delete, and implementations
must not cache: every ``get`` returns the latest committed write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from medauth.core.store.models import ProductRecord
from medauth.exceptions import NotFoundError


class MetadataStore(ABC):
    """Abstract keyed store of ``ProductRecord`` rows."""

    @abstractmethod
    def insert(self, record: ProductRecord) -> None:
        """Insert a new record.

        Raises:
            ConflictError: A record with the same product id already exists.
            UnavailableError: The store cannot be reached.
        """

    @abstractmethod
    def get(self, product_id: str) -> ProductRecord:
        """Fetch a record by product id.

        Raises:
            NotFoundError: No record for ``product_id`` (source ``"store"``).
            UnavailableError: The store cannot be reached.
        """

    def contains(self, product_id: str) -> bool:
        """Return True if a record for ``product_id`` exists."""
        try:
            self.get(product_id)
        except NotFoundError:
            return False
        return True
