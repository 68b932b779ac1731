"""In-memory metadata store, used by tests and embedded callers."""

from __future__ import annotations

import threading

from medauth.core.store.base import MetadataStore
from medauth.core.store.models import ProductRecord
from medauth.exceptions import ConflictError, NotFoundError


class InMemoryMetadataStore(MetadataStore):
    """Thread-safe dictionary-backed ``MetadataStore``."""

    def __init__(self) -> None:
        self._rows: dict[str, ProductRecord] = {}
        self._lock = threading.Lock()

    def insert(self, record: ProductRecord) -> None:
        with self._lock:
            if record.product_id in self._rows:
                raise ConflictError(
                    f"Product {record.product_id} already exists in the metadata store",
                    product_id=record.product_id, operation="insert",
                )
            self._rows[record.product_id] = record

    def get(self, product_id: str) -> ProductRecord:
        with self._lock:
            record = self._rows.get(product_id)
        if record is None:
            raise NotFoundError(
                f"Product {product_id} not found in the metadata store",
                source="store", product_id=product_id, operation="get",
            )
        return record

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
