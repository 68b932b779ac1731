"""Metadata store adapters --- keyed insert/get over product records."""

from medauth.core.store.base import MetadataStore
from medauth.core.store.memory import InMemoryMetadataStore
from medauth.core.store.models import ProductRecord
from medauth.core.store.sql import SqlMetadataStore, products

__all__ = [
    "InMemoryMetadataStore",
    "MetadataStore",
    "ProductRecord",
    "SqlMetadataStore",
    "products",
]
