"""Relational metadata store backed by SQLAlchemy Core.

Maps ``ProductRecord`` onto the ``products`` table::

    product_id          VARCHAR(64)  PRIMARY KEY
    product_type        TEXT         NOT NULL
    batch_number        VARCHAR(64)  NOT NULL
    manufacturing_date  TEXT         NOT NULL   -- ISO-8601
    expiry_date         TEXT         NOT NULL   -- ISO-8601
    product_hash        VARCHAR(66)  NOT NULL   -- 0x + 64 hex

Timestamps are stored as text in the canonical instant format so the
verifier reads back exactly the string the producer hashed. Any SQLAlchemy
URL works (``sqlite:///metadata.db``, ``postgresql+psycopg://...``).
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from medauth.core.fingerprint import FINGERPRINT_LENGTH
from medauth.core.store.base import MetadataStore
from medauth.core.store.models import ProductRecord
from medauth.exceptions import ConflictError, NotFoundError, UnavailableError

logger = logging.getLogger(__name__)

metadata = MetaData()

products = Table(
    "products",
    metadata,
    Column("product_id", String(64), primary_key=True),
    Column("product_type", Text, nullable=False),
    Column("batch_number", String(64), nullable=False),
    Column("manufacturing_date", Text, nullable=False),
    Column("expiry_date", Text, nullable=False),
    Column("product_hash", String(FINGERPRINT_LENGTH), nullable=False),
)


def _ensure_sqlite_parent(url: str) -> None:
    """Create the directory of a file-backed SQLite database."""
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


class SqlMetadataStore(MetadataStore):
    """``MetadataStore`` over a SQLAlchemy engine.

    Args:
        engine: A SQLAlchemy engine, or a database URL to create one from.
        create_schema: Create the ``products`` table if it is missing.
    """

    def __init__(self, engine: Engine | str, *, create_schema: bool = True) -> None:
        if isinstance(engine, str):
            try:
                _ensure_sqlite_parent(engine)
                engine = create_engine(engine)
            except (SQLAlchemyError, OSError) as exc:
                raise UnavailableError(f"Cannot open metadata store {engine!r}: {exc}") from exc
        self._engine = engine
        if create_schema:
            try:
                metadata.create_all(self._engine)
            except SQLAlchemyError as exc:
                raise UnavailableError(f"Cannot initialise metadata store: {exc}") from exc

    @property
    def engine(self) -> Engine:
        """Return the underlying SQLAlchemy engine."""
        return self._engine

    def insert(self, record: ProductRecord) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(products.insert().values(**record.to_row()))
        except IntegrityError as exc:
            raise ConflictError(
                f"Product {record.product_id} already exists in the metadata store",
                product_id=record.product_id, operation="insert",
            ) from exc
        except SQLAlchemyError as exc:
            raise UnavailableError(
                f"Metadata store insert failed: {exc}",
                product_id=record.product_id, operation="insert",
            ) from exc
        logger.info("Inserted product %s into metadata store", record.product_id)

    def get(self, product_id: str) -> ProductRecord:
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    select(products).where(products.c.product_id == product_id)
                ).mappings().first()
        except SQLAlchemyError as exc:
            raise UnavailableError(
                f"Metadata store query failed: {exc}",
                product_id=product_id, operation="get",
            ) from exc
        if row is None:
            raise NotFoundError(
                f"Product {product_id} not found in the metadata store",
                source="store", product_id=product_id, operation="get",
            )
        return ProductRecord.from_row(dict(row))

    def dispose(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()
