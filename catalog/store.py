"""
catalog/store.py -- SQLAlchemy-backed persistence layer for the product catalogue.

Uses SQLAlchemy Core (not ORM) so the dataclasses in catalog/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. ProductStore is the repository;
_row_to_product is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ProductStore()                               # SQLite default
    store = ProductStore("postgresql://user:pw@host/db") # PostgreSQL
    product_id = store.create_product(product)
    products = store.list_products()
    store.deactivate_by_creator(account_id)
    store.close()
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine

from catalog.models import Product

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'shopfront_catalog.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("description", Text, nullable=False),
    Column("price", Float, nullable=False),
    Column("stock", Integer, nullable=False, server_default="0"),
    Column("category", String(100), nullable=False),
    Column("tags", Text),  # JSON array serialized as text
    Column("image_url", String(2048), nullable=False),
    Column("created_by", Integer, nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),  # boolean stored as 0/1
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Fields update_product() accepts. Anything else is a programming error.
_MUTABLE_FIELDS = {"name", "description", "price", "stock", "category", "tags", "image_url", "is_active"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode; set per-connection since PRAGMAs are not inherited."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ProductStore:
    """Repository for Product entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    def create_product(self, product: Product) -> int:
        """Insert a new product and return its ID."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.insert().values(
                    name=product.name,
                    description=product.description,
                    price=product.price,
                    stock=product.stock,
                    category=product.category,
                    tags=json.dumps(product.tags),
                    image_url=product.image_url,
                    created_by=product.created_by,
                    is_active=1 if product.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_product(self, product_id: int) -> Optional[Product]:
        with self.engine.connect() as conn:
            row = conn.execute(_products.select().where(_products.c.id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def list_products(self, include_inactive: bool = False) -> list[Product]:
        """Return products newest first. Inactive products only when include_inactive."""
        query = _products.select().order_by(_products.c.created_at.desc(), _products.c.id.desc())
        if not include_inactive:
            query = query.where(_products.c.is_active == 1)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_product(r) for r in rows]

    def update_product(self, product_id: int, **fields) -> bool:
        """Update mutable fields. Returns True if a row was updated, False if not found.

        Raises ValueError for unknown field names.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {unknown!r}")
        if "tags" in fields:
            fields["tags"] = json.dumps(fields["tags"])
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_products.update().where(_products.c.id == product_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_product(self, product_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_products.delete().where(_products.c.id == product_id))
            conn.commit()
        return result.rowcount > 0

    def deactivate_by_creator(self, account_id: int) -> int:
        """Mark every product created by account_id inactive. Returns the number of rows changed.

        Used when an admin account is deleted: the products stay for order
        history but disappear from the storefront.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.update()
                .where((_products.c.created_by == account_id) & (_products.c.is_active == 1))
                .values(is_active=0, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        """Dispose the engine connection pool."""
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_product(row) -> Product:
    tags: list[str] = json.loads(row.tags) if row.tags else []
    return Product(
        id=row.id,
        name=row.name,
        description=row.description,
        price=row.price,
        stock=row.stock,
        category=row.category,
        tags=tags,
        image_url=row.image_url,
        created_by=row.created_by,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
