"""
catalog/models.py -- Domain dataclasses for the Shopfront product catalogue.

Pure data containers with zero logic. Persistence rules (timestamps, cascade
deactivation) live in catalog/store.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Product:
    """A sellable item.

    created_by is the id of the admin account that created it. When that
    account is deleted the product is deactivated, not removed, so the id may
    point at an account that no longer exists.

    is_active=False hides the product from customers.
    id is None before the record is written to the database.
    """

    name: str
    description: str
    price: float
    stock: int
    category: str
    image_url: str
    created_by: int
    tags: list[str] = field(default_factory=list)
    is_active: bool = True
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
