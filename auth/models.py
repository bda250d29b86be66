"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in catalog/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Account privilege tier. Closed set -- nothing else reaches the store."""

    admin = "admin"
    customer = "customer"


@dataclass
class Account:
    """A registered account.

    hashed_password is a bcrypt hash. refresh_token_hash is
    HMAC-SHA256(SECRET_KEY, refresh_token) of the single currently valid
    refresh token, or None when the account is logged out. Neither field is
    ever serialized into an API response (see api/models.AccountResponse).
    """

    name: str
    email: str
    hashed_password: str
    role: Role = Role.customer
    id: int | None = None
    refresh_token_hash: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """Caller identity resolved from a verified access token.

    Built from token claims alone, so it may refer to an account that has
    since been deleted. Handlers that need the row look it up themselves.
    """

    account_id: int
    role: Role


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
