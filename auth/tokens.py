"""
auth/tokens.py -- Token service: JWT issue/verify/rotate and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Both token kinds carry sub (account id),
       role, type ("access" | "refresh"), a random jti and expiry. The type
       claim stops a refresh token from being replayed as an access token and
       vice versa; the jti makes two tokens minted in the same second differ.
       Verification returns None on any failure -- the route layer turns that
       into a 401.

  Access tokens are self-contained: verify_access() never touches the store,
       so an access token stays valid until it expires.

  Refresh tokens are revocable: the store keeps HMAC-SHA256(SECRET_KEY, token)
       for the single current token of each account. verify_refresh() requires
       the presented token to hash to that value, so overwriting (rotation,
       login elsewhere) or clearing (logout, password change) the stored hash
       invalidates every earlier refresh token immediately.

  Passwords: bcrypt, used directly. _DUMMY_HASH enables timing equalization in
       authenticate_account() so response time does not reveal whether an
       email is registered.

  SECRET_KEY: sourced from core.config.get_settings(), validated at startup.

Layer rule: no imports from api/ or catalog/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import Account, Identity, Role, TokenPair
from core.config import get_settings

if TYPE_CHECKING:
    from auth.store import AccountStore

logger = logging.getLogger("shopfront.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

ACCESS_TOKEN = "access"  # noqa: S105 # nosec B105 -- token type claim, not a password
REFRESH_TOKEN = "refresh"  # noqa: S105 # nosec B105

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt rejects passwords over 72 bytes; the request models enforce that
    limit so callers get a validation error instead.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except Exception:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("shopfront_timing_dummy")


def authenticate_account(store: AccountStore, email: str, password: str) -> Account | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the account exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH
    - Wrong password: bcrypt runs against the real hash

    Returns the Account on success, None on any failure.
    """
    account = store.get_by_email(email)
    if account is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, account.hashed_password):
        return None
    return account


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _encode(account_id: int, role: Role, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(account_id),
        "role": Role(role).value,
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def create_access_token(account_id: int, role: Role, expires_delta: timedelta | None = None) -> str:
    """Encode a signed access JWT.

    Args:
        account_id:    Numeric account ID stored in the DB.
        role:          Account role at issue time.
        expires_delta: Lifetime. Defaults to ACCESS_TOKEN_EXPIRE_MINUTES.
                       Tests pass a negative delta to mint expired tokens.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=_settings.access_token_expire_minutes)
    return _encode(account_id, role, ACCESS_TOKEN, expires_delta)


def create_refresh_token(account_id: int, role: Role, expires_delta: timedelta | None = None) -> str:
    """Encode a signed refresh JWT. Lifetime defaults to REFRESH_TOKEN_EXPIRE_DAYS."""
    if expires_delta is None:
        expires_delta = timedelta(days=_settings.refresh_token_expire_days)
    return _encode(account_id, role, REFRESH_TOKEN, expires_delta)


def decode_token(token: str, expected_type: str) -> dict | None:
    """Decode and verify a JWT of the given type. Returns the payload or None.

    Checks signature, expiry, the type claim and that sub/role are usable.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    try:
        int(payload["sub"])
        Role(payload["role"])
    except (KeyError, TypeError, ValueError):
        return None
    return payload


def hash_refresh_token(token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, token) as hex -- the value kept in the store."""
    return hmac.new(
        _settings.secret_key.encode(),
        token.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


def verify_access(token: str) -> Identity | None:
    """Resolve an access token to an Identity without consulting the store."""
    payload = decode_token(token, ACCESS_TOKEN)
    if payload is None:
        return None
    return Identity(account_id=int(payload["sub"]), role=Role(payload["role"]))


def issue_tokens(store: AccountStore, account: Account) -> TokenPair:
    """Mint a fresh access/refresh pair and persist the refresh token hash.

    Persisting overwrites whatever refresh token the account had, so any
    earlier refresh token stops verifying from this point on.
    """
    access = create_access_token(account.id, account.role)
    refresh = create_refresh_token(account.id, account.role)
    store.set_refresh_token_hash(account.id, hash_refresh_token(refresh))
    return TokenPair(access_token=access, refresh_token=refresh)


def verify_refresh(store: AccountStore, token: str) -> Account | None:
    """Resolve a refresh token to its Account, or None if it is not the current one.

    Requires a valid signature, an unexpired exp, type == "refresh", an
    existing account, and a constant-time match against the stored hash.
    """
    payload = decode_token(token, REFRESH_TOKEN)
    if payload is None:
        return None
    account = store.get_by_id(int(payload["sub"]))
    if account is None or account.refresh_token_hash is None:
        logger.info("Refresh rejected: account %s missing or logged out", payload["sub"])
        return None
    if not hmac.compare_digest(hash_refresh_token(token), account.refresh_token_hash):
        logger.warning("Refresh rejected: stale refresh token for account %s", account.id)
        return None
    return account


def rotate(store: AccountStore, account: Account) -> TokenPair:
    """Replace the account's refresh token with a new pair.

    The new tokens carry the role currently stored on the account, so a role
    change takes effect at the next refresh.
    """
    pair = issue_tokens(store, account)
    logger.info("Rotated tokens for account %s", account.id)
    return pair


def revoke_refresh_token(store: AccountStore, account_id: int) -> None:
    """Clear the stored refresh token. Outstanding access tokens still live until expiry."""
    store.set_refresh_token_hash(account_id, None)
