"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

The guard chain for a protected route is an ordered dependency chain:
  1. get_current_identity() -- Auth Guard. Reads "Authorization: Bearer <token>",
     verifies the access token, attaches Identity to request.state. 401 on failure.
  2. require_role(role)     -- Role Guard. Resolves (1) first, then 403 if the
     identity's role differs. Never verifies tokens itself.
  3. self_action_guard()    -- Self-Action Guard. Wraps ensure_not_self() around the
     {account_id} path param of admin mutations. 400 when an admin targets
     their own id, before the body is validated or the store is touched.

Attach (1) or (2) as router-level dependencies so they run before any handler
body -- a rejected request never reaches the store.

Layer rule: no imports from api/ or catalog/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Path, Request

from auth.models import Identity, Role
from auth.store import MAX_ID
from auth.tokens import verify_access
from core.errors import Forbidden, InvalidOperation, Unauthenticated


def extract_bearer_token(header_value: str | None) -> str | None:
    """Return the token from an Authorization header value, or None if absent/malformed."""
    if not header_value:
        return None
    scheme, _, token = header_value.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        return None
    return token


def get_current_identity(request: Request) -> Identity:
    """Require a valid bearer access token. Raises Unauthenticated (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...

    Read-only: the identity comes from the token claims, the store is not consulted.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise Unauthenticated("Access token is missing or malformed.")
    identity = verify_access(token)
    if identity is None:
        raise Unauthenticated("Access token is invalid or expired.")
    request.state.identity = identity
    return identity


def require_role(role: Role) -> Callable[..., Identity]:
    """Build a dependency that admits only identities holding `role`.

    Raises Unauthenticated (401) via get_current_identity, then Forbidden (403).
    """

    def _role_guard(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role != role:
            raise Forbidden(f"This action requires the {role.value} role.")
        return identity

    _role_guard.__name__ = f"require_{role.value}"
    return _role_guard


require_admin = require_role(Role.admin)


def ensure_not_self(target_id: int, identity: Identity, action: str) -> None:
    """Reject an admin endpoint call that targets the caller's own account.

    Keeps an administrator from demoting or deleting themselves through the
    admin routes (self-service goes through /api/users/profile instead).
    """
    if target_id == identity.account_id:
        raise InvalidOperation(f"Cannot {action} your own account.", code="self_action")


def self_action_guard(action: str) -> Callable[..., int]:
    """Build a dependency that runs ensure_not_self() on the {account_id} path param.

    As a dependency it runs before the request body is validated, so an admin
    targeting their own id gets InvalidOperation whatever the payload holds.
    Returns the target id for the handler.
    """

    def _guard(
        account_id: Annotated[int, Path(ge=1, le=MAX_ID)],
        identity: Identity = Depends(require_admin),
    ) -> int:
        ensure_not_self(account_id, identity, action)
        return account_id

    return _guard
