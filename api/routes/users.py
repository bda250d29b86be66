"""
api/routes/users.py -- Self-service and admin user management.

Routes (profile_router is registered first so /profile, /change-password and
/delete-account are matched before /{account_id}):

  Self-service (requires auth):
    GET    /api/users/profile          -- current account
    PUT    /api/users/profile          -- update own name/email
    POST   /api/users/change-password  -- verify current password, set new one
    DELETE /api/users/delete-account   -- password-confirmed self deletion

  Admin only (requires auth + admin role):
    GET    /api/users                  -- paginated list with search/role filter/sort
    GET    /api/users/{account_id}     -- one account
    PUT    /api/users/{account_id}     -- update name/email       [self-action guard]
    PUT    /api/users/{account_id}/role -- change role            [self-action guard]
    DELETE /api/users/{account_id}     -- delete account          [self-action guard]

Deleting an admin account (either way) deactivates the products it created
before the account row is removed.

Changing the password revokes the stored refresh token, so every other
session has to log in again once its access token expires.
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

from api.envelope import ok
from api.models import (
    MAX_PAGE_SIZE,
    AccountDelete,
    AccountResponse,
    AccountUpdate,
    Pagination,
    PasswordChange,
    RoleUpdate,
)
from auth.dependencies import get_current_identity, require_admin, self_action_guard
from auth.models import Account, Identity, Role
from auth.store import MAX_ID, AccountStore
from auth.tokens import hash_password, revoke_refresh_token, verify_password
from catalog.store import ProductStore
from core.errors import InvalidOperation, NotFound, ValidationError

logger = logging.getLogger("shopfront.api.users")

profile_router = APIRouter(prefix="/users", dependencies=[Depends(get_current_identity)])
admin_router = APIRouter(prefix="/users", dependencies=[Depends(require_admin)])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_or_404(store: AccountStore, account_id: int) -> Account:
    account = store.get_by_id(account_id)
    if account is None:
        raise NotFound("User not found.", code="user_not_found")
    return account


def _apply_update(store: AccountStore, account: Account, body: AccountUpdate) -> Account:
    """Write name/email changes. Rejects an empty body and emails used by other accounts."""
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise ValidationError("Provide at least one of: name, email.", code="no_changes")
    if "email" in updates and store.email_taken(updates["email"], exclude_id=account.id):
        raise InvalidOperation("Email already exists.", code="duplicate_email")
    try:
        store.update_account(account.id, **updates)
    except IntegrityError as exc:
        raise InvalidOperation("Email already exists.", code="duplicate_email") from exc
    return _get_or_404(store, account.id)


def _delete_account(request: Request, account: Account) -> None:
    if account.role == Role.admin:
        products: ProductStore = request.app.state.product_store
        count = products.deactivate_by_creator(account.id)
        logger.info("Deactivated %d product(s) created by admin %s", count, account.id)
    request.app.state.account_store.delete_account(account.id)


def _json_body(model: type[BaseModel]):
    """Build a dependency that parses the JSON body into `model`.

    Admin mutations declare it after the self-action guard, so a request that
    targets the caller's own id is refused before its body is even decoded.
    """

    async def _parse(request: Request) -> BaseModel:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise ValidationError("Request body must be valid JSON.") from exc
        try:
            return model.model_validate(payload)
        except PydanticValidationError as exc:
            raise RequestValidationError(exc.errors(include_url=False)) from exc

    return _parse


# ---------------------------------------------------------------------------
# Self-service
# ---------------------------------------------------------------------------


@profile_router.get("/profile")
def get_profile(request: Request, identity: Identity = Depends(get_current_identity)) -> JSONResponse:
    store: AccountStore = request.app.state.account_store
    account = _get_or_404(store, identity.account_id)
    return ok("Profile retrieved successfully", data={"user": AccountResponse.from_account(account).to_wire()})


@profile_router.put("/profile")
def update_profile(
    request: Request,
    body: AccountUpdate,
    identity: Identity = Depends(get_current_identity),
) -> JSONResponse:
    store: AccountStore = request.app.state.account_store
    account = _get_or_404(store, identity.account_id)
    updated = _apply_update(store, account, body)
    return ok("Profile updated successfully", data={"user": AccountResponse.from_account(updated).to_wire()})


@profile_router.post("/change-password")
def change_password(
    request: Request,
    body: PasswordChange,
    identity: Identity = Depends(get_current_identity),
) -> JSONResponse:
    """Set a new password after checking the current one. Revokes the refresh token."""
    store: AccountStore = request.app.state.account_store
    account = _get_or_404(store, identity.account_id)
    if not verify_password(body.current_password, account.hashed_password):
        raise InvalidOperation("Current password is incorrect.", code="wrong_password")

    store.update_account(account.id, hashed_password=hash_password(body.new_password))
    revoke_refresh_token(store, account.id)
    logger.info("Account %s changed password; refresh token revoked", account.id)
    return ok("Password changed successfully")


@profile_router.delete("/delete-account")
def delete_own_account(
    request: Request,
    body: AccountDelete,
    identity: Identity = Depends(get_current_identity),
) -> JSONResponse:
    store: AccountStore = request.app.state.account_store
    account = _get_or_404(store, identity.account_id)
    if not verify_password(body.password, account.hashed_password):
        raise InvalidOperation("Password is incorrect.", code="wrong_password")

    _delete_account(request, account)
    logger.info("Account %s deleted itself", account.id)
    return ok("Account deleted successfully")


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@admin_router.get("")
def list_users(
    request: Request,
    page: int = Query(1, ge=1, le=MAX_ID // MAX_PAGE_SIZE),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[Role] = Query(None),
    sort_by: Literal["name", "email", "role", "createdAt", "updatedAt"] = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
) -> JSONResponse:
    """Return one page of accounts. search matches name or email, case-insensitively."""
    store: AccountStore = request.app.state.account_store
    accounts, total = store.list_accounts(
        page=page,
        limit=limit,
        search=search.strip() if search else None,
        role=role,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ok(
        "Users retrieved successfully",
        data={
            "users": [AccountResponse.from_account(a).to_wire() for a in accounts],
            "pagination": Pagination.build(page, limit, total).to_wire(),
        },
    )


@admin_router.get("/{account_id}")
def get_user(request: Request, account_id: Annotated[int, Path(ge=1, le=MAX_ID)]) -> JSONResponse:
    store: AccountStore = request.app.state.account_store
    account = _get_or_404(store, account_id)
    return ok("User retrieved successfully", data={"user": AccountResponse.from_account(account).to_wire()})


@admin_router.put("/{account_id}")
def update_user(
    request: Request,
    account_id: int = Depends(self_action_guard("modify")),
    body: AccountUpdate = Depends(_json_body(AccountUpdate)),
) -> JSONResponse:
    store: AccountStore = request.app.state.account_store
    account = _get_or_404(store, account_id)
    updated = _apply_update(store, account, body)
    return ok("User updated successfully", data={"user": AccountResponse.from_account(updated).to_wire()})


@admin_router.put("/{account_id}/role")
def update_user_role(
    request: Request,
    account_id: int = Depends(self_action_guard("change the role of")),
    body: RoleUpdate = Depends(_json_body(RoleUpdate)),
    identity: Identity = Depends(require_admin),
) -> JSONResponse:
    """Change another account's role. The new role shows up in that account's
    tokens at its next login or refresh.
    """
    store: AccountStore = request.app.state.account_store
    _get_or_404(store, account_id)
    store.update_account(account_id, role=body.role)
    logger.info("Admin %s set role of account %s to %s", identity.account_id, account_id, body.role.value)
    updated = _get_or_404(store, account_id)
    return ok("User role updated successfully", data={"user": AccountResponse.from_account(updated).to_wire()})


@admin_router.delete("/{account_id}")
def delete_user(
    request: Request,
    account_id: int = Depends(self_action_guard("delete")),
    identity: Identity = Depends(require_admin),
) -> JSONResponse:
    store: AccountStore = request.app.state.account_store
    account = _get_or_404(store, account_id)
    _delete_account(request, account)
    logger.info("Admin %s deleted account %s", identity.account_id, account_id)
    return ok("User deleted successfully")
