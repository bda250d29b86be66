"""
api/routes/auth.py -- Registration, login, token refresh and logout.

Routes:
  POST /api/auth/register        -- create account, return token pair (201)
  POST /api/auth/login           -- email/password login, return token pair
  POST /api/auth/refresh-token   -- rotate a valid refresh token
  POST /api/auth/logout          -- clear the stored refresh token (requires auth)

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  authenticate_account() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Cache-Control: no-store on every response that carries tokens.
  Login/refresh/register each overwrite the single stored refresh token, so a
  new session logs out the previous one.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.envelope import ok
from api.limiter import limiter
from api.models import AccountResponse, LoginRequest, RefreshRequest, RegisterRequest, TokenResponse
from auth.dependencies import get_current_identity
from auth.models import Account, Identity, TokenPair
from auth.store import AccountStore
from auth.tokens import (
    authenticate_account,
    hash_password,
    issue_tokens,
    revoke_refresh_token,
    rotate,
    verify_refresh,
)
from core.config import get_settings
from core.errors import Forbidden, InvalidOperation, Unauthenticated

logger = logging.getLogger("shopfront.api.auth")

# Auth policy:
# - POST /api/auth/register:      public (unless SELF_REGISTRATION_ENABLED=false)
# - POST /api/auth/login:         public, rate-limited
# - POST /api/auth/refresh-token: public -- the refresh token is the credential
# - POST /api/auth/logout:        requires auth (get_current_identity)
router = APIRouter(prefix="/auth")


def _token_payload(account: Account, pair: TokenPair) -> dict:
    return {
        **TokenResponse(access_token=pair.access_token, refresh_token=pair.refresh_token).to_wire(),
        "user": AccountResponse.from_account(account).to_wire(),
    }


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/register", status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account with the requested (or default customer) role and log it in."""
    if not get_settings().self_registration_enabled:
        raise Forbidden("Self-registration is disabled.", code="registration_disabled")

    store: AccountStore = request.app.state.account_store
    if store.email_taken(body.email):
        raise InvalidOperation("An account with this email already exists.", code="duplicate_email")

    account = Account(
        name=body.name,
        email=body.email,
        hashed_password=hash_password(body.password),
        role=body.role,
    )
    try:
        account_id = store.create_account(account)
    except IntegrityError as exc:
        # Lost the race against a concurrent registration with the same email.
        raise InvalidOperation("An account with this email already exists.", code="duplicate_email") from exc

    created = store.get_by_id(account_id)
    pair = issue_tokens(store, created)
    logger.info("Registered account %s (role=%s)", created.id, created.role.value)
    return _no_store(ok("Account created successfully", data=_token_payload(created, pair), status_code=201))


@limiter.limit(get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and return a fresh token pair.

    Unknown email and wrong password produce the same 401 so the response
    does not reveal which accounts exist.
    """
    store: AccountStore = request.app.state.account_store
    account = authenticate_account(store, body.email, body.password)
    if account is None:
        logger.info("Failed login from %s", request.client.host if request.client else "unknown")
        raise Unauthenticated("Invalid email or password.", code="bad_credentials")

    pair = issue_tokens(store, account)
    return _no_store(ok("Login successful", data=_token_payload(account, pair)))


@router.post("/refresh-token")
def refresh_token(request: Request, body: RefreshRequest) -> JSONResponse:
    """Exchange the current refresh token for a new pair. The presented token stops working."""
    store: AccountStore = request.app.state.account_store
    account = verify_refresh(store, body.refresh_token)
    if account is None:
        raise Unauthenticated("Refresh token is invalid or expired.", code="invalid_refresh_token")

    pair = rotate(store, account)
    data = TokenResponse(access_token=pair.access_token, refresh_token=pair.refresh_token).to_wire()
    return _no_store(ok("Tokens refreshed successfully", data=data))


@router.post("/logout")
def logout(request: Request, identity: Identity = Depends(get_current_identity)) -> JSONResponse:
    """Revoke the caller's refresh token. The access token itself lives until it expires."""
    store: AccountStore = request.app.state.account_store
    revoke_refresh_token(store, identity.account_id)
    logger.info("Account %s logged out", identity.account_id)
    return ok("Logged out successfully")
