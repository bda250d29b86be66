"""
api/main.py -- FastAPI application entry point for Shopfront.

Run with:  uvicorn asgi:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Per-route guard chain (FastAPI dependencies, see auth/dependencies.py):
  Auth Guard (401) -> Role Guard (403) [-> Self-Action Guard (400)] -> handler

Lifespan opens the account and product stores on startup and disposes them
on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.envelope import fail, ok
from api.limiter import limiter
from api.models import HealthData
from api.routes.auth import router as auth_router
from api.routes.products import router as products_router
from api.routes.users import admin_router as users_admin_router
from api.routes.users import profile_router as users_profile_router
from auth.store import AccountStore
from catalog.store import ProductStore
from core.config import get_settings
from core.errors import AppError, InternalError

__version__ = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("shopfront.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup, dispose them on shutdown.

    Empty AUTH_DB_URL / CATALOG_DB_URL fall back to the SQLite files next to
    each store module.
    """
    logger.info("Shopfront API starting up")
    app.state.account_store = AccountStore(_settings.auth_db_url) if _settings.auth_db_url else AccountStore()
    app.state.product_store = ProductStore(_settings.catalog_db_url) if _settings.catalog_db_url else ProductStore()
    if app.state.account_store.count_admins() == 0:
        logger.warning("No admin account exists -- create one with: python main.py create-admin")
    logger.info("Stores initialized")

    yield

    app.state.account_store.close()
    app.state.product_store.close()
    logger.info("Shopfront API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Shopfront API",
    description="E-commerce backend with admin and customer roles.",
    version=__version__,
    lifespan=lifespan,
    # Interactive docs are a development convenience only.
    docs_url="/docs" if _settings.debug else None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
#
# users_profile_router goes before users_admin_router so the literal paths
# (/users/profile, /users/delete-account) win over /users/{account_id}.
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_profile_router, prefix="/api", tags=["Users"])
app.include_router(users_admin_router, prefix="/api", tags=["Users (admin)"])
app.include_router(products_router, prefix="/api", tags=["Products"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {success: false, message, code} envelope so
# API clients can parse errors uniformly.
# ---------------------------------------------------------------------------


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Guards and handlers raise the core.errors taxonomy; map it to its status."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return fail(exc.status_code, exc.message, exc.code)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a rate limit is exceeded, with Retry-After for the client."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = fail(429, "Too many requests.", "rate_limited")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a readable summary when the body, path or query fails validation."""
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return fail(400, "; ".join(problems) or "Request validation failed.", "validation_error")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes, wrong methods and any stray HTTPException."""
    return fail(exc.status_code, str(exc.detail), f"http_{exc.status_code}")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    err = InternalError()
    return fail(err.status_code, err.message, err.code)


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is always reachable regardless of router
# registration state. No auth, no rate limit.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health(request: Request) -> JSONResponse:
    """Return API liveness, version and per-store status."""
    db_ok = request.app.state.account_store.ping() and request.app.state.product_store.ping()
    data = HealthData(
        status="healthy" if db_ok else "degraded",
        version=__version__,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
    return ok("Service is running", data=data.model_dump())
