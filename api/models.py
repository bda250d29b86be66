"""
API request and response models for Shopfront REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: camelCase field names (alias_generator=to_camel). Inputs also
accept snake_case (populate_by_name=True). Responses are dumped by alias.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Account, Role
from auth.store import MAX_ID
from catalog.models import Product

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
URL_PATTERN = r"^https?://\S+$"

# bcrypt refuses to hash more than 72 bytes of password.
PASSWORD_MAX_BYTES = 72

MAX_PAGE_SIZE = 100

# Older clients send the long role names.
_ROLE_ALIASES = {"administrator": "admin", "shopper": "customer"}


def _normalize_role(value: Any) -> Any:
    if isinstance(value, str):
        lowered = value.strip().lower()
        return _ROLE_ALIASES.get(lowered, lowered)
    return value


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded")
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    def to_wire(self) -> dict:
        """Dump with camelCase keys and JSON-safe values."""
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class ApiResponse(BaseModel):
    """Every response body: {success, message, data?, code?}.

    code is set on errors only (machine-readable, e.g. "forbidden").
    """

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    data: Optional[dict] = None
    code: Optional[str] = None


# ---------------------------------------------------------------------------
# Auth requests
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Request body for POST /api/auth/register."""

    name: str = Field(min_length=2, max_length=50)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=128)
    role: Role = Role.customer

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value: Any) -> Any:
        return _normalize_role(value)


class LoginRequest(_CamelModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(_CamelModel):
    refresh_token: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# User requests
# ---------------------------------------------------------------------------


class AccountUpdate(_CamelModel):
    """Request body for PUT /api/users/profile and PUT /api/users/{id}.

    Both fields optional; the route rejects a body that sets neither.
    """

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class PasswordChange(_CamelModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=6, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class AccountDelete(_CamelModel):
    password: str = Field(min_length=1, max_length=128)


class RoleUpdate(_CamelModel):
    role: Role

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value: Any) -> Any:
        return _normalize_role(value)


# ---------------------------------------------------------------------------
# Product requests
# ---------------------------------------------------------------------------


class ProductCreate(_CamelModel):
    """Request body for POST /api/products."""

    name: str = Field(min_length=2, max_length=100)
    description: str = Field(min_length=10, max_length=5000)
    price: float = Field(ge=0, allow_inf_nan=False)
    stock: int = Field(ge=0, le=MAX_ID)
    category: str = Field(min_length=1, max_length=100)
    tags: list[str] = Field(default_factory=list, max_length=20)
    image_url: str = Field(pattern=URL_PATTERN, max_length=2048)


class ProductUpdate(_CamelModel):
    """Request body for PUT /api/products/{id}. Only supplied fields change."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=5000)
    price: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    stock: Optional[int] = Field(default=None, ge=0, le=MAX_ID)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    tags: Optional[list[str]] = Field(default=None, max_length=20)
    image_url: Optional[str] = Field(default=None, pattern=URL_PATTERN, max_length=2048)
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Response payloads
# ---------------------------------------------------------------------------


class AccountResponse(_CamelModel):
    """Public view of an account. No password or refresh-token material."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: Role
    created_at: str
    updated_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            role=account.role,
            created_at=account.created_at or "",
            updated_at=account.updated_at or "",
        )


class TokenResponse(_CamelModel):
    access_token: str
    refresh_token: str


class Pagination(_CamelModel):
    current_page: int
    total_pages: int
    total_users: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = (total + limit - 1) // limit
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_users=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class ProductResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str
    price: float
    stock: int
    category: str
    tags: list[str]
    image_url: str
    created_by: int
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            stock=product.stock,
            category=product.category,
            tags=product.tags,
            image_url=product.image_url,
            created_by=product.created_by,
            is_active=product.is_active,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class HealthData(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
