"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts (the credential store).

Pattern: Repository + Data Mapper (same as catalog/store.py).
AccountStore is the repository; _row_to_account is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL. Sort columns come
  from a fixed whitelist, never from raw query strings.

  Each mutation of a security-relevant field (hashed_password, role,
  refresh_token_hash) is a single UPDATE statement. Concurrent writers on the
  same account are last-write-wins; no explicit transactions are needed.

DB path: auth/shopfront_auth.db (sibling to catalog/shopfront_catalog.db).

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select, text
from sqlalchemy.engine import Engine

from auth.models import Account, Role

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'shopfront_auth.db'}"

# Upper bound of an SQLite INTEGER; larger ids cannot exist and overflow the driver.
MAX_ID = 2**63 - 1

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default=Role.customer.value),
    Column("refresh_token_hash", String(64)),  # HMAC-SHA256 hex, NULL = logged out
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Public sort keys (camelCase, as accepted on the wire) -> columns.
SORT_COLUMNS = {
    "name": _accounts.c.name,
    "email": _accounts.c.email,
    "role": _accounts.c.role,
    "createdAt": _accounts.c.created_at,
    "updatedAt": _accounts.c.updated_at,
}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore()
        store.create_account(Account(name="Ada", email="ada@x.com", hashed_password=hash_password("secret")))
        account = store.get_by_email("ada@x.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /api/health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Account queries
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers check email_taken() first for a friendly error, and still
        catch IntegrityError for the race where two registrations interleave.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    name=account.name,
                    email=normalize_email(account.email),
                    hashed_password=account.hashed_password,
                    role=Role(account.role).value,
                    refresh_token_hash=account.refresh_token_hash,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == normalize_email(email))).fetchone()
        return _row_to_account(row) if row is not None else None

    def email_taken(self, email: str, exclude_id: int | None = None) -> bool:
        """Return True if another account already uses this email."""
        query = select(_accounts.c.id).where(_accounts.c.email == normalize_email(email))
        if exclude_id is not None:
            query = query.where(_accounts.c.id != exclude_id)
        with self.engine.connect() as conn:
            return conn.execute(query).first() is not None

    def list_accounts(
        self,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        role: Role | None = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[Account], int]:
        """Return one page of accounts plus the total number matching the filters.

        search is a case-insensitive substring match on name or email. Unknown
        sort_by values fall back to createdAt. Ties are broken by id so pages
        never overlap.
        """
        conditions = []
        if search:
            needle = search.lower()
            conditions.append(
                or_(
                    func.lower(_accounts.c.name).contains(needle, autoescape=True),
                    func.lower(_accounts.c.email).contains(needle, autoescape=True),
                )
            )
        if role is not None:
            conditions.append(_accounts.c.role == Role(role).value)

        column = SORT_COLUMNS.get(sort_by, _accounts.c.created_at)
        if sort_order == "asc":
            ordering = (column.asc(), _accounts.c.id.asc())
        else:
            ordering = (column.desc(), _accounts.c.id.desc())

        page = max(page, 1)
        query = _accounts.select().where(*conditions).order_by(*ordering).limit(limit).offset((page - 1) * limit)
        count_query = select(func.count()).select_from(_accounts).where(*conditions)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = conn.execute(count_query).scalar() or 0
        return [_row_to_account(r) for r in rows], total

    def update_account(self, account_id: int, **fields) -> bool:
        """Update mutable fields on an existing account.

        Accepted fields: name, email, role, hashed_password, refresh_token_hash.
        updated_at is stamped automatically.

        Returns True if a row was updated, False if account_id was not found.
        """
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def set_refresh_token_hash(self, account_id: int, token_hash: str | None) -> bool:
        """Overwrite the single stored refresh token hash (None = logged out).

        Does not touch updated_at -- token rotation is not a profile change.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update().where(_accounts.c.id == account_id).values(refresh_token_hash=token_hash)
            )
            conn.commit()
        return result.rowcount > 0

    def count_admins(self) -> int:
        """Return the number of admin accounts. Checked at startup to warn about a missing admin."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_accounts).where(_accounts.c.role == Role.admin.value)
            ).scalar()
        return result or 0

    def delete_account(self, account_id: int) -> bool:
        """Permanently delete an account. Returns True if deleted, False if not found.

        Product deactivation for admin accounts is the caller's job (the
        catalog store owns products; this layer does not import it).
        """
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        """Dispose the engine connection pool."""
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        refresh_token_hash=row.refresh_token_hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
