"""Unit tests for auth/dependencies.py -- Auth, Role and Self-Action guards.

The guards are plain callables, so they are exercised directly with a bare
Starlette Request built from an ASGI scope. End-to-end ordering (401 before
403 before the handler) is covered in test_user_routes.py.
"""

from datetime import timedelta

import pytest
from starlette.requests import Request

from auth.dependencies import (
    ensure_not_self,
    extract_bearer_token,
    get_current_identity,
    require_admin,
    require_role,
    self_action_guard,
)
from auth.models import Identity, Role
from auth.tokens import create_access_token, create_refresh_token
from core.errors import Forbidden, InvalidOperation, Unauthenticated


def _request(authorization: str | None = None) -> Request:
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


class TestExtractBearerToken:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("bearer abc", "abc"),
            (None, None),
            ("", None),
            ("Bearer", None),
            ("Bearer ", None),
            ("Basic dXNlcjpwYXNz", None),
            ("Bearer two tokens", None),
        ],
    )
    def test_parsing(self, value, expected):
        assert extract_bearer_token(value) == expected


class TestAuthGuard:
    def test_valid_token_attaches_identity(self):
        req = _request(f"Bearer {create_access_token(7, Role.customer)}")
        identity = get_current_identity(req)
        assert identity == Identity(account_id=7, role=Role.customer)
        assert req.state.identity == identity

    def test_missing_header(self):
        with pytest.raises(Unauthenticated):
            get_current_identity(_request())

    def test_expired_token(self):
        token = create_access_token(7, Role.customer, expires_delta=timedelta(minutes=-5))
        with pytest.raises(Unauthenticated) as exc_info:
            get_current_identity(_request(f"Bearer {token}"))
        assert exc_info.value.status_code == 401

    def test_refresh_token_rejected(self):
        with pytest.raises(Unauthenticated):
            get_current_identity(_request(f"Bearer {create_refresh_token(7, Role.customer)}"))


class TestRoleGuard:
    def test_admin_passes(self):
        identity = Identity(account_id=1, role=Role.admin)
        assert require_admin(identity=identity) is identity

    def test_customer_forbidden(self):
        with pytest.raises(Forbidden) as exc_info:
            require_admin(identity=Identity(account_id=1, role=Role.customer))
        assert exc_info.value.status_code == 403

    def test_customer_guard_rejects_admin(self):
        guard = require_role(Role.customer)
        with pytest.raises(Forbidden):
            guard(identity=Identity(account_id=1, role=Role.admin))


class TestSelfActionGuard:
    def test_other_target_allowed(self):
        ensure_not_self(2, Identity(account_id=1, role=Role.admin), "delete")

    def test_self_target_rejected(self):
        with pytest.raises(InvalidOperation) as exc_info:
            ensure_not_self(1, Identity(account_id=1, role=Role.admin), "delete")
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "self_action"
        assert exc_info.value.message == "Cannot delete your own account."

    def test_dependency_returns_target(self):
        guard = self_action_guard("modify")
        assert guard(account_id=5, identity=Identity(account_id=1, role=Role.admin)) == 5
        with pytest.raises(InvalidOperation):
            guard(account_id=1, identity=Identity(account_id=1, role=Role.admin))
