"""Tests for the create-admin command in main.py."""

import sys

import pytest

import main
from auth.models import Role
from auth.store import AccountStore
from auth.tokens import verify_password
from core.config import get_settings


@pytest.fixture
def db_url(tmp_path, monkeypatch) -> str:
    url = f"sqlite:///{tmp_path / 'cli_auth.db'}"
    monkeypatch.setattr(get_settings(), "auth_db_url", url)
    return url


def _run(monkeypatch, *argv: str) -> int:
    monkeypatch.setattr(sys, "argv", ["main.py", *argv])
    return main.main()


def test_create_admin(db_url, monkeypatch, capsys):
    code = _run(monkeypatch, "create-admin", "--name", "Root", "--email", "Root@Shop.test", "--password", "long-secret")
    assert code == 0
    assert "Created admin account" in capsys.readouterr().out

    store = AccountStore(db_url)
    account = store.get_by_email("root@shop.test")
    store.close()
    assert account.role is Role.admin
    assert verify_password("long-secret", account.hashed_password)


def test_create_admin_duplicate_email(db_url, monkeypatch, capsys):
    args = ("create-admin", "--name", "Root", "--email", "root@shop.test", "--password", "long-secret")
    assert _run(monkeypatch, *args) == 0
    assert _run(monkeypatch, *args) == 1
    assert "already exists" in capsys.readouterr().out


@pytest.mark.parametrize(
    "name, email, password",
    [
        ("Root", "root@shop.test", "123"),
        ("Root", "root@shop.test", "p" * 73),
        ("Root", "not-an-email", "long-secret"),
        ("R", "root@shop.test", "long-secret"),
    ],
)
def test_create_admin_rejects_what_register_rejects(db_url, monkeypatch, capsys, name, email, password):
    code = _run(monkeypatch, "create-admin", "--name", name, "--email", email, "--password", password)
    assert code == 1
    assert "[!]" in capsys.readouterr().out

    store = AccountStore(db_url)
    assert store.count_admins() == 0
    store.close()


def test_no_command_prints_help(monkeypatch, capsys):
    assert _run(monkeypatch) == 0
    assert "create-admin" in capsys.readouterr().out
