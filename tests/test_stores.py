"""Unit tests for auth/store.py and catalog/store.py.

Covers:
- AccountStore: unique email (case-insensitive), list filters/sort/paging,
  updated_at stamping, refresh token hash overwrite, delete
- ProductStore: active filtering, field whitelist, cascade deactivation
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Account, Role
from catalog.models import Product


def _account(name: str, email: str, role: Role = Role.customer) -> Account:
    return Account(name=name, email=email, hashed_password="x", role=role)


def _product(name: str, created_by: int = 1, **overrides) -> Product:
    fields = dict(
        name=name,
        description="A perfectly fine product.",
        price=9.99,
        stock=3,
        category="misc",
        image_url="https://cdn.example.com/p.jpg",
        created_by=created_by,
    )
    fields.update(overrides)
    return Product(**fields)


# ---------------------------------------------------------------------------
# AccountStore
# ---------------------------------------------------------------------------


class TestAccountStore:
    def test_create_and_fetch(self, account_store):
        account_id = account_store.create_account(_account("Ada", "Ada@Example.com"))
        account = account_store.get_by_id(account_id)
        assert account.email == "ada@example.com"
        assert account.role is Role.customer
        assert account.refresh_token_hash is None
        assert account.created_at and account.created_at == account.updated_at
        assert account_store.get_by_email("ADA@example.com").id == account_id

    def test_duplicate_email_rejected(self, account_store):
        account_store.create_account(_account("Ada", "ada@example.com"))
        with pytest.raises(IntegrityError):
            account_store.create_account(_account("Other", "ADA@example.com"))

    def test_email_taken_excludes_self(self, account_store):
        account_id = account_store.create_account(_account("Ada", "ada@example.com"))
        assert account_store.email_taken("ada@example.com")
        assert not account_store.email_taken("ada@example.com", exclude_id=account_id)
        assert not account_store.email_taken("bob@example.com")

    def test_update_stamps_updated_at(self, account_store):
        account_id = account_store.create_account(_account("Ada", "ada@example.com"))
        before = account_store.get_by_id(account_id)
        assert account_store.update_account(account_id, name="Ada L.", role=Role.admin)
        after = account_store.get_by_id(account_id)
        assert after.name == "Ada L."
        assert after.role is Role.admin
        assert after.updated_at >= before.updated_at
        assert account_store.update_account(9999, name="nobody") is False

    def test_refresh_token_hash_overwrite(self, account_store):
        account_id = account_store.create_account(_account("Ada", "ada@example.com"))
        account_store.set_refresh_token_hash(account_id, "a" * 64)
        account_store.set_refresh_token_hash(account_id, "b" * 64)
        assert account_store.get_by_id(account_id).refresh_token_hash == "b" * 64
        account_store.set_refresh_token_hash(account_id, None)
        assert account_store.get_by_id(account_id).refresh_token_hash is None

    def test_delete(self, account_store):
        account_id = account_store.create_account(_account("Ada", "ada@example.com"))
        assert account_store.delete_account(account_id)
        assert account_store.get_by_id(account_id) is None
        assert account_store.delete_account(account_id) is False

    def test_count_admins(self, account_store):
        assert account_store.count_admins() == 0
        account_store.create_account(_account("Root", "root@example.com", Role.admin))
        account_store.create_account(_account("Ada", "ada@example.com"))
        assert account_store.count_admins() == 1


class TestAccountListing:
    @pytest.fixture
    def seeded(self, account_store):
        account_store.create_account(_account("Charlie", "charlie@example.com"))
        account_store.create_account(_account("alice", "alice@shop.test", Role.admin))
        account_store.create_account(_account("Bob", "bob@example.com"))
        account_store.create_account(_account("Dana", "dana_100%@example.com"))
        return account_store

    def test_paging_and_total(self, seeded):
        first, total = seeded.list_accounts(page=1, limit=3)
        second, _ = seeded.list_accounts(page=2, limit=3)
        assert total == 4
        assert len(first) == 3 and len(second) == 1
        assert not {a.id for a in first} & {a.id for a in second}

    def test_default_order_is_newest_first(self, seeded):
        accounts, _ = seeded.list_accounts()
        assert [a.name for a in accounts] == ["Dana", "Bob", "alice", "Charlie"]

    def test_sort_by_name_ascending(self, seeded):
        accounts, _ = seeded.list_accounts(sort_by="name", sort_order="asc")
        assert [a.name for a in accounts] == ["Bob", "Charlie", "Dana", "alice"]

    def test_search_name_or_email_case_insensitive(self, seeded):
        accounts, total = seeded.list_accounts(search="ALIC")
        assert total == 1 and accounts[0].email == "alice@shop.test"
        _, total = seeded.list_accounts(search="example.com")
        assert total == 3

    def test_search_wildcards_are_literal(self, seeded):
        accounts, total = seeded.list_accounts(search="100%")
        assert total == 1 and accounts[0].name == "Dana"
        _, total = seeded.list_accounts(search="_")
        assert total == 1

    def test_role_filter(self, seeded):
        accounts, total = seeded.list_accounts(role=Role.admin)
        assert total == 1 and accounts[0].name == "alice"

    def test_page_past_end_is_empty(self, seeded):
        accounts, total = seeded.list_accounts(page=10, limit=10)
        assert accounts == [] and total == 4


# ---------------------------------------------------------------------------
# ProductStore
# ---------------------------------------------------------------------------


class TestProductStore:
    def test_create_and_fetch(self, product_store):
        product_id = product_store.create_product(_product("Lamp", tags=["home", "light"]))
        product = product_store.get_product(product_id)
        assert product.name == "Lamp"
        assert product.tags == ["home", "light"]
        assert product.is_active is True

    def test_inactive_hidden_by_default(self, product_store):
        product_store.create_product(_product("Visible"))
        product_store.create_product(_product("Hidden", is_active=False))
        assert [p.name for p in product_store.list_products()] == ["Visible"]
        assert {p.name for p in product_store.list_products(include_inactive=True)} == {"Visible", "Hidden"}

    def test_update(self, product_store):
        product_id = product_store.create_product(_product("Lamp"))
        assert product_store.update_product(product_id, price=19.5, tags=["sale"], is_active=False)
        product = product_store.get_product(product_id)
        assert product.price == 19.5
        assert product.tags == ["sale"]
        assert product.is_active is False
        assert product_store.update_product(9999, price=1.0) is False

    def test_update_rejects_unknown_fields(self, product_store):
        product_id = product_store.create_product(_product("Lamp"))
        with pytest.raises(ValueError):
            product_store.update_product(product_id, created_by=2)

    def test_deactivate_by_creator(self, product_store):
        product_store.create_product(_product("Mine A", created_by=1))
        product_store.create_product(_product("Mine B", created_by=1))
        other_id = product_store.create_product(_product("Theirs", created_by=2))
        assert product_store.deactivate_by_creator(1) == 2
        assert [p.id for p in product_store.list_products()] == [other_id]
        # Rows are kept, only hidden
        assert len(product_store.list_products(include_inactive=True)) == 3
        assert product_store.deactivate_by_creator(1) == 0

    def test_delete(self, product_store):
        product_id = product_store.create_product(_product("Lamp"))
        assert product_store.delete_product(product_id)
        assert product_store.get_product(product_id) is None
        assert product_store.delete_product(product_id) is False
