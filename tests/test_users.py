"""Tests for the SQLite user store."""

import sqlite3

import pytest

from task_mini_app.users import User, UserStore


@pytest.fixture
def store(tmp_path):
    s = UserStore(tmp_path / "data" / "users.sqlite3")
    s.init()
    return s


class TestUserStore:
    def test_init_creates_file(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "db.sqlite3"
        UserStore(path).init()
        assert path.exists()

    def test_init_is_idempotent(self, store):
        store.init()
        assert store.get(1) is None

    def test_insert(self, store):
        user = store.upsert_telegram_user(12345, username="ann", first_name="Ann")
        assert user.id > 0
        assert user.tg_id == 12345
        assert user.username == "ann"
        assert user.first_name == "Ann"

    def test_upsert_keeps_local_id(self, store):
        first = store.upsert_telegram_user(12345, username="ann", first_name="Ann")
        second = store.upsert_telegram_user(12345, username="ann2", first_name=None)
        assert second.id == first.id
        assert second.username == "ann2"
        assert second.first_name is None

    def test_distinct_users(self, store):
        a = store.upsert_telegram_user(1)
        b = store.upsert_telegram_user(2)
        assert a.id != b.id

    def test_get(self, store):
        user = store.upsert_telegram_user(7, username="seven")
        assert store.get(user.id) == user
        assert store.get(user.id + 100) is None

    def test_get_by_tg_id(self, store):
        user = store.upsert_telegram_user(7)
        assert store.get_by_tg_id(7) == user
        assert store.get_by_tg_id(8) is None

    def test_delete(self, store):
        user = store.upsert_telegram_user(7)
        assert store.delete(user.id)
        assert store.get(user.id) is None
        assert not store.delete(user.id)

    def test_persists_across_instances(self, store):
        user = store.upsert_telegram_user(7, username="seven")
        assert UserStore(store.db_path).get(user.id) == user

    def test_uninitialised_store_raises(self, tmp_path):
        with pytest.raises(sqlite3.OperationalError):
            UserStore(tmp_path / "empty.sqlite3").upsert_telegram_user(1)


class TestUserProfile:
    def test_as_profile(self):
        user = User(id=3, tg_id=12345, username=None, first_name="Ann")
        assert user.as_profile() == {
            "id": 3, "tg_id": 12345, "username": None, "first_name": "Ann",
        }
