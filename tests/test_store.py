import pytest

from globizora_api import store
from globizora_api.errors import ConflictError, NotFoundError


def test_create_and_find(db):
    user = store.create(db, "alice", "Alice@X.com", "hash")
    assert user.id
    assert user.email == "alice@x.com"
    assert user.subscription == "free"
    assert user.usage == 0
    assert user.api_key is None

    assert store.find_by_email(db, "ALICE@x.com").id == user.id
    assert store.find_by_id(db, user.id).username == "alice"
    assert store.find_by_id(db, "missing") is None


def test_duplicate_email_conflicts(db):
    store.create(db, "alice", "a@x.com", "hash")
    with pytest.raises(ConflictError):
        store.create(db, "bob", "a@x.com", "hash")


def test_duplicate_username_conflicts(db):
    store.create(db, "alice", "a@x.com", "hash")
    with pytest.raises(ConflictError):
        store.create(db, "alice", "b@x.com", "hash")


def test_public_user_hides_password_hash(db):
    user = store.create(db, "alice", "a@x.com", "hash")
    out = store.public_user(user)
    assert "password_hash" not in out
    assert "password" not in out
    assert out["username"] == "alice"


def test_public_user_api_key_only_when_asked(db):
    user = store.create(db, "alice", "a@x.com", "hash")
    user = store.update(db, user.id, api_key="k" * 64)
    assert "apiKey" not in store.public_user(user)
    assert store.public_user(user, include_api_key=True)["apiKey"] == "k" * 64


def test_update_fields(db):
    user = store.create(db, "alice", "a@x.com", "hash")
    updated = store.update(db, user.id, subscription="pro", api_key="k" * 64)
    assert updated.subscription == "pro"
    assert store.find_by_api_key(db, "k" * 64).id == user.id


def test_update_missing_user(db):
    with pytest.raises(NotFoundError):
        store.update(db, "missing", subscription="pro")


def test_update_rejects_immutable_and_invalid_values(db):
    user = store.create(db, "alice", "a@x.com", "hash")
    with pytest.raises(ValueError):
        store.update(db, user.id, password_hash="other")
    with pytest.raises(ValueError):
        store.update(db, user.id, subscription="platinum")
    with pytest.raises(ValueError):
        store.update(db, user.id, usage=-1)


def test_duplicate_api_key_conflicts(db):
    a = store.create(db, "alice", "a@x.com", "hash")
    b = store.create(db, "bob", "b@x.com", "hash")
    store.update(db, a.id, api_key="same")
    with pytest.raises(ConflictError):
        store.update(db, b.id, api_key="same")


def test_increment_usage(db):
    user = store.create(db, "alice", "a@x.com", "hash")
    assert store.increment_usage(db, user.id) == 1
    assert store.increment_usage(db, user.id) == 2
    with pytest.raises(NotFoundError):
        store.increment_usage(db, "missing")


def test_list_and_count(db):
    store.create(db, "alice", "a@x.com", "hash")
    store.create(db, "bob", "b@x.com", "hash")
    assert store.count_users(db) == 2
    assert {u.username for u in store.list_users(db)} == {"alice", "bob"}
