"""Unit tests for auth/denylist.py -- revoked token store.

Covers:
- add() / contains() within and after the entry's expiry
- purge_expired() removes only entries whose token already expired
- re-adding a jti replaces its expiry
"""

import pytest

from auth.denylist import RevokedTokenStore

NOW = 1_700_000_000.0


@pytest.fixture
def store():
    s = RevokedTokenStore(":memory:")
    yield s
    s.close()


def test_unknown_jti_is_not_revoked(store):
    assert store.contains("nope", now=NOW) is False


def test_contains_until_expiry(store):
    store.add("jti-1", NOW + 60)
    assert store.contains("jti-1", now=NOW) is True
    assert store.contains("jti-1", now=NOW + 59.9) is True
    assert store.contains("jti-1", now=NOW + 60) is False


def test_purge_removes_only_expired(store):
    store.add("old", NOW - 1)
    store.add("edge", NOW)
    store.add("live", NOW + 3600)
    removed = store.purge_expired(now=NOW)
    assert removed == 2
    assert store.count() == 1
    assert store.contains("live", now=NOW) is True


def test_purge_on_empty_store(store):
    assert store.purge_expired(now=NOW) == 0


def test_readd_replaces_expiry(store):
    store.add("jti-1", NOW + 10)
    store.add("jti-1", NOW + 100)
    assert store.count() == 1
    assert store.contains("jti-1", now=NOW + 50) is True


def test_persists_across_instances(tmp_path):
    path = tmp_path / "revoked.db"
    first = RevokedTokenStore(path)
    first.add("jti-1", NOW + 60)
    first.close()
    second = RevokedTokenStore(path)
    try:
        assert second.contains("jti-1", now=NOW) is True
    finally:
        second.close()
