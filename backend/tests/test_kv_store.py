"""Tests for the SQL-backed key-value store with TTL."""

from __future__ import annotations

import pytest
from sqlmodel import Session, select

from callreveal.models.kv import KVEntry
from callreveal.services.kv_store import KVStore


def test_get_missing_returns_none(kv_store: KVStore) -> None:
    assert kv_store.get("nope") is None


def test_put_and_get_json_value(kv_store: KVStore) -> None:
    value = {"messages": [{"role": "user", "content": "¿Hace calor?"}], "hintCount": 1}
    kv_store.put("chat:abc", value)
    assert kv_store.get("chat:abc") == value


def test_put_overwrites(kv_store: KVStore) -> None:
    kv_store.put("k", 1)
    kv_store.put("k", 2)
    assert kv_store.get("k") == 2


def test_delete(kv_store: KVStore) -> None:
    kv_store.put("k", "v")
    kv_store.delete("k")
    assert kv_store.get("k") is None


def test_delete_missing_is_noop(kv_store: KVStore) -> None:
    kv_store.delete("never-written")


def test_entry_visible_until_ttl(kv_store: KVStore, after_opening) -> None:
    kv_store.put("k", "v", ttl_seconds=60)
    after_opening.advance(seconds=59)
    assert kv_store.get("k") == "v"


def test_entry_expires_at_ttl(kv_store: KVStore, after_opening, engine) -> None:
    kv_store.put("k", "v", ttl_seconds=60)
    after_opening.advance(seconds=60)
    assert kv_store.get("k") is None
    # Reading an expired entry also removes it
    with Session(engine) as session:
        assert session.get(KVEntry, "k") is None


def test_rewrite_refreshes_ttl(kv_store: KVStore, after_opening) -> None:
    kv_store.put("k", "v1", ttl_seconds=60)
    after_opening.advance(seconds=50)
    kv_store.put("k", "v2", ttl_seconds=60)
    after_opening.advance(seconds=50)
    assert kv_store.get("k") == "v2"


def test_put_without_ttl_never_expires(kv_store: KVStore, after_opening) -> None:
    kv_store.put("k", "v")
    after_opening.advance(days=365)
    assert kv_store.get("k") == "v"


@pytest.mark.parametrize("ttl", [0, -5])
def test_non_positive_ttl_rejected(kv_store: KVStore, ttl: int) -> None:
    with pytest.raises(ValueError):
        kv_store.put("k", "v", ttl_seconds=ttl)


def test_sweep_removes_only_expired(kv_store: KVStore, after_opening, engine) -> None:
    kv_store.put("short", 1, ttl_seconds=10)
    kv_store.put("long", 2, ttl_seconds=1000)
    kv_store.put("forever", 3)
    after_opening.advance(seconds=30)

    assert kv_store.sweep_expired() == 1

    with Session(engine) as session:
        keys = set(session.exec(select(KVEntry.key)).all())
    assert keys == {"long", "forever"}
