"""Tests for the TTL read cache and its key helpers."""
from __future__ import annotations

import pytest

from workplace_pulse import cache as cache_mod
from workplace_pulse.cache import MISS, ReadCache
from workplace_pulse.models import Session


@pytest.fixture
def read_cache(clock):
    return ReadCache(clock=clock)


def test_hit_before_expiry_and_miss_after(read_cache, clock):
    read_cache.set("k", {"v": 1}, ttl_seconds=30)

    clock.advance(29)
    assert read_cache.get("k") == {"v": 1}

    clock.advance(1)
    assert read_cache.get("k") is MISS
    assert len(read_cache) == 0


def test_none_is_a_cacheable_value(read_cache):
    read_cache.set("k", None, ttl_seconds=1)
    assert read_cache.get("k") is None
    assert read_cache.get("other") is MISS
    assert not MISS


def test_non_positive_ttl_rejected(read_cache):
    with pytest.raises(ValueError):
        read_cache.set("k", 1, ttl_seconds=0)


def test_get_or_set_calls_factory_once(read_cache, clock):
    calls = []

    def _factory():
        calls.append(1)
        return len(calls)

    assert read_cache.get_or_set("k", _factory, 15) == 1
    assert read_cache.get_or_set("k", _factory, 15) == 1
    clock.advance(15)
    assert read_cache.get_or_set("k", _factory, 15) == 2


def test_cleanup_evicts_only_expired(read_cache, clock):
    read_cache.set("short", 1, ttl_seconds=5)
    read_cache.set("long", 2, ttl_seconds=50)
    clock.advance(10)

    assert read_cache.cleanup() == 1
    assert read_cache.get("long") == 2
    assert len(read_cache) == 1


def test_delete_and_clear(read_cache):
    read_cache.set("a", 1, 10)
    read_cache.set("b", 2, 10)
    read_cache.delete("a", "missing")
    assert read_cache.get("a") is MISS
    read_cache.clear()
    assert len(read_cache) == 0


def test_invalidate_session_drops_all_derived_keys(read_cache):
    session = Session("sid-1", "ABC123", "Offsite", slug="offsite-abc123")
    keys = [
        cache_mod.session_slug_key(session.slug),
        cache_mod.session_code_key(session.code),
        cache_mod.session_id_key(session.session_id),
        cache_mod.participants_key(session.session_id),
        cache_mod.analytics_key(session.slug),
    ]
    for key in keys:
        read_cache.set(key, "value", 30)
    read_cache.set("session:another", "keep", 30)

    cache_mod.invalidate_session(read_cache, session)

    assert all(read_cache.get(key) is MISS for key in keys)
    assert read_cache.get("session:another") == "keep"


def test_key_formats():
    assert cache_mod.session_slug_key("team-abc") == "session:team-abc"
    assert cache_mod.session_code_key("ABC") == "session_code:ABC"
    assert cache_mod.participants_key("s1") == "participants:s1"
    assert cache_mod.analytics_key("team-abc") == "analytics:team-abc"
    assert cache_mod.snapshot_key("store-a", "s1") == "snapshot:store-a:s1"
