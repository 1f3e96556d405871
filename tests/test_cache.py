import time
from datetime import timedelta

import pytest

from retrybill.cache import CacheManager, LocalCacheManager

KINDS = ["fast", "local"]


@pytest.mark.parametrize("kind", KINDS)
def test_set_and_get(kind):
    cache = CacheManager() if kind == "fast" else LocalCacheManager()
    cache.set("k", {"a": 1}, 60)
    assert cache.get("k") == {"a": 1}


@pytest.mark.parametrize("kind", KINDS)
def test_get_missing_returns_default(kind):
    cache = CacheManager() if kind == "fast" else LocalCacheManager()
    assert cache.get("nope") is None
    assert cache.get("nope", "fallback") == "fallback"


@pytest.mark.parametrize("kind", KINDS)
def test_delete(kind):
    cache = CacheManager() if kind == "fast" else LocalCacheManager()
    cache.set("k", "v", 60)
    cache.delete("k")
    assert cache.get("k", "gone") == "gone"


@pytest.mark.parametrize("kind", KINDS)
def test_expiry(kind):
    cache = CacheManager() if kind == "fast" else LocalCacheManager()
    cache.set("k", "v", timedelta(milliseconds=50))
    time.sleep(0.3)
    assert cache.get("k", "expired") == "expired"


@pytest.mark.parametrize("kind", KINDS)
def test_remember_computes_once(kind):
    cache = CacheManager() if kind == "fast" else LocalCacheManager()
    calls = []

    def compute():
        calls.append(1)
        return "value"

    assert cache.remember("k", 60, compute) == "value"
    assert cache.remember("k", 60, compute) == "value"
    assert len(calls) == 1


@pytest.mark.parametrize("kind", KINDS)
def test_remember_recomputes_after_delete(kind):
    cache = CacheManager() if kind == "fast" else LocalCacheManager()
    results = iter(["first", "second"])
    assert cache.remember("k", 60, lambda: next(results)) == "first"
    cache.delete("k")
    assert cache.remember("k", 60, lambda: next(results)) == "second"


def test_zero_ttl_never_expires():
    cache = CacheManager()
    cache.set("k", "v", 0)
    time.sleep(0.05)
    assert cache.get("k") == "v"


def test_negative_ttl_is_not_stored():
    cache = CacheManager()
    cache.set("k", "v", -1)
    assert cache.get("k", "absent") == "absent"


def test_local_overwrite_resets_expiry():
    cache = LocalCacheManager()
    cache.set("k", "old", 0.1)
    cache.set("k", "new", 10)
    time.sleep(0.3)
    assert cache.get("k") == "new"