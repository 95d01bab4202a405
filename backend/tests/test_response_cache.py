from __future__ import annotations

from hawki.integrations.azure_devops.cache import CacheKey, ResponseCache


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_cache_key_is_canonical_regardless_of_param_order() -> None:
    first = CacheKey.build("teams", {"$top": 100, "$mine": "false"})
    second = CacheKey.build("teams", {"$mine": "false", "$top": 100})
    assert first == second
    assert first != CacheKey.build("projects", {"$top": 100, "$mine": "false"})


def test_entries_expire_after_ttl() -> None:
    clock = _Clock()
    cache = ResponseCache(clock=clock)
    key = CacheKey.build("projects")

    cache.set(key, ["p1"], ttl_seconds=60)
    clock.now += 59
    assert cache.get(key) == ["p1"]
    clock.now += 2
    assert cache.get(key) is None
    assert len(cache) == 0


def test_clear_reports_removed_entries() -> None:
    cache = ResponseCache()
    cache.set(CacheKey.build("projects"), [1], ttl_seconds=30)
    cache.set(CacheKey.build("users", {"subjectTypes": "aad"}), [2], ttl_seconds=30)
    cache.set(CacheKey.build("teams"), [3], ttl_seconds=0)

    assert len(cache) == 2
    assert cache.clear() == 2
    assert cache.get(CacheKey.build("projects")) is None
