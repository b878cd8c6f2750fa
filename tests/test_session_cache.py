from __future__ import annotations

import os
import time
from concurrent.futures import ThreadPoolExecutor
from threading import Lock

import pytest

from conftest import user_snapshot
from prettify_type_mcp.graph_oracle import GraphTypeOracle, load_graph_session
from prettify_type_mcp.session_cache import (
    DEFAULT_SKIPPED_TYPE_NAMES,
    LRUCache,
    ProjectConfigNotFoundError,
    SessionBuildError,
    SessionCache,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_lru_evicts_least_recently_used():
    cache = LRUCache(2)
    cache.set("A", 1)
    cache.set("B", 2)
    assert cache.get("A") == 1

    cache.set("C", 3)

    assert cache.has("A")
    assert not cache.has("B")
    assert cache.has("C")
    assert cache.keys() == ("A", "C")


def test_lru_overwrite_does_not_evict():
    cache = LRUCache(2)
    cache.set("A", 1)
    cache.set("B", 2)
    cache.set("A", 10)

    assert cache.size == 2
    assert cache.get("A") == 10
    assert cache.keys() == ("B", "A")


def test_lru_get_missing_returns_default():
    cache = LRUCache(1)

    assert cache.get("nope") is None
    assert cache.get("nope", "fallback") == "fallback"
    assert cache.pop("nope", 0) == 0


def test_lru_entries_expire_after_ttl():
    clock = FakeClock()
    cache = LRUCache(3, ttl_seconds=10, clock=clock)
    cache.set("A", 1)

    clock.now = 9.9
    assert cache.get("A") == 1

    clock.now = 10.0
    assert cache.get("A") is None
    assert "A" not in cache
    assert len(cache) == 0


def test_lru_access_does_not_extend_ttl():
    clock = FakeClock()
    cache = LRUCache(3, ttl_seconds=10, clock=clock)
    cache.set("A", 1)

    clock.now = 5
    cache.get("A")
    clock.now = 11

    assert not cache.has("A")


def test_lru_overwrite_resets_ttl():
    clock = FakeClock()
    cache = LRUCache(3, ttl_seconds=10, clock=clock)
    cache.set("A", 1)
    clock.now = 8
    cache.set("A", 2)
    clock.now = 15

    assert cache.get("A") == 2


@pytest.mark.parametrize("capacity", [0, -1, 1.5, True, "3"])
def test_lru_rejects_invalid_capacity(capacity):
    with pytest.raises(ValueError):
        LRUCache(capacity)


def test_lru_rejects_non_positive_ttl():
    with pytest.raises(ValueError):
        LRUCache(1, ttl_seconds=0)


def test_lru_clear():
    cache = LRUCache(2)
    cache.set("A", 1)
    cache.clear()

    assert cache.size == 0
    assert cache.keys() == ()


def test_lru_concurrent_access_respects_capacity():
    cache = LRUCache(8)

    def worker(index: int) -> None:
        for step in range(50):
            key = (index * 50 + step) % 20
            cache.set(key, step)
            cache.get(key)

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(worker, range(8)))

    assert cache.size == 8


def test_session_cache_reuses_session(write_snapshot):
    path = write_snapshot()
    calls = []

    def factory(config_path: str):
        calls.append(config_path)
        return load_graph_session(config_path)

    cache = SessionCache(factory)
    first = cache.get_or_create(str(path))
    second = cache.get_or_create(str(path))

    assert first is second
    assert isinstance(first.oracle, GraphTypeOracle)
    assert calls == [os.path.abspath(path)]
    assert cache.keys() == (os.path.abspath(path),)


def test_session_cache_rebuilds_when_config_changes(write_snapshot):
    path = write_snapshot()
    cache = SessionCache(load_graph_session)
    first = cache.get_or_create(str(path))

    stat = os.stat(path)
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))
    second = cache.get_or_create(str(path))

    assert second is not first
    assert second.config_mtime == os.stat(path).st_mtime
    assert cache.size == 1


def test_session_cache_missing_config(tmp_path):
    cache = SessionCache(load_graph_session)

    with pytest.raises(ProjectConfigNotFoundError):
        cache.get_or_create(str(tmp_path / "type-graph.json"))


def test_session_cache_does_not_cache_failed_builds(write_snapshot):
    path = write_snapshot()
    attempts = []

    def flaky(config_path: str):
        attempts.append(config_path)
        if len(attempts) == 1:
            raise RuntimeError("checker unavailable")
        return load_graph_session(config_path)

    cache = SessionCache(flaky)
    with pytest.raises(SessionBuildError) as excinfo:
        cache.get_or_create(str(path))

    assert isinstance(excinfo.value.cause, RuntimeError)
    assert cache.size == 0
    assert cache.get_or_create(str(path)).oracle is not None
    assert len(attempts) == 2


def test_session_cache_wraps_invalid_snapshot(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    cache = SessionCache(load_graph_session)

    with pytest.raises(SessionBuildError) as excinfo:
        cache.get_or_create(str(broken))

    assert excinfo.value.config_path == str(broken)


def test_session_cache_filters_unknown_skipped_names(write_snapshot):
    data = user_snapshot()
    data["types"]["date"] = {"name": "Date", "category": "object"}
    data["types"]["regexp"] = {"name": "RegExp", "category": "object"}
    path = write_snapshot(data)

    entry = SessionCache(load_graph_session).get_or_create(str(path))

    assert entry.skipped_type_names == ("Date", "RegExp")
    assert set(entry.skipped_type_names) <= set(DEFAULT_SKIPPED_TYPE_NAMES)


def test_session_cache_evicts_oldest_project(write_snapshot):
    paths = [write_snapshot(name=f"p{i}/type-graph.json") for i in range(3)]
    cache = SessionCache(load_graph_session, capacity=2)

    for path in paths:
        cache.get_or_create(str(path))

    assert cache.keys() == tuple(os.path.abspath(p) for p in paths[1:])


def test_session_cache_expires_sessions(write_snapshot):
    clock = FakeClock()
    path = write_snapshot()
    cache = SessionCache(load_graph_session, ttl_seconds=60, clock=clock)
    first = cache.get_or_create(str(path))

    clock.now = 61

    assert cache.get_or_create(str(path)) is not first


def test_session_cache_builds_once_under_concurrency(write_snapshot):
    path = write_snapshot()
    lock = Lock()
    builds = []

    def slow_factory(config_path: str):
        with lock:
            builds.append(config_path)
        time.sleep(0.01)
        return load_graph_session(config_path)

    cache = SessionCache(slow_factory)

    with ThreadPoolExecutor(max_workers=6) as executor:
        entries = list(executor.map(lambda _: cache.get_or_create(str(path)), range(6)))

    assert len(builds) == 1
    assert all(entry is entries[0] for entry in entries)
