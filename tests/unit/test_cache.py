"""Tests for the shared label cache."""

from __future__ import annotations

import threading

from sockscope.enrich.cache import LabelCache


def test_miss_then_hit():
    cache: LabelCache[str] = LabelCache()
    assert cache.get("1.2.3.4") == (False, None)
    cache.put("1.2.3.4", "example.com")
    assert cache.get("1.2.3.4") == (True, "example.com")
    assert "1.2.3.4" in cache
    assert len(cache) == 1


def test_empty_label_is_a_hit():
    cache: LabelCache[str] = LabelCache()
    cache.put("10.0.0.1", "")
    assert cache.get("10.0.0.1") == (True, "")


def test_last_write_wins():
    cache: LabelCache[str] = LabelCache()
    cache.put("k", "a")
    cache.put("k", "b")
    assert cache.get("k") == (True, "b")


def test_concurrent_writers_and_readers():
    cache: LabelCache[int] = LabelCache()
    errors: list[BaseException] = []

    def writer(offset: int) -> None:
        try:
            for i in range(200):
                cache.put(f"key-{i}", offset + i)
        except BaseException as e:  # pragma: no cover - surfaced below
            errors.append(e)

    def reader() -> None:
        try:
            for i in range(200):
                found, value = cache.get(f"key-{i}")
                assert not found or isinstance(value, int)
        except BaseException as e:  # pragma: no cover - surfaced below
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]
    threads += [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert not errors
    assert len(cache) == 200
