"""Thread-safe memo table shared by the enrichment resolvers."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

V = TypeVar("V")


class _ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class LabelCache(Generic[V]):
    """Unbounded key → label map guarded by a reader/writer lock.

    Two threads missing on the same key may both perform the lookup and both
    write; the last write wins and the map stays consistent.
    """

    def __init__(self) -> None:
        self._data: dict[str, V] = {}
        self._lock = _ReadWriteLock()

    def get(self, key: str) -> tuple[bool, V | None]:
        with self._lock.read():
            if key in self._data:
                return True, self._data[key]
            return False, None

    def put(self, key: str, value: V) -> None:
        with self._lock.write():
            self._data[key] = value

    def __contains__(self, key: str) -> bool:
        with self._lock.read():
            return key in self._data

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._data)
