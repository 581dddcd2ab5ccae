"""Deterministic snapshot source backed by a fixed list or a JSON file."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from sockscope.collector.base import SourceError
from sockscope.collector.models import Connection

logger = logging.getLogger(__name__)


class FixtureSource:
    """Returns the same connection list on every fetch.

    Used by tests and by ``--fixture`` to replay a saved snapshot without
    touching the host socket table.
    """

    def __init__(self, connections: list[Connection] | None = None) -> None:
        self._connections: list[Connection] = list(connections or [])

    @classmethod
    def from_file(cls, path: str | Path) -> FixtureSource:
        """Load a snapshot saved as a JSON array of connection objects."""
        try:
            text = Path(path).read_text(encoding="utf-8")
            data = json.loads(text)
        except (OSError, json.JSONDecodeError) as exc:
            raise SourceError(f"cannot load fixture {path}: {exc}") from exc
        if not isinstance(data, list):
            raise SourceError(f"fixture {path} must contain a JSON array")
        try:
            connections = [Connection.from_dict(item) for item in data]
        except (TypeError, ValueError) as exc:
            raise SourceError(f"invalid connection in fixture {path}: {exc}") from exc
        logger.debug("Loaded %d connections from %s", len(connections), path)
        return cls(connections)

    def set_connections(self, connections: list[Connection]) -> None:
        self._connections = list(connections)

    def save_to_file(self, path: str | Path) -> None:
        data = [c.to_dict() for c in self._connections]
        Path(path).write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    def fetch(self) -> list[Connection]:
        return list(self._connections)
