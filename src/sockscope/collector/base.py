"""ConnectionSource protocol: all snapshot providers must satisfy this."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sockscope.collector.models import Connection


class SourceError(RuntimeError):
    """A snapshot could not be taken (permissions, missing file, OS error)."""


@runtime_checkable
class ConnectionSource(Protocol):
    """Protocol for socket-table snapshot providers."""

    def fetch(self) -> list[Connection]:
        """Return one point-in-time list of connections.

        Raises SourceError when the snapshot cannot be taken.
        """
        ...
