"""Terminate action: send SIGTERM to the process owning a connection."""

from __future__ import annotations

import logging
import os
import signal
from typing import Callable

logger = logging.getLogger(__name__)

Terminator = Callable[[int], None]


class TerminateError(RuntimeError):
    """The signal could not be delivered."""


def send_sigterm(pid: int) -> None:
    """Default terminator. Raises ``TerminateError`` with a short reason."""
    if pid <= 0:
        raise TerminateError(f"invalid pid {pid}")
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError as e:
        raise TerminateError("no such process") from e
    except PermissionError as e:
        raise TerminateError("permission denied") from e


class TerminateAction:
    """Terminates a process through an injectable terminator callable."""

    def __init__(self, terminator: Terminator | None = None) -> None:
        self._terminator = terminator or send_sigterm

    def execute(self, pid: int, process: str = "") -> tuple[bool, str]:
        """Returns ``(success, error)``; never raises for delivery failures."""
        logger.info("Sending SIGTERM to process %d (%s)", pid, process or "?")
        try:
            self._terminator(pid)
        except (TerminateError, OSError) as e:
            logger.warning("Failed to terminate process %d: %s", pid, e)
            return False, str(e)
        logger.info("Process %d terminated", pid)
        return True, ""
