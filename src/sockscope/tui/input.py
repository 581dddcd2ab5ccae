"""Non-blocking keyboard input via termios cbreak mode."""

from __future__ import annotations

import os
import selectors
import sys
import termios
import tty
from types import TracebackType

# Escape sequence mappings
_ESCAPE_SEQUENCES = {
    "[A": "up",
    "[B": "down",
    "[C": "right",
    "[D": "left",
    "[5~": "pgup",
    "[6~": "pgdown",
    "[H": "home",
    "[F": "end",
}

# Control bytes the session reducer knows by name
_CONTROL_KEYS = {
    "\r": "enter",
    "\n": "enter",
    "\x7f": "backspace",
    "\x08": "backspace",
    "\x02": "ctrl+b",
    "\x03": "ctrl+c",
    "\x04": "ctrl+d",
    "\x06": "ctrl+f",
    "\x15": "ctrl+u",
    "\t": "tab",
}


def normalize_key(raw: str) -> str:
    """Map a raw byte string to the key name used by the reducer."""
    return _CONTROL_KEYS.get(raw, raw)


class KeyboardInput:
    """Context manager that puts stdin into cbreak mode for single-key reads.

    Reads go through ``os.read`` on the raw descriptor so they stay in sync
    with what ``selectors`` reports as available.

    Usage::

        with KeyboardInput() as kb:
            key = kb.read(timeout=0.05)  # key name or None
    """

    def __init__(self) -> None:
        self._old_settings: list | None = None
        self._selector = selectors.DefaultSelector()
        self._fd: int = sys.stdin.fileno()

    def __enter__(self) -> KeyboardInput:
        self._old_settings = termios.tcgetattr(self._fd)
        tty.setcbreak(self._fd)
        self._selector.register(self._fd, selectors.EVENT_READ)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._selector.unregister(self._fd)
        self._selector.close()
        if self._old_settings is not None:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._old_settings)

    def _read_byte(self) -> str:
        return os.read(self._fd, 1).decode("utf-8", errors="replace")

    def read(self, timeout: float = 0.05) -> str | None:
        """Read a single key press, returning None on timeout."""
        ready = self._selector.select(timeout=timeout)
        if not ready:
            return None

        ch = self._read_byte()
        if ch == "\x1b":
            return self._read_escape_sequence()
        return normalize_key(ch)

    def _read_escape_sequence(self) -> str:
        """Read the rest of a CSI sequence such as \\x1b[A or \\x1b[5~."""
        seq = ""
        for _ in range(3):
            ready = self._selector.select(timeout=0.02)
            if not ready:
                break
            seq += self._read_byte()
            if seq in _ESCAPE_SEQUENCES:
                break

        return _ESCAPE_SEQUENCES.get(seq, "escape")
