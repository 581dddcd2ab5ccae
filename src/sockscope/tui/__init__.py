"""Interactive live view of the socket table."""

from sockscope.tui.app import TuiApp
from sockscope.tui.state import SessionOptions, SessionState, ViewMode
from sockscope.tui.update import update

__all__ = ["SessionOptions", "SessionState", "TuiApp", "ViewMode", "update"]
