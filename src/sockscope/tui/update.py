"""The session reducer: ``update(state, message) -> (state, tasks)``.

Pure with respect to its inputs: the given state is never mutated and all
side effects are requested as tasks.
"""

from __future__ import annotations

import time
from dataclasses import replace

from sockscope.tui.messages import (
    ClearStatus,
    ClearStatusTask,
    DataLoaded,
    DetailEnriched,
    EnrichTask,
    FetchFailed,
    FetchTask,
    KeyPress,
    KillResult,
    KillTask,
    Message,
    Resize,
    Task,
    Tick,
    TickTask,
)
from sockscope.tui.state import SessionState, ViewMode

# Status message durations in seconds
KILL_STATUS_DURATION = 3.0
WATCH_STATUS_DURATION = 2.0

Result = tuple[SessionState, list[Task]]


def update(state: SessionState, msg: Message, now: float | None = None) -> Result:
    """Apply one message. ``now`` defaults to the wall clock."""
    now = time.time() if now is None else now

    if isinstance(msg, KeyPress):
        return handle_key(state, msg.key, now)

    if isinstance(msg, Tick):
        # Refresh runs regardless of mode, modals included.
        return state, [FetchTask(), TickTask(state.interval)]

    if isinstance(msg, Resize):
        return replace(state, width=msg.width, height=msg.height), []

    if isinstance(msg, DataLoaded):
        loaded = replace(
            state,
            connections=tuple(msg.connections),
            last_refresh=msg.at or now,
            error="",
        )
        return loaded.resorted().clamped(), []

    if isinstance(msg, FetchFailed):
        return replace(state, error=msg.error), []

    if isinstance(msg, KillResult):
        if msg.success:
            text = f"killed {msg.process} (pid {msg.pid})"
        else:
            text = f"failed to kill pid {msg.pid}: {msg.error}"
        return (
            _with_status(state, text, now, KILL_STATUS_DURATION),
            [FetchTask(), ClearStatusTask(KILL_STATUS_DURATION)],
        )

    if isinstance(msg, DetailEnriched):
        if state.mode is ViewMode.DETAIL and state.selected == msg.connection:
            return replace(state, detail=msg.info), []
        return state, []

    if isinstance(msg, ClearStatus):
        if state.status_message and now >= state.status_expiry:
            return replace(state, status_message=""), []
        return state, []

    return state, []


def _with_status(
    state: SessionState, text: str, now: float, duration: float
) -> SessionState:
    return replace(state, status_message=text, status_expiry=now + duration)


def handle_key(state: SessionState, key: str, now: float) -> Result:
    """Route a key to the handler of the active mode."""
    if state.mode is ViewMode.SEARCH:
        return _search_key(state, key), []
    if state.mode is ViewMode.KILL_CONFIRM:
        return _kill_confirm_key(state, key)
    if state.mode is ViewMode.DETAIL:
        if key in ("escape", "enter", "q"):
            return replace(state, mode=ViewMode.NORMAL, selected=None, detail=None), []
        return state, []
    if state.mode is ViewMode.HELP:
        if key in ("escape", "enter", "q", "?"):
            return replace(state, mode=ViewMode.NORMAL), []
        return state, []
    return _normal_key(state, key, now)


def _search_key(state: SessionState, key: str) -> SessionState:
    if key == "escape":
        return replace(state, mode=ViewMode.NORMAL, search_query="").clamped()
    if key == "enter":
        return replace(state, mode=ViewMode.NORMAL, cursor=0)
    if key == "backspace":
        return replace(state, search_query=state.search_query[:-1]).clamped()
    if len(key) == 1 and key.isprintable():
        return replace(state, search_query=state.search_query + key).clamped()
    return state


def _kill_confirm_key(state: SessionState, key: str) -> Result:
    if key in ("y", "Y"):
        target = state.kill_target
        closed = replace(state, mode=ViewMode.NORMAL, kill_target=None)
        if target is not None and target.pid > 0:
            return closed, [KillTask(target.pid, target.process)]
        return closed, []
    if key in ("n", "N", "escape", "q"):
        return replace(state, mode=ViewMode.NORMAL, kill_target=None), []
    return state, []


def move_cursor(state: SessionState, delta: int) -> SessionState:
    return replace(state, cursor=state.cursor + delta).clamped()


def _toggle(state: SessionState, flag: str) -> SessionState:
    return replace(state, **{flag: not getattr(state, flag)}).clamped()


def _normal_key(state: SessionState, key: str, now: float) -> Result:
    if key in ("q", "ctrl+c"):
        return replace(state, running=False), []

    # navigation
    if key in ("j", "down"):
        return move_cursor(state, 1), []
    if key in ("k", "up"):
        return move_cursor(state, -1), []
    if key == "g":
        return replace(state, cursor=0), []
    if key == "G":
        return replace(state, cursor=len(state.visible()) - 1).clamped(), []
    if key == "ctrl+d":
        return move_cursor(state, state.page_size // 2), []
    if key == "ctrl+u":
        return move_cursor(state, -(state.page_size // 2)), []
    if key in ("ctrl+f", "pgdown"):
        return move_cursor(state, state.page_size), []
    if key in ("ctrl+b", "pgup"):
        return move_cursor(state, -state.page_size), []

    # filter toggles
    toggles = {
        "t": "show_tcp",
        "u": "show_udp",
        "l": "show_listening",
        "e": "show_established",
        "o": "show_other",
    }
    if key in toggles:
        return _toggle(state, toggles[key]), []
    if key == "a":
        return replace(
            state,
            show_tcp=True,
            show_udp=True,
            show_listening=True,
            show_established=True,
            show_other=True,
        ).clamped(), []

    # sorting
    if key == "s":
        sort = replace(state.sort, field=state.sort.field.next())
        return replace(state, sort=sort).resorted(), []
    if key == "S":
        sort = replace(state.sort, descending=not state.sort.descending)
        return replace(state, sort=sort).resorted(), []

    if key == "/":
        return replace(state, mode=ViewMode.SEARCH, search_query="").clamped(), []
    if key == "?":
        return replace(state, mode=ViewMode.HELP), []
    if key == "r":
        return state, [FetchTask()]

    if key in ("enter", " "):
        conn = state.current()
        if conn is None:
            return state, []
        opened = replace(state, mode=ViewMode.DETAIL, selected=conn, detail=None)
        return opened, [EnrichTask(conn)]

    if key == "w":
        return _toggle_watch(state, now)
    if key == "W":
        count = len(state.watched)
        cleared = replace(state, watched=frozenset()).clamped()
        if not count:
            return cleared, []
        text = f"cleared {count} watched processes"
        return (
            _with_status(cleared, text, now, WATCH_STATUS_DURATION),
            [ClearStatusTask(WATCH_STATUS_DURATION)],
        )

    if key == "K":
        conn = state.current()
        if conn is None or conn.pid <= 0:
            return state, []
        return replace(state, mode=ViewMode.KILL_CONFIRM, kill_target=conn), []

    return state, []


def _toggle_watch(state: SessionState, now: float) -> Result:
    conn = state.current()
    if conn is None or conn.pid <= 0:
        return state, []

    was_watched = state.is_watched(conn.pid)
    watched = state.watched - {conn.pid} if was_watched else state.watched | {conn.pid}
    conn_count = sum(1 for c in state.connections if c.pid == conn.pid)

    if was_watched:
        text = f"unwatched {conn.process} (pid {conn.pid})"
    elif conn_count > 1:
        text = f"watching {conn.process} (pid {conn.pid}) - {conn_count} connections"
    else:
        text = f"watching {conn.process} (pid {conn.pid})"

    new_state = replace(state, watched=frozenset(watched)).clamped()
    return (
        _with_status(new_state, text, now, WATCH_STATUS_DURATION),
        [ClearStatusTask(WATCH_STATUS_DURATION)],
    )
