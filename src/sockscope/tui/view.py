"""Live view: renders SessionState into one ANSI-styled frame."""

from __future__ import annotations

import time

from sockscope.collector.models import Connection
from sockscope.enrich.geoip import country_flag
from sockscope.render.layout import column_widths, safe_width, scroll_offset
from sockscope.render.text import (
    BOX_HORIZONTAL,
    BOX_VERTICAL,
    display_width,
    overlay,
    pad,
    truncate,
)
from sockscope.render.theme import Theme
from sockscope.tui.state import SessionState, ViewMode

SYMBOL_SELECTED = "▸"
SYMBOL_WATCHED = "★"
SYMBOL_WARNING = "⚠"
SYMBOL_ARROW_UP = "↑"
SYMBOL_ARROW_DOWN = "↓"
SYMBOL_REFRESH = "↻"
SYMBOL_DASH = "–"

_HELP = """
  navigation
  ──────────
  j/k ↑/↓      move cursor
  g/G          jump to top/bottom
  ctrl+d/u     half page down/up
  enter        show connection details

  filters
  ───────
  t            toggle tcp
  u            toggle udp
  l            toggle listening
  e            toggle established
  o            toggle other states
  a            reset all filters

  sorting
  ───────
  s            cycle sort field
  S            reverse sort order

  process management
  ──────────────────
  w            watch/unwatch process (highlight & track)
  W            clear all watched processes
  K            kill process (with confirmation)

  other
  ─────
  /            search
  r            refresh now
  q            quit

  press ? or esc to close
"""


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    return f"{seconds / 60:.0f}m"


def format_remote(addr: str, port: int) -> str:
    if addr in ("", "*") or port == 0:
        return "-"
    return f"{addr}:{port}"


class TuiDisplay:
    """Builds frames from the current SessionState."""

    def __init__(self, theme: Theme) -> None:
        self._theme = theme

    def render(self, state: SessionState, now: float | None = None) -> str:
        """Full frame for the current mode, modals composited on top."""
        now = time.time() if now is None else now
        if state.mode is ViewMode.HELP:
            lines = _HELP.split("\n")
            return "\n".join(self._theme.render("normal", line) for line in lines)

        main = self.render_main(state, now)
        t = self._theme

        def border(s: str) -> str:
            return t.render("border", s)

        if state.mode is ViewMode.DETAIL and state.selected is not None:
            return overlay(main, self.render_detail(state), state.width, state.height, border)
        if state.mode is ViewMode.KILL_CONFIRM and state.kill_target is not None:
            return overlay(main, self.render_kill(state), state.width, state.height, border)
        return main

    def render_main(self, state: SessionState, now: float) -> str:
        lines = [
            "",
            self._title(state, now),
            self._filters(state),
            "",
            self._header(state),
            self._separator(state),
        ]
        lines.extend(self._rows(state))
        lines.append("")
        lines.append(self._status_line(state, now))
        return "\n".join(lines)

    # --- sections ---

    def _spread(self, left: str, right: str, width: int) -> str:
        gap = max(0, width - display_width(left) - display_width(right) - 2)
        return left + " " * gap + right

    def _title(self, state: SessionState, now: float) -> str:
        t = self._theme
        visible = len(state.visible())
        ago = max(0.0, now - state.last_refresh) if state.last_refresh else 0.0
        left = "  " + t.render("header", "sockscope")
        right = t.render(
            "normal",
            f"{visible}/{len(state.connections)} connections  "
            f"{SYMBOL_REFRESH} {format_duration(ago)}",
        )
        return self._spread(left, right, safe_width(state.width))

    def _filter_label(self, first: str, rest: str, active: bool) -> str:
        style = "success" if active else "normal"
        return self._theme.render(f"{style}.key", first) + self._theme.render(style, rest)

    def _filters(self, state: SessionState) -> str:
        t = self._theme
        parts = [
            self._filter_label("t", "cp", state.show_tcp),
            self._filter_label("u", "dp", state.show_udp),
            t.render("border", BOX_VERTICAL),
            self._filter_label("l", "isten", state.show_listening),
            self._filter_label("e", "stab", state.show_established),
            self._filter_label("o", "ther", state.show_other),
        ]
        left = "  " + "  ".join(parts)

        if state.search_active:
            right = t.render("warning", f"/{state.search_query}▌")
        elif state.search_query:
            right = t.render("normal", f"filter: {state.search_query}")
        else:
            arrow = SYMBOL_ARROW_DOWN if state.sort.descending else SYMBOL_ARROW_UP
            right = t.render("normal", f"sort: {state.sort.field.label} {arrow}")
        return self._spread(left, right, safe_width(state.width)) + "  "

    def _header(self, state: SessionState) -> str:
        cols = column_widths(state.width)
        header = (
            f"  {'PROCESS':<{cols.process}}  {'PORT':<{cols.port}}  "
            f"{'PROTO':<{cols.proto}}  {'STATE':<{cols.state}}  "
            f"{'LOCAL':<{cols.local}}  REMOTE"
        )
        return self._theme.render("header", header)

    def _separator(self, state: SessionState) -> str:
        w = state.width - 4 if state.width > 4 else 76
        return self._theme.render("border", "  " + BOX_HORIZONTAL * w)

    def _rows(self, state: SessionState) -> list[str]:
        visible = state.visible()
        page = state.page_size
        if not visible:
            empty = ["  " + self._theme.render("normal", "no connections match filters")]
            return empty + [""] * (page - 1)

        start = scroll_offset(state.cursor, page, len(visible))
        rows: list[str] = []
        for i in range(page):
            idx = start + i
            if idx >= len(visible):
                rows.append("")
                continue
            rows.append(self._row(state, visible[idx], idx == state.cursor))
        return rows

    def _row(self, state: SessionState, c: Connection, selected: bool) -> str:
        t = self._theme
        cols = column_widths(state.width)

        if selected:
            indicator = t.render("success", SYMBOL_SELECTED + " ")
        elif state.is_watched(c.pid):
            indicator = t.render("watched", SYMBOL_WATCHED + " ")
        else:
            indicator = "  "

        process = truncate(c.process, cols.process) or SYMBOL_DASH
        state_text = c.state or SYMBOL_DASH
        local = c.laddr if c.laddr not in ("", "*") else "*"
        remote = format_remote(c.raddr, c.rport)

        proto_cell = t.proto(c.proto, pad(truncate(c.proto, cols.proto), cols.proto))
        state_cell = t.state(
            c.state, pad(truncate(state_text, cols.state), cols.state)
        )
        row = (
            f"{indicator}{pad(process, cols.process)}  "
            f"{pad(str(c.lport), cols.port)}  {proto_cell}  {state_cell}  "
            f"{pad(truncate(local, cols.local), cols.local)}  "
            f"{truncate(remote, cols.remote)}"
        )
        return t.render("selected" if selected else "normal", row)

    def _status_line(self, state: SessionState, now: float) -> str:
        t = self._theme
        if state.status_message and now < state.status_expiry:
            return "  " + t.render("warning", state.status_message)
        if state.error:
            return "  " + t.render("error", f"error: {state.error} (retrying)")

        line = "  " + t.render(
            "normal",
            "t/u proto  l/e/o state  w watch  K kill  s sort  / search  ? help  q quit",
        )
        if state.watched:
            line += t.render("watched", f"  watching: {len(state.watched)}")
        return line

    # --- modals ---

    def render_detail(self, state: SessionState) -> str:
        c = state.selected
        if c is None:
            return ""
        t = self._theme
        info = state.detail

        remote = f"{c.raddr}:{c.rport}" if c.has_remote else ""
        fields = [
            ("process", c.process),
            ("pid", str(c.pid) if c.pid else ""),
            ("user", c.user),
            ("protocol", c.proto),
            ("state", c.state),
            ("local", f"{c.laddr}:{c.lport}"),
            ("remote", remote),
            ("interface", c.interface),
            ("inode", str(c.inode) if c.inode else ""),
        ]
        if info is None:
            fields.append(("hostname", "resolving…"))
        else:
            fields.append(("hostname", info.hostname))
            if info.geo.country_code:
                flag = country_flag(info.geo.country_code)
                fields.append(("country", f"{flag} {info.geo.country_code}"))
            fields.append(("org", info.geo.org))

        lines = ["", "  " + t.render("header", "connection details"), ""]
        for label, value in fields:
            shown = truncate(value, 48) if value else SYMBOL_DASH
            lines.append(f"  {t.render('header', pad(label, 10))}  {shown}")
        lines.append("")
        lines.append("  " + t.render("normal", "press esc to close"))
        lines.append("")
        return "\n".join(lines)

    def render_kill(self, state: SessionState) -> str:
        c = state.kill_target
        if c is None:
            return ""
        t = self._theme
        name = c.process or "(unknown)"
        conn_count = sum(1 for other in state.connections if other.pid == c.pid)

        lines = [
            "",
            t.render("error", f"  {SYMBOL_WARNING}  KILL PROCESS?  "),
            "",
            f"  process:  {t.render('header', name)}",
            f"  pid:      {t.render('header', str(c.pid))}",
            f"  user:     {c.user}",
            f"  conns:    {conn_count}",
            "",
            t.render("warning", "  sends SIGTERM to process"),
        ]
        if conn_count > 1:
            lines.append(t.render("warning", f"  will close all {conn_count} connections"))
        lines.extend([
            "",
            f"  {t.render('success', '[y]')} confirm   {t.render('error', '[n]')} cancel",
            "",
        ])
        return "\n".join(lines)


