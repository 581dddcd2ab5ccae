"""Colour themes for the live view, rendered to raw ANSI with rich styles."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from rich.color import ColorSystem
from rich.style import Style

_THEMES: dict[str, dict[str, str]] = {
    "dark": {
        "header": "bold bright_white",
        "normal": "grey70",
        "border": "grey42",
        "selected": "bold reverse",
        "success": "green",
        "success.key": "underline green",
        "normal.key": "underline grey70",
        "warning": "yellow",
        "error": "bold red",
        "watched": "magenta",
        "proto.tcp": "cyan",
        "proto.udp": "medium_purple",
        "state.LISTEN": "green",
        "state.ESTABLISHED": "dodger_blue1",
        "state.TIME_WAIT": "gold3",
        "state.CLOSE_WAIT": "gold3",
    },
    "light": {
        "header": "bold black",
        "normal": "grey30",
        "border": "grey58",
        "selected": "bold reverse",
        "success": "dark_green",
        "success.key": "underline dark_green",
        "normal.key": "underline grey30",
        "warning": "dark_orange3",
        "error": "bold red3",
        "watched": "dark_magenta",
        "proto.tcp": "dark_cyan",
        "proto.udp": "purple4",
        "state.LISTEN": "dark_green",
        "state.ESTABLISHED": "blue3",
        "state.TIME_WAIT": "orange4",
        "state.CLOSE_WAIT": "orange4",
    },
}


def no_color_requested() -> bool:
    return bool(os.environ.get("NO_COLOR") or os.environ.get("SOCKSCOPE_NO_COLOR"))


@dataclass
class Theme:
    """Named styles; ``mono`` renders every style as plain text."""

    name: str
    color_system: ColorSystem | None = ColorSystem.EIGHT_BIT
    _styles: dict[str, Style] = field(default_factory=dict)

    def render(self, style: str, text: str) -> str:
        if self.color_system is None or not text:
            return text
        parsed = self._styles.get(style)
        if parsed is None:
            return text
        return parsed.render(text, color_system=self.color_system)

    def proto(self, proto: str, text: str) -> str:
        return self.render("proto.udp" if "udp" in proto else "proto.tcp", text)

    def state(self, state: str, text: str) -> str:
        key = f"state.{state.upper()}"
        return self.render(key if key in self._styles else "normal", text)


def get_theme(name: str = "auto") -> Theme:
    """Look up a theme by name; unknown names fall back to ``dark``."""
    name = (name or "auto").lower()
    if name == "auto":
        name = "mono" if no_color_requested() else "dark"
    if name == "mono":
        return Theme(name="mono", color_system=None)
    spec = _THEMES.get(name, _THEMES["dark"])
    return Theme(
        name=name if name in _THEMES else "dark",
        _styles={key: Style.parse(value) for key, value in spec.items()},
    )
