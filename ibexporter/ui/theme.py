"""Theme configuration — Fluent Design tokens."""

from __future__ import annotations

from qfluentwidgets import Theme, setTheme, setThemeColor

_THEMES = {"light": Theme.LIGHT, "dark": Theme.DARK, "auto": Theme.AUTO}


def apply_theme(theme: str = "auto", accent_color: str = "#7F0000") -> None:
    """Apply the application theme."""
    setTheme(_THEMES.get(theme, Theme.AUTO))
    setThemeColor(accent_color)
