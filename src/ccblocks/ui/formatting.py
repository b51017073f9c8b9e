"""Display formatting helpers shared by the terminal views."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timedelta

# Rich style names used across views
STYLES = {
    "ok": "green",
    "warning": "yellow",
    "danger": "red",
    "muted": "grey50",
    "accent": "cyan",
    "gap": "grey42",
}

_DATED_MODEL = re.compile(r"^claude-(\w+)-([\d-]+)-(\d{8})$")
_UNDATED_MODEL = re.compile(r"^claude-(\w+)-([\d-]+)$")
_PROVIDER_MODEL = re.compile(r"^anthropic/claude-(\w+)-([\d.]+)$")


def format_number(value: float) -> str:
    """Thousands-separated integer, e.g. ``12,345``."""
    return f"{round(value):,}"


def format_currency(amount: float) -> str:
    return f"${amount:.2f}"


def format_tokens_short(count: float) -> str:
    """Compact token count with a ``k`` suffix from one thousand up."""
    if count >= 1000:
        return f"{count / 1000:.1f}k"
    return str(round(count))


def format_duration(delta: timedelta) -> str:
    """Format a duration as hours and minutes.

    Examples: "45s", "12m", "2h", "3h 5m"
    """
    total_seconds = max(0, int(delta.total_seconds()))
    if total_seconds < 60:
        return f"{total_seconds}s"
    hours, remainder = divmod(total_seconds, 3600)
    minutes = remainder // 60
    if hours == 0:
        return f"{minutes}m"
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def format_clock(moment: datetime) -> str:
    """Local wall-clock time, e.g. ``02:05:09 PM``."""
    return moment.astimezone().strftime("%I:%M:%S %p")


def format_model_name(model: str) -> str:
    """Shorten a Claude model id, e.g. ``claude-sonnet-4-20250514`` to ``sonnet-4``."""
    for pattern in (_PROVIDER_MODEL, _DATED_MODEL, _UNDATED_MODEL):
        match = pattern.match(model)
        if match:
            return f"{match.group(1)}-{match.group(2)}"
    return model


def format_models(models: Iterable[str]) -> str:
    """Unique, sorted short model names joined by commas."""
    return ", ".join(sorted({format_model_name(m) for m in models}))


def usage_style(percent: float) -> str:
    """Colour for a usage percentage: green, yellow above 80, red above 100."""
    if percent > 100:
        return STYLES["danger"]
    if percent > 80:
        return STYLES["warning"]
    return STYLES["ok"]
