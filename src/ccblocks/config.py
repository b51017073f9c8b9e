"""Configuration for ccblocks."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

logger = logging.getLogger(__name__)

CLAUDE_CONFIG_DIR_ENV = "CLAUDE_CONFIG_DIR"
CLAUDE_PROJECTS_DIR_NAME = "projects"

DEFAULT_SESSION_DURATION_HOURS = 5.0
DEFAULT_RECENT_DAYS = 3
DEFAULT_REFRESH_INTERVAL_SECONDS = 1.0
MIN_REFRESH_INTERVAL_SECONDS = 1.0
MAX_REFRESH_INTERVAL_SECONDS = 60.0
BLOCKS_WARNING_THRESHOLD = 0.8
BLOCKS_COMPACT_WIDTH_THRESHOLD = 120

COST_MODES = ("auto", "calculate", "display")
SORT_ORDERS = ("asc", "desc")


class ClaudePathError(RuntimeError):
    """Raised when no usable Claude data directory can be found."""


def _default_claude_dirs() -> list[Path]:
    xdg_config = os.environ.get("XDG_CONFIG_HOME", "").strip()
    config_home = Path(xdg_config) if xdg_config else Path.home() / ".config"
    return [config_home / "claude", Path.home() / ".claude"]


def resolve_claude_dirs(explicit: list[Path] | None = None) -> tuple[Path, ...]:
    """Resolve the Claude data directories to read usage logs from.

    Explicit paths win, then ``CLAUDE_CONFIG_DIR`` (comma-separated), then the
    XDG and legacy home defaults. Only directories that contain a ``projects``
    subdirectory are kept.

    Raises:
        ClaudePathError: if none of the candidates is usable.
    """
    env_value = os.environ.get(CLAUDE_CONFIG_DIR_ENV, "").strip()
    if explicit:
        candidates = explicit
        source = "--claude-dir"
    elif env_value:
        candidates = [Path(p.strip()) for p in env_value.split(",") if p.strip()]
        source = CLAUDE_CONFIG_DIR_ENV
    else:
        candidates = _default_claude_dirs()
        source = "default locations"

    resolved: list[Path] = []
    for candidate in candidates:
        path = candidate.expanduser().resolve()
        if path in resolved:
            continue
        if (path / CLAUDE_PROJECTS_DIR_NAME).is_dir():
            resolved.append(path)
        else:
            logger.debug("Skipping %s: no %s directory", path, CLAUDE_PROJECTS_DIR_NAME)

    if not resolved:
        listed = ", ".join(str(c / CLAUDE_PROJECTS_DIR_NAME) for c in candidates)
        raise ClaudePathError(f"No valid Claude data directories found ({source}): {listed}")
    return tuple(resolved)


def clamp_refresh_interval(seconds: float) -> float:
    """Clamp a live-mode refresh interval into the supported range."""
    clamped = max(MIN_REFRESH_INTERVAL_SECONDS, min(MAX_REFRESH_INTERVAL_SECONDS, seconds))
    if clamped != seconds:
        logger.warning(
            "Refresh interval adjusted to %s seconds (valid range: %s-%s)",
            clamped,
            MIN_REFRESH_INTERVAL_SECONDS,
            MAX_REFRESH_INTERVAL_SECONDS,
        )
    return clamped


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    claude_dirs: tuple[Path, ...] = field(default_factory=lambda: (Path.home() / ".claude",))
    session_length_hours: float = DEFAULT_SESSION_DURATION_HOURS
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS
    cost_mode: str = "auto"
    order: str = "asc"
    project: str | None = None
    timezone: str | None = None

    def __post_init__(self) -> None:
        if self.session_length_hours <= 0:
            raise ValueError("Session length must be a positive number")
        if self.cost_mode not in COST_MODES:
            raise ValueError(f"Unknown cost mode: {self.cost_mode}")
        if self.order not in SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {self.order}")

    @classmethod
    def from_env(cls, claude_dir: Path | None = None, **overrides: object) -> Config:
        """Build a config with Claude directories resolved from the environment."""
        dirs = resolve_claude_dirs([claude_dir] if claude_dir is not None else None)
        return cls(claude_dirs=dirs, **overrides)  # type: ignore[arg-type]

    @property
    def window(self) -> timedelta:
        return timedelta(hours=self.session_length_hours)

    @property
    def projects_dirs(self) -> tuple[Path, ...]:
        return tuple(d / CLAUDE_PROJECTS_DIR_NAME for d in self.claude_dirs)
