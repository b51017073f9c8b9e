"""Discover Claude Code usage transcripts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ccblocks.config import CLAUDE_PROJECTS_DIR_NAME
from ccblocks.data.parser import first_timestamp

logger = logging.getLogger(__name__)

_UNKNOWN_PROJECT = "unknown"
_EPOCH = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True)
class UsageFile:
    """A transcript file with the project it belongs to."""

    path: Path
    project: str


def extract_project(path: Path) -> str:
    """Return the directory name right below ``projects`` in ``path``."""
    parts = path.parts
    try:
        index = parts.index(CLAUDE_PROJECTS_DIR_NAME)
    except ValueError:
        return _UNKNOWN_PROJECT
    # The segment after "projects" must be a directory, not the file itself.
    if index + 2 > len(parts) - 1:
        return _UNKNOWN_PROJECT
    name = parts[index + 1].strip()
    return name or _UNKNOWN_PROJECT


def discover_usage_files(
    claude_dirs: tuple[Path, ...] | list[Path],
    project: str | None = None,
) -> list[UsageFile]:
    """Find all transcripts under each ``<dir>/projects`` tree.

    Files are returned in the order of their first timestamp so entries are
    processed chronologically; files without one sort first.
    """
    found: list[UsageFile] = []
    for claude_dir in claude_dirs:
        projects_dir = claude_dir / CLAUDE_PROJECTS_DIR_NAME
        if not projects_dir.is_dir():
            logger.info("Claude projects directory not found: %s", projects_dir)
            continue
        for jsonl_path in sorted(projects_dir.rglob("*.jsonl")):
            name = extract_project(jsonl_path)
            if project and name != project:
                continue
            found.append(UsageFile(path=jsonl_path, project=name))

    timestamps = {f.path: first_timestamp(f.path) or _EPOCH for f in found}
    found.sort(key=lambda f: timestamps[f.path])
    return found
