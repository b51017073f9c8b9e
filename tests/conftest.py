"""Shared fixtures for ccblocks tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from ccblocks.config import Config
from ccblocks.models.usage import UsageEntry

NOW = datetime(2025, 6, 1, 12, 30, tzinfo=UTC)

type EntryFactory = Callable[..., UsageEntry]
type LineFactory = Callable[..., str]


def _entry(
    timestamp: datetime,
    input_tokens: int = 100,
    output_tokens: int = 50,
    cost: float | None = 0.01,
    model: str = "claude-sonnet-4-20250514",
    **extra: Any,
) -> UsageEntry:
    return UsageEntry(
        timestamp=timestamp,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost_usd=cost,
        model=model,
        **extra,
    )


def _usage_line(
    timestamp: datetime | str,
    input_tokens: int = 100,
    output_tokens: int = 50,
    *,
    model: str | None = "claude-sonnet-4-20250514",
    message_id: str | None = "msg_1",
    request_id: str | None = "req_1",
    cost: float | None = None,
    cache_creation: int = 0,
    cache_read: int = 0,
) -> str:
    ts = timestamp if isinstance(timestamp, str) else timestamp.isoformat().replace("+00:00", "Z")
    message: dict[str, Any] = {
        "usage": {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "cache_creation_input_tokens": cache_creation,
            "cache_read_input_tokens": cache_read,
        },
    }
    if model is not None:
        message["model"] = model
    if message_id is not None:
        message["id"] = message_id
    record: dict[str, Any] = {"timestamp": ts, "message": message, "version": "1.0.0"}
    if request_id is not None:
        record["requestId"] = request_id
    if cost is not None:
        record["costUSD"] = cost
    return json.dumps(record)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time used as the clock in tests."""
    return NOW


@pytest.fixture
def make_entry() -> EntryFactory:
    """Factory for usage entries with sensible defaults."""
    return _entry


@pytest.fixture
def usage_line() -> LineFactory:
    """Factory for JSONL transcript lines carrying usage."""
    return _usage_line


@pytest.fixture
def tmp_claude_dir(tmp_path: Path) -> Path:
    """Claude data directory with two projects written at test time."""
    claude_dir = tmp_path / ".claude"
    alpha = claude_dir / "projects" / "alpha"
    beta = claude_dir / "projects" / "beta"
    alpha.mkdir(parents=True)
    beta.mkdir(parents=True)

    start = NOW - timedelta(days=1)
    (alpha / "session-a.jsonl").write_text(
        "\n".join(
            [
                _usage_line(start, 1000, 500, message_id="m1", request_id="r1", cost=0.5),
                _usage_line(
                    start + timedelta(minutes=30),
                    2000,
                    1000,
                    message_id="m2",
                    request_id="r2",
                    cost=1.0,
                ),
                "not json",
                json.dumps({"type": "user", "timestamp": "2025-05-31T12:31:00Z"}),
            ]
        )
        + "\n"
    )
    (beta / "session-b.jsonl").write_text(
        "\n".join(
            [
                # Duplicate of m2/r2 from project alpha
                _usage_line(
                    start + timedelta(minutes=30),
                    2000,
                    1000,
                    message_id="m2",
                    request_id="r2",
                    cost=1.0,
                ),
                _usage_line(
                    NOW - timedelta(minutes=20),
                    300,
                    200,
                    model="claude-opus-4-20250514",
                    message_id="m3",
                    request_id="r3",
                    cost=2.0,
                ),
                _usage_line(
                    NOW - timedelta(minutes=5),
                    700,
                    300,
                    model="claude-opus-4-20250514",
                    message_id="m4",
                    request_id="r4",
                    cost=3.0,
                ),
            ]
        )
        + "\n"
    )
    return claude_dir


@pytest.fixture
def test_config(tmp_claude_dir: Path) -> Config:
    """Config pointing at the temporary Claude directory."""
    return Config(claude_dirs=(tmp_claude_dir,))
