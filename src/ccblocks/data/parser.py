"""Stream-parse usage records from Claude Code JSONL transcripts."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class RecordUsage(BaseModel):
    """The ``message.usage`` object of an assistant line."""

    model_config = ConfigDict(extra="ignore")

    input_tokens: int = Field(ge=0)
    output_tokens: int = Field(ge=0)
    cache_creation_input_tokens: int = Field(default=0, ge=0)
    cache_read_input_tokens: int = Field(default=0, ge=0)


class RecordMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    usage: RecordUsage
    model: str | None = None
    id: str | None = None


class UsageRecord(BaseModel):
    """A transcript line that carries token usage."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    timestamp: datetime
    message: RecordMessage
    cost_usd: float | None = Field(default=None, alias="costUSD")
    request_id: str | None = Field(default=None, alias="requestId")
    session_id: str | None = Field(default=None, alias="sessionId")
    version: str | None = None
    cwd: str | None = None


def unique_hash(record: UsageRecord) -> str | None:
    """Deduplication key ``message_id:request_id``; None when either is missing."""
    if record.message.id is None or record.request_id is None:
        return None
    return f"{record.message.id}:{record.request_id}"


def parse_usage_line(line: str) -> UsageRecord | None:
    """Parse one JSONL line; None for blank, invalid or usage-less lines."""
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(raw, dict):
        return None
    try:
        return UsageRecord.model_validate(raw)
    except ValidationError:
        return None


def parse_usage_file(path: Path) -> Generator[UsageRecord]:
    """Yield every usage record in ``path``.

    Lines that are not JSON or carry no usage are skipped, as are bytes a
    sync client has not finished writing. OS errors propagate so callers can tell a vanished file from bad content.
    """
    skipped = 0
    with open(path, encoding="utf-8", errors="replace") as file:
        for line in file:
            record = parse_usage_line(line)
            if record is None:
                if line.strip():
                    skipped += 1
                continue
            yield record
    if skipped:
        logger.debug("Skipped %d non-usage lines in %s", skipped, path)


def first_timestamp(path: Path) -> datetime | None:
    """Timestamp of the first timestamped line in ``path``, if any."""
    try:
        with open(path, encoding="utf-8", errors="replace") as file:
            for line in file:
                line = line.strip()
                if not line:
                    continue
                try:
                    raw = json.loads(line)
                except json.JSONDecodeError:
                    continue
                value = raw.get("timestamp") if isinstance(raw, dict) else None
                if isinstance(value, str) and value:
                    try:
                        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
                    except ValueError:
                        continue
                    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    except OSError:
        logger.warning("Failed to read %s", path)
    return None
