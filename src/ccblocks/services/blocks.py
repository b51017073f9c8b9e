"""Session block builder that segments usage entries into billing windows."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from ccblocks.config import DEFAULT_RECENT_DAYS, DEFAULT_SESSION_DURATION_HOURS
from ccblocks.models.blocks import GAP_ID_PREFIX, Block, GapBlock, SessionBlock
from ccblocks.models.usage import TokenCounts, UsageEntry
from ccblocks.services.protocols import utc_now

DEFAULT_WINDOW = timedelta(hours=DEFAULT_SESSION_DURATION_HOURS)


def floor_to_hour(timestamp: datetime) -> datetime:
    """Floor a timestamp to the start of its UTC hour."""
    return timestamp.astimezone(UTC).replace(minute=0, second=0, microsecond=0)


def block_id(start_time: datetime) -> str:
    """Canonical ISO-8601 id for a block starting at ``start_time``."""
    iso = start_time.astimezone(UTC).isoformat(timespec="milliseconds")
    return iso.replace("+00:00", "Z")


def build_blocks(
    entries: Iterable[UsageEntry],
    window: timedelta = DEFAULT_WINDOW,
    *,
    now: datetime | None = None,
) -> list[Block]:
    """Group usage entries into session blocks with gap detection.

    A block starts at the first entry's timestamp floored to the hour and is
    closed as soon as the next entry lies more than ``window`` after the block
    start or after the previous entry. An inactivity span strictly longer than
    ``window`` also yields a gap block.

    Args:
        entries: Usage entries in any order.
        window: Block duration.
        now: Reference time for active block detection.

    Returns:
        Blocks ordered by start time.
    """
    sorted_entries = sorted(entries, key=lambda e: e.timestamp)
    if not sorted_entries:
        return []

    current_time = now or utc_now()
    blocks: list[Block] = []
    block_start = floor_to_hour(sorted_entries[0].timestamp)
    block_entries: list[UsageEntry] = [sorted_entries[0]]

    for entry in sorted_entries[1:]:
        last_time = block_entries[-1].timestamp
        since_block_start = entry.timestamp - block_start
        since_last_entry = entry.timestamp - last_time

        if since_block_start > window or since_last_entry > window:
            blocks.append(_create_block(block_start, block_entries, current_time, window))
            if since_last_entry > window:
                gap = _create_gap_block(last_time, entry.timestamp, window)
                if gap is not None:
                    blocks.append(gap)
            block_start = floor_to_hour(entry.timestamp)
            block_entries = [entry]
        else:
            block_entries.append(entry)

    blocks.append(_create_block(block_start, block_entries, current_time, window))
    return blocks


def _create_block(
    start_time: datetime,
    entries: list[UsageEntry],
    now: datetime,
    window: timedelta,
) -> SessionBlock:
    end_time = start_time + window
    actual_end_time = entries[-1].timestamp
    is_active = now - actual_end_time < window and now < end_time

    token_counts = TokenCounts()
    cost = 0.0
    # dict keys keep first-seen order
    models: dict[str, None] = {}
    for entry in entries:
        token_counts += entry.token_counts
        cost += entry.cost
        models[entry.model] = None

    return SessionBlock(
        id=block_id(start_time),
        start_time=start_time,
        end_time=end_time,
        actual_end_time=actual_end_time,
        is_active=is_active,
        entries=tuple(entries),
        token_counts=token_counts,
        cost_usd=cost,
        models=tuple(models),
    )


def _create_gap_block(
    last_activity: datetime,
    next_activity: datetime,
    window: timedelta,
) -> GapBlock | None:
    if next_activity - last_activity <= window:
        return None
    gap_start = last_activity + window
    return GapBlock(
        id=f"{GAP_ID_PREFIX}{block_id(gap_start)}",
        start_time=gap_start,
        end_time=next_activity,
    )


def find_active_block(blocks: Sequence[Block]) -> SessionBlock | None:
    """Return the active block, if any."""
    for block in reversed(blocks):
        if isinstance(block, SessionBlock) and block.is_active:
            return block
    return None


def filter_recent_blocks(
    blocks: Sequence[Block],
    days: int = DEFAULT_RECENT_DAYS,
    *,
    now: datetime | None = None,
) -> list[Block]:
    """Keep blocks that started within the last ``days`` days or are still active."""
    cutoff = (now or utc_now()) - timedelta(days=days)
    return [b for b in blocks if b.start_time >= cutoff or b.is_active]


def _parse_day(value: str) -> date:
    return datetime.strptime(value.replace("-", ""), "%Y%m%d").date()


def filter_blocks_by_date(
    blocks: Sequence[Block],
    since: str | None = None,
    until: str | None = None,
    *,
    timezone: str | None = None,
) -> list[Block]:
    """Keep blocks whose start date lies within ``[since, until]`` (``YYYYMMDD``)."""
    if not since and not until:
        return list(blocks)
    tz = ZoneInfo(timezone) if timezone else UTC
    since_day = _parse_day(since) if since else None
    until_day = _parse_day(until) if until else None

    result: list[Block] = []
    for block in blocks:
        day = block.start_time.astimezone(tz).date()
        if since_day is not None and day < since_day:
            continue
        if until_day is not None and day > until_day:
            continue
        result.append(block)
    return result


def sort_blocks(blocks: Sequence[Block], order: str = "asc") -> list[Block]:
    """Sort blocks by start time; ``order`` is ``asc`` or ``desc``."""
    return sorted(blocks, key=lambda b: b.start_time, reverse=order == "desc")
