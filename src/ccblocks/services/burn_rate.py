"""Burn rate estimation and end-of-window projection for session blocks."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from ccblocks.models.blocks import (
    Block,
    BurnRate,
    PeriodBurnRates,
    ProjectedUsage,
    SessionBlock,
    TokenRates,
)
from ccblocks.models.usage import UsageEntry
from ccblocks.services.protocols import utc_now

# Sparse-usage heuristic (minutes, entries)
SPARSE_THRESHOLD_MINUTES = 5.0
SPARSE_MAX_ENTRIES = 100
BURST_GAP_MINUTES = 10.0
MIN_BURST_MINUTES = 1.0

_ONE_HOUR = timedelta(hours=1)
_TEN_MINUTES = timedelta(minutes=10)


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60


def burn_rate(block: Block) -> BurnRate | None:
    """Compute tokens/minute and cost/hour from the block's own entries.

    Returns None for gap blocks, blocks with fewer than two entries and blocks
    whose first and last entries share a timestamp.
    """
    if not isinstance(block, SessionBlock) or len(block.entries) < 2:
        return None

    first = block.entries[0].timestamp
    last = block.entries[-1].timestamp
    duration_minutes = _minutes(last - first)
    if duration_minutes <= 0:
        return None

    tokens_per_minute = block.token_counts.total_tokens / duration_minutes
    cost_per_hour = (block.cost_usd / duration_minutes) * 60

    density: float | None = None
    mean_spacing = duration_minutes / max(1, len(block.entries) - 1)
    if mean_spacing > SPARSE_THRESHOLD_MINUTES and len(block.entries) < SPARSE_MAX_ENTRIES:
        active_minutes = _active_minutes([e.timestamp for e in block.entries])
        density = min(1.0, active_minutes / duration_minutes)

    return BurnRate(
        tokens_per_minute=tokens_per_minute,
        cost_per_hour=cost_per_hour,
        activity_density=density,
    )


def _active_minutes(timestamps: Sequence[datetime]) -> float:
    """Sum the spans of activity bursts, each counted as at least one minute."""
    ordered = sorted(timestamps)
    total = 0.0
    burst_start = previous = ordered[0]
    for current in ordered[1:]:
        if _minutes(current - previous) > BURST_GAP_MINUTES:
            total += max(MIN_BURST_MINUTES, _minutes(previous - burst_start))
            burst_start = current
        previous = current
    total += max(MIN_BURST_MINUTES, _minutes(previous - burst_start))
    return total


def project_usage(block: Block, *, now: datetime | None = None) -> ProjectedUsage | None:
    """Project an active block's totals at the end of its window.

    Sparse blocks are projected at their observed activity density rather
    than at the instantaneous burst rate.
    """
    if not isinstance(block, SessionBlock) or not block.is_active:
        return None
    rate = burn_rate(block)
    if rate is None:
        return None

    current_time = now or utc_now()
    remaining_minutes = max(0.0, _minutes(block.end_time - current_time))
    effective_minutes = remaining_minutes
    if rate.activity_density is not None and rate.activity_density < 1:
        effective_minutes = remaining_minutes * rate.activity_density

    total_tokens = block.token_counts.total_tokens + rate.tokens_per_minute * effective_minutes
    total_cost = block.cost_usd + (rate.cost_per_hour / 60) * effective_minutes
    return ProjectedUsage(
        total_tokens=round(total_tokens),
        total_cost=round(total_cost, 2),
        remaining_minutes=round(remaining_minutes),
    )


def token_rates(entries: Sequence[UsageEntry]) -> TokenRates:
    """Per-token-type rates across ``entries``; empty rates when under two entries."""
    if len(entries) < 2:
        return TokenRates()
    ordered = sorted(entries, key=lambda e: e.timestamp)
    duration_minutes = _minutes(ordered[-1].timestamp - ordered[0].timestamp)
    if duration_minutes <= 0:
        return TokenRates()
    return TokenRates(
        input=sum(e.input_tokens for e in ordered) / duration_minutes,
        output=sum(e.output_tokens for e in ordered) / duration_minutes,
        cache_create=sum(e.cache_creation_tokens for e in ordered) / duration_minutes,
        cache_read=sum(e.cache_read_tokens for e in ordered) / duration_minutes,
    )


def period_burn_rates(block: Block, *, now: datetime | None = None) -> PeriodBurnRates:
    """Token rates for the whole block, the last hour and the last ten minutes."""
    current_time = now or utc_now()
    entries = block.entries
    return PeriodBurnRates(
        block=token_rates(entries),
        one_hour=token_rates([e for e in entries if e.timestamp >= current_time - _ONE_HOUR]),
        ten_minutes=token_rates(
            [e for e in entries if e.timestamp >= current_time - _TEN_MINUTES]
        ),
    )
