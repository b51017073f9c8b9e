"""Adaptive watch loop: polls faster while usage changes, slower when idle."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from ccblocks.models.blocks import Block, SessionBlock
from ccblocks.models.monitor import BlockSnapshot, WatchSummary
from ccblocks.services.blocks import find_active_block
from ccblocks.services.burn_rate import burn_rate
from ccblocks.services.live import CancelToken, sleep_with_cancel
from ccblocks.services.protocols import Clock, utc_now

if TYPE_CHECKING:
    from ccblocks.services.protocols import WatchRenderer

logger = logging.getLogger(__name__)

# Poll intervals in seconds
FAST_INTERVAL = 5.0
MEDIUM_INTERVAL = 15.0
SLOW_INTERVAL = 60.0

MEDIUM_AFTER = timedelta(minutes=5)
SLOW_AFTER = timedelta(minutes=10)

COST_CHANGE_EPSILON = 0.0001

type BlocksFetch = Callable[[], Awaitable[Result[list[Block], str]]]


def snapshot(block: SessionBlock) -> BlockSnapshot:
    rate = burn_rate(block)
    return BlockSnapshot(
        token_count=block.total_tokens,
        cost_usd=block.cost_usd,
        burn_rate=rate.tokens_per_minute if rate else None,
    )


def has_significant_changes(current: BlockSnapshot, previous: BlockSnapshot | None) -> bool:
    """True when tokens, cost or burn rate moved since the previous poll."""
    if previous is None:
        return True
    if current.token_count != previous.token_count:
        return True
    if abs(current.cost_usd - previous.cost_usd) > COST_CHANGE_EPSILON:
        return True
    return current.burn_rate != previous.burn_rate


def next_update_interval(changed: bool, inactivity: timedelta) -> float:
    if changed or inactivity < MEDIUM_AFTER:
        return FAST_INTERVAL
    if inactivity < SLOW_AFTER:
        return MEDIUM_INTERVAL
    return SLOW_INTERVAL


class WatchScheduler:
    """Re-renders the active block on an interval that adapts to activity.

    Fetch failures are rendered and retried; the loop only ends when its
    cancel token is set, and then returns what was consumed meanwhile.
    """

    def __init__(
        self,
        fetch: BlocksFetch,
        renderer: WatchRenderer,
        *,
        clock: Clock = utc_now,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self._fetch = fetch
        self._renderer = renderer
        self._clock = clock
        self._cancel = cancel_token or CancelToken()
        self._interval = FAST_INTERVAL
        self._previous: BlockSnapshot | None = None
        self._started_at = clock()
        self._last_change = self._started_at
        self._start: BlockSnapshot | None = None
        self._latest: BlockSnapshot | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def cancel_token(self) -> CancelToken:
        return self._cancel

    def summary(self) -> WatchSummary:
        duration = self._clock() - self._started_at
        if self._start is None or self._latest is None:
            return WatchSummary(duration=duration)
        return WatchSummary(
            duration=duration,
            tokens_used=max(0, self._latest.token_count - self._start.token_count),
            cost_used=max(0.0, self._latest.cost_usd - self._start.cost_usd),
        )

    async def poll_once(self) -> float:
        """Fetch and render one frame; returns the interval until the next poll."""
        try:
            result = await self._fetch()
        except Exception as exc:
            result = Err(f"{type(exc).__name__}: {exc}")

        match result:
            case Err(message):
                logger.warning("Error loading usage data: %s", message)
                self._renderer.render_error(message)
            case Ok(blocks):
                self._update(blocks, self._clock())
        return self._interval

    def _update(self, blocks: Sequence[Block], now: datetime) -> None:
        active = find_active_block(blocks)
        if active is None:
            self._renderer.render_idle()
            return

        current = snapshot(active)
        if self._start is None:
            self._start = current
        self._latest = current

        changed = has_significant_changes(current, self._previous)
        if changed:
            self._last_change = now
        self._interval = next_update_interval(changed, now - self._last_change)
        self._previous = current
        self._renderer.render_active(active, blocks)

    async def run(self) -> WatchSummary:
        async with self._renderer:
            while not self._cancel.cancelled:
                interval = await self.poll_once()
                logger.debug("Next watch update in %ss", interval)
                if await sleep_with_cancel(interval, self._cancel):
                    break
        return self.summary()
