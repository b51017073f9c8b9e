"""Live monitor loop that polls the active block and drives a renderer."""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from collections.abc import Callable
from enum import Enum, StrEnum
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from ccblocks.services.burn_rate import burn_rate, project_usage
from ccblocks.services.protocols import Clock, utc_now

if TYPE_CHECKING:
    from ccblocks.models.blocks import SessionBlock
    from ccblocks.models.monitor import LiveMonitorConfig
    from ccblocks.services.protocols import ActiveBlockSource, Renderer

logger = logging.getLogger(__name__)

# Minimum time between two block renders (about 60 fps)
MIN_RENDER_INTERVAL = 0.016

# Error text produced when a transcript vanishes, typically while a cloud
# sync client is replacing it.
SYNC_ERROR_MARKERS = ("ENOENT", "No such file or directory", "FileNotFoundError")

SYNC_WARNING_MESSAGE = "File temporarily unavailable (likely due to cloud sync)"


class MonitorState(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    RENDERING = "rendering"
    WAITING = "waiting"
    RECOVERABLE_ERROR = "recoverable_error"
    FATAL_ERROR = "fatal_error"
    TERMINATED = "terminated"


class FailureKind(Enum):
    RECOVERABLE = "recoverable"
    FATAL = "fatal"


class LiveMonitorError(RuntimeError):
    """A fetch failure that ended the live monitor."""


def classify_failure(message: str) -> FailureKind:
    """Missing-file failures are transient; anything else is fatal."""
    lowered = message.lower()
    if any(marker.lower() in lowered for marker in SYNC_ERROR_MARKERS):
        return FailureKind.RECOVERABLE
    return FailureKind.FATAL


class CancelToken:
    """Cooperative cancellation signal shared by a loop and its owner."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


async def sleep_with_cancel(seconds: float, token: CancelToken) -> bool:
    """Sleep up to ``seconds``; return True if cancelled before or during the sleep."""
    if token.cancelled:
        return True
    if seconds <= 0:
        return False
    try:
        await asyncio.wait_for(token.wait(), timeout=seconds)
    except TimeoutError:
        return False
    return True


class LiveMonitor:
    """Polls the active block on a fixed interval and renders each frame.

    Missing-file failures render a warning and are retried after one refresh
    interval; any other failure renders an error and raises
    ``LiveMonitorError``. The renderer is entered as an async context manager
    for the whole run so the terminal is restored on every exit path.
    """

    def __init__(
        self,
        source: ActiveBlockSource,
        renderer: Renderer,
        config: LiveMonitorConfig,
        *,
        clock: Clock = utc_now,
        cancel_token: CancelToken | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._renderer = renderer
        self._config = config
        self._clock = clock
        self._cancel = cancel_token or CancelToken()
        self._monotonic = monotonic
        self._state = MonitorState.IDLE
        self._last_render: float | None = None

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def cancel_token(self) -> CancelToken:
        return self._cancel

    async def run(self) -> None:
        """Run until cancelled or a fatal failure occurs."""
        try:
            async with self._renderer:
                await self._loop()
        finally:
            self._state = MonitorState.TERMINATED
            logger.info("Live monitoring stopped.")

    async def _loop(self) -> None:
        while not self._cancel.cancelled:
            if await self._limit_frame_rate():
                return

            self._state = MonitorState.POLLING
            result = await self._fetch()
            if self._cancel.cancelled:
                return

            match result:
                case Err(message):
                    if await self._handle_failure(message):
                        return
                case Ok(None):
                    self._state = MonitorState.WAITING
                    self._renderer.render_waiting()
                case Ok(block):
                    self._render(block)

            if await sleep_with_cancel(self._config.refresh_interval, self._cancel):
                return

    async def _limit_frame_rate(self) -> bool:
        if self._last_render is None:
            return False
        elapsed = self._monotonic() - self._last_render
        if elapsed >= MIN_RENDER_INTERVAL:
            return False
        return await sleep_with_cancel(MIN_RENDER_INTERVAL - elapsed, self._cancel)

    async def _fetch(self) -> Result[SessionBlock | None, str]:
        try:
            return await self._source.get_active_block()
        except Exception as exc:
            return Err(f"{type(exc).__name__}: {exc}")

    async def _handle_failure(self, message: str) -> bool:
        if classify_failure(message) is FailureKind.RECOVERABLE:
            self._state = MonitorState.RECOVERABLE_ERROR
            logger.warning("File sync issue detected: %s", message)
            self._renderer.render_warning(SYNC_WARNING_MESSAGE)
            return False

        self._state = MonitorState.FATAL_ERROR
        logger.error("Live monitoring error: %s", message)
        self._renderer.render_error(message)
        # Keep the error frame up for one refresh before the screen is restored
        if await sleep_with_cancel(self._config.refresh_interval, self._cancel):
            return True
        raise LiveMonitorError(message)

    def _render(self, block: SessionBlock) -> None:
        self._state = MonitorState.RENDERING
        rate = burn_rate(block)
        projection = project_usage(block, now=self._clock())
        self._renderer.render_block(block, rate, projection)
        self._last_render = self._monotonic()


def install_signal_handlers(token: CancelToken) -> Callable[[], None]:
    """Cancel ``token`` on SIGINT/SIGTERM; returns a function that uninstalls them."""
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, token.cancel)
        except NotImplementedError:
            # Windows event loops: Ctrl+C arrives as KeyboardInterrupt instead
            continue
        installed.append(sig)

    def uninstall() -> None:
        for sig in installed:
            loop.remove_signal_handler(sig)

    return uninstall


async def run_live_monitor(
    config: LiveMonitorConfig,
    source: ActiveBlockSource,
    renderer: Renderer,
    *,
    cancel_token: CancelToken | None = None,
    clock: Clock = utc_now,
) -> None:
    """Run a live monitor with signal-driven cancellation until stopped."""
    token = cancel_token or CancelToken()
    uninstall = install_signal_handlers(token)
    try:
        await LiveMonitor(source, renderer, config, clock=clock, cancel_token=token).run()
    finally:
        uninstall()
