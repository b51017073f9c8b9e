"""Alternate-screen terminal owned for the duration of a live run."""

from __future__ import annotations

import logging
from types import TracebackType

from rich.console import Console, RenderableType
from rich.live import Live
from rich.text import Text

logger = logging.getLogger(__name__)


class LiveTerminal:
    """Wraps ``rich.live.Live`` so the screen is restored on every exit path.

    Entering switches to the alternate screen and hides the cursor; leaving
    restores both, whether the run ended normally, was cancelled or failed.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        screen: bool = True,
        refresh_per_second: float = 4,
    ) -> None:
        self.console = console or Console()
        self._live = Live(
            Text(""),
            console=self.console,
            screen=screen,
            auto_refresh=False,
            refresh_per_second=refresh_per_second,
            transient=not screen,
        )
        self._active = False

    @property
    def width(self) -> int:
        return self.console.width

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        if self._active:
            return
        self._live.start()
        self._active = True

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        self._live.stop()
        logger.debug("Terminal restored")

    def show(self, renderable: RenderableType) -> None:
        """Replace the whole frame with ``renderable``."""
        if not self._active:
            self.console.print(renderable)
            return
        self._live.update(renderable, refresh=True)

    async def __aenter__(self) -> LiveTerminal:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()
