"""Protocol definitions for services and their collaborators."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from types import TracebackType
from typing import Protocol

from result import Result

from ccblocks.models.blocks import Block, BurnRate, ProjectedUsage, SessionBlock
from ccblocks.models.usage import UsageEntry

type Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


class EntrySource(Protocol):
    """Loads the usage entries the block builder runs over."""

    def load_entries(self) -> list[UsageEntry]: ...


class ActiveBlockSource(Protocol):
    """Fetches the currently active block, or None when idle."""

    async def get_active_block(self) -> Result[SessionBlock | None, str]: ...


class Renderer(Protocol):
    """Owns the output device for the lifetime of a live monitoring run."""

    async def __aenter__(self) -> Renderer: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...

    def render_block(
        self,
        block: SessionBlock,
        burn_rate: BurnRate | None,
        projection: ProjectedUsage | None,
    ) -> None: ...

    def render_waiting(self) -> None: ...

    def render_warning(self, message: str) -> None: ...

    def render_error(self, message: str) -> None: ...


class WatchRenderer(Protocol):
    """Output side of the adaptive watch loop."""

    async def __aenter__(self) -> WatchRenderer: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...

    def render_active(self, block: SessionBlock, blocks: Sequence[Block]) -> None: ...

    def render_idle(self) -> None: ...

    def render_error(self, message: str) -> None: ...
