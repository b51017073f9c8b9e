"""Load usage entries from disk and build session blocks from them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from ccblocks.data.discovery import discover_usage_files
from ccblocks.data.parser import parse_usage_file, unique_hash
from ccblocks.models.blocks import Block, SessionBlock
from ccblocks.models.usage import UsageEntry
from ccblocks.services.blocks import (
    build_blocks,
    filter_blocks_by_date,
    find_active_block,
    sort_blocks,
)
from ccblocks.services.cost import cost_for_record
from ccblocks.services.history import model_matches
from ccblocks.services.protocols import Clock, EntrySource, utc_now

if TYPE_CHECKING:
    from ccblocks.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadOptions:
    """Entry filters applied while loading."""

    project: str | None = None
    models: tuple[str, ...] | None = None


class UsageLoader:
    """Reads every transcript on each call; nothing is cached between polls."""

    def __init__(self, config: Config, options: LoadOptions | None = None) -> None:
        self._config = config
        self._options = options or LoadOptions(project=config.project)

    @property
    def options(self) -> LoadOptions:
        return self._options

    def with_options(self, options: LoadOptions) -> UsageLoader:
        return UsageLoader(self._config, options)

    def load_entries(self) -> list[UsageEntry]:
        """Load, deduplicate and price all usage entries.

        Raises:
            OSError: when a transcript disappears or cannot be read mid-load.
        """
        files = discover_usage_files(self._config.claude_dirs, self._options.project)
        seen: set[str] = set()
        entries: list[UsageEntry] = []

        for usage_file in files:
            for record in parse_usage_file(usage_file.path):
                key = unique_hash(record)
                if key is not None:
                    if key in seen:
                        continue
                    seen.add(key)

                model = record.message.model or "unknown"
                if not model_matches(model, self._options.models):
                    continue
                usage = record.message.usage
                entries.append(
                    UsageEntry(
                        timestamp=record.timestamp,
                        input_tokens=usage.input_tokens,
                        output_tokens=usage.output_tokens,
                        cache_creation_tokens=usage.cache_creation_input_tokens,
                        cache_read_tokens=usage.cache_read_input_tokens,
                        cost_usd=cost_for_record(record, self._config.cost_mode),
                        model=model,
                        version=record.version,
                        project=usage_file.project,
                    )
                )

        logger.debug("Loaded %d usage entries from %d files", len(entries), len(files))
        return entries


class UsageService:
    """Service for session block queries."""

    def __init__(self, loader: EntrySource, config: Config, clock: Clock = utc_now) -> None:
        self._loader = loader
        self._config = config
        self._clock = clock

    def _build(self) -> list[Block]:
        return build_blocks(self._loader.load_entries(), self._config.window, now=self._clock())

    async def load_blocks(
        self,
        since: str | None = None,
        until: str | None = None,
    ) -> Result[list[Block], str]:
        """Load all blocks, filtered by start date and sorted by the configured order."""
        try:
            blocks = await asyncio.to_thread(self._build)
        except Exception as exc:
            return Err(f"Failed to load usage data: {exc}")
        dated = filter_blocks_by_date(blocks, since, until, timezone=self._config.timezone)
        return Ok(sort_blocks(dated, self._config.order))

    async def get_active_block(self) -> Result[SessionBlock | None, str]:
        """Rebuild blocks from disk and return the active one, if any."""
        try:
            blocks = await asyncio.to_thread(self._build)
        except Exception as exc:
            return Err(f"Failed to load usage data: {exc}")
        return Ok(find_active_block(blocks))
