"""Tests for the usage loader and block service."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from result import Err, Ok

from ccblocks.config import Config
from ccblocks.data.loader import LoadOptions, UsageLoader, UsageService
from ccblocks.models.blocks import GapBlock, SessionBlock


class VanishingLoader:
    def load_entries(self):
        raise FileNotFoundError(2, "No such file or directory", "/tmp/x.jsonl")


class TestUsageLoader:
    def test_deduplicates_across_projects(self, test_config: Config) -> None:
        entries = UsageLoader(test_config).load_entries()

        assert len(entries) == 4
        assert [e.project for e in entries] == ["alpha", "alpha", "beta", "beta"]
        assert [e.cost_usd for e in entries] == [0.5, 1.0, 2.0, 3.0]

    def test_project_filter(self, tmp_claude_dir) -> None:
        config = Config(claude_dirs=(tmp_claude_dir,), project="beta")
        entries = UsageLoader(config).load_entries()
        # m2 is read from beta now that alpha is skipped
        assert len(entries) == 3
        assert {e.project for e in entries} == {"beta"}

    def test_model_filter(self, test_config: Config) -> None:
        loader = UsageLoader(test_config).with_options(LoadOptions(models=("opus",)))
        entries = loader.load_entries()

        assert loader.options.models == ("opus",)
        assert [e.model for e in entries] == ["claude-opus-4-20250514"] * 2

    def test_calculate_mode_prices_tokens(self, tmp_claude_dir) -> None:
        config = Config(claude_dirs=(tmp_claude_dir,), cost_mode="calculate")
        first = UsageLoader(config).load_entries()[0]
        # 1000 input + 500 output at sonnet pricing
        assert first.cost_usd == pytest.approx(1000 * 3.0 / 1e6 + 500 * 15.0 / 1e6)


class TestUsageService:
    @pytest.mark.asyncio
    async def test_load_blocks(self, test_config: Config, now: datetime) -> None:
        service = UsageService(UsageLoader(test_config), test_config, clock=lambda: now)
        result = await service.load_blocks()

        assert isinstance(result, Ok)
        blocks = result.ok_value
        assert [type(b) for b in blocks] == [SessionBlock, GapBlock, SessionBlock]
        first, gap, active = blocks
        assert first.total_tokens == 4500
        assert first.cost_usd == pytest.approx(1.5)
        assert gap.start_time == now - timedelta(days=1) + timedelta(minutes=30, hours=5)
        assert active.is_active
        assert active.cost_usd == pytest.approx(5.0)
        assert active.models == ("claude-opus-4-20250514",)

    @pytest.mark.asyncio
    async def test_load_blocks_date_filter_and_order(self, tmp_claude_dir, now) -> None:
        config = Config(claude_dirs=(tmp_claude_dir,), order="desc")
        service = UsageService(UsageLoader(config), config, clock=lambda: now)

        result = await service.load_blocks(since="20250601")
        assert isinstance(result, Ok)
        assert [b.is_active for b in result.ok_value] == [True]

        result = await service.load_blocks(until="2025-05-31")
        assert isinstance(result, Ok)
        starts = [b.start_time for b in result.ok_value]
        assert starts == sorted(starts, reverse=True)
        assert len(starts) == 2

    @pytest.mark.asyncio
    async def test_get_active_block(self, test_config: Config, now: datetime) -> None:
        service = UsageService(UsageLoader(test_config), test_config, clock=lambda: now)
        result = await service.get_active_block()

        assert isinstance(result, Ok)
        assert result.ok_value is not None
        assert result.ok_value.total_tokens == 1500

    @pytest.mark.asyncio
    async def test_get_active_block_idle(self, test_config: Config, now: datetime) -> None:
        later = now + timedelta(days=1)
        service = UsageService(UsageLoader(test_config), test_config, clock=lambda: later)
        result = await service.get_active_block()
        assert result == Ok(None)

    @pytest.mark.asyncio
    async def test_half_written_transcript_still_loads(
        self, tmp_claude_dir, test_config: Config, now: datetime
    ) -> None:
        transcript = tmp_claude_dir / "projects" / "beta" / "session-b.jsonl"
        with open(transcript, "ab") as file:
            file.write(b'{"timestamp": "2025-06-01T12:29:00Z", "message": \xe2\x82')

        service = UsageService(UsageLoader(test_config), test_config, clock=lambda: now)
        result = await service.get_active_block()

        assert isinstance(result, Ok)
        assert result.ok_value is not None
        assert result.ok_value.total_tokens == 1500

    @pytest.mark.asyncio
    async def test_read_failures_become_err(self, test_config: Config) -> None:
        service = UsageService(VanishingLoader(), test_config)

        blocks = await service.load_blocks()
        active = await service.get_active_block()

        assert isinstance(blocks, Err)
        assert "No such file or directory" in blocks.err_value
        assert isinstance(active, Err)
