"""Tests for burn rate estimation and usage projection."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from ccblocks.models.blocks import GapBlock
from ccblocks.services.blocks import build_blocks
from ccblocks.services.burn_rate import (
    _active_minutes,
    burn_rate,
    period_burn_rates,
    project_usage,
    token_rates,
)

T0 = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)


def _block(entries, now):
    return build_blocks(entries, now=now)[-1]


class TestBurnRate:
    def test_none_for_single_entry(self, make_entry) -> None:
        block = _block([make_entry(T0)], T0 + timedelta(minutes=1))
        assert burn_rate(block) is None

    def test_none_for_gap_block(self) -> None:
        gap = GapBlock(id="gap-x", start_time=T0, end_time=T0 + timedelta(hours=1))
        assert burn_rate(gap) is None

    def test_none_for_zero_duration(self, make_entry) -> None:
        block = _block([make_entry(T0), make_entry(T0)], T0 + timedelta(minutes=1))
        assert burn_rate(block) is None

    def test_dense_block_rates(self, make_entry) -> None:
        entries = [
            make_entry(T0, input_tokens=600, output_tokens=400, cost=1.0),
            make_entry(T0 + timedelta(minutes=5), input_tokens=600, output_tokens=400, cost=1.0),
        ]
        rate = burn_rate(_block(entries, T0 + timedelta(minutes=6)))

        assert rate is not None
        assert rate.tokens_per_minute == pytest.approx(2000 / 5)
        assert rate.cost_per_hour == pytest.approx(2.0 / 5 * 60)
        assert rate.activity_density is None

    def test_cache_tokens_are_excluded(self, make_entry) -> None:
        entries = [
            make_entry(T0, input_tokens=10, output_tokens=0, cache_read_tokens=10_000),
            make_entry(T0 + timedelta(minutes=1), input_tokens=10, output_tokens=0),
        ]
        rate = burn_rate(_block(entries, T0 + timedelta(minutes=2)))
        assert rate is not None
        assert rate.tokens_per_minute == pytest.approx(20)

    def test_sparse_block_gets_density(self, make_entry) -> None:
        # Two bursts an hour apart: 0-2 min and 60-62 min
        stamps = [0, 1, 2, 60, 61, 62]
        entries = [make_entry(T0 + timedelta(minutes=m)) for m in stamps]
        rate = burn_rate(_block(entries, T0 + timedelta(minutes=63)))

        assert rate is not None
        assert rate.activity_density == pytest.approx(4 / 62)

    def test_density_capped_at_one(self, make_entry) -> None:
        entries = [make_entry(T0), make_entry(T0 + timedelta(minutes=6))]
        rate = burn_rate(_block(entries, T0 + timedelta(minutes=7)))
        assert rate is not None
        # One burst spanning 6 minutes over a 6 minute block
        assert rate.activity_density == pytest.approx(1.0)


class TestActiveMinutes:
    def test_single_timestamp_counts_one_minute(self) -> None:
        assert _active_minutes([T0]) == 1.0

    def test_bursts_split_on_long_gaps(self) -> None:
        stamps = [T0, T0 + timedelta(minutes=5), T0 + timedelta(minutes=30)]
        # Burst 1: 5 minutes, burst 2: a lone entry floored to 1 minute
        assert _active_minutes(stamps) == pytest.approx(6.0)


class TestProjection:
    def test_none_for_inactive_block(self, make_entry) -> None:
        entries = [make_entry(T0), make_entry(T0 + timedelta(minutes=5))]
        block = _block(entries, T0 + timedelta(days=1))
        assert project_usage(block, now=T0 + timedelta(days=1)) is None

    def test_dense_projection(self, make_entry) -> None:
        entries = [
            make_entry(T0, input_tokens=500, output_tokens=500, cost=0.5),
            make_entry(T0 + timedelta(minutes=10), input_tokens=500, output_tokens=500, cost=0.5),
        ]
        now = T0 + timedelta(minutes=60)
        block = _block(entries, now)
        projection = project_usage(block, now=now)

        assert projection is not None
        # 2000 tokens over 10 minutes = 200 tpm; 240 minutes remain
        assert projection.remaining_minutes == 240
        assert projection.total_tokens == 2000 + 200 * 240
        assert projection.total_cost == pytest.approx(round(1.0 + 0.1 * 240, 2))

    def test_sparse_projection_scaled_by_density(self, make_entry) -> None:
        stamps = [0, 1, 2, 60, 61, 62]
        entries = [make_entry(T0 + timedelta(minutes=m)) for m in stamps]
        now = T0 + timedelta(minutes=90)
        block = _block(entries, now)
        rate = burn_rate(block)
        projection = project_usage(block, now=now)

        assert rate is not None and rate.activity_density is not None
        assert projection is not None
        effective = 210 * rate.activity_density
        assert projection.total_tokens == round(900 + rate.tokens_per_minute * effective)
        assert projection.remaining_minutes == 210

    def test_projection_shrinks_as_window_runs_out(self, make_entry) -> None:
        entries = [
            make_entry(T0, input_tokens=500, output_tokens=500, cost=0.5),
            make_entry(T0 + timedelta(minutes=10), input_tokens=500, output_tokens=500, cost=0.5),
        ]
        block = _block(entries, T0 + timedelta(minutes=20))
        projections = [
            project_usage(block, now=T0 + timedelta(minutes=m)) for m in (20, 90, 180, 299, 320)
        ]

        assert all(p is not None for p in projections)
        remaining = [p.remaining_minutes for p in projections]
        tokens = [p.total_tokens for p in projections]
        costs = [p.total_cost for p in projections]
        assert remaining == sorted(remaining, reverse=True)
        assert tokens == sorted(tokens, reverse=True)
        assert costs == sorted(costs, reverse=True)
        assert projections[-1].total_tokens == 2000


class TestPeriodRates:
    def test_token_rates_need_two_entries(self, make_entry) -> None:
        rates = token_rates([make_entry(T0)])
        assert rates.input is None and rates.output is None

    def test_period_windows(self, make_entry) -> None:
        entries = [
            make_entry(T0, input_tokens=100, output_tokens=0),
            make_entry(T0 + timedelta(minutes=100), input_tokens=100, output_tokens=0),
            make_entry(T0 + timedelta(minutes=110), input_tokens=100, output_tokens=0),
        ]
        now = T0 + timedelta(minutes=115)
        rates = period_burn_rates(_block(entries, now), now=now)

        assert rates.block.input == pytest.approx(300 / 110)
        assert rates.one_hour.input == pytest.approx(200 / 10)
        # Only one entry in the last ten minutes
        assert rates.ten_minutes.input is None
