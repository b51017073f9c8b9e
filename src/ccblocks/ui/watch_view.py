"""Frames for the adaptive ``watch`` command."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import TracebackType

from rich import box
from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from ccblocks.models.blocks import Block, SessionBlock, TokenRates
from ccblocks.models.monitor import WatchSummary
from ccblocks.services.burn_rate import burn_rate, period_burn_rates, project_usage
from ccblocks.services.protocols import Clock, utc_now
from ccblocks.ui.formatting import (
    STYLES,
    format_clock,
    format_currency,
    format_duration,
    format_model_name,
    format_number,
)
from ccblocks.ui.terminal import LiveTerminal

# Remaining-time thresholds for the countdown colour
TIME_CRITICAL = timedelta(minutes=30)
TIME_WARNING = timedelta(hours=1)

_BAR_WIDTH = 40

_FAMILY_STYLES = {"opus": "magenta", "sonnet": "blue", "haiku": "green"}


@dataclass(frozen=True)
class WatchDisplayOptions:
    """Optional tables shown below the watch frame."""

    show_tokens: bool = False
    show_cost: bool = False
    show_period: bool = False


def model_family(model: str) -> str | None:
    lowered = model.lower()
    for family in _FAMILY_STYLES:
        if family in lowered:
            return family
    return None


def historical_max_cost(blocks: Sequence[Block]) -> float:
    """Highest cost of any completed block."""
    return max(
        (b.cost_usd for b in blocks if isinstance(b, SessionBlock) and not b.is_active),
        default=0.0,
    )


def _time_bar(block: SessionBlock, now: datetime) -> Text:
    remaining = block.end_time - now
    style = STYLES["ok"]
    if remaining <= TIME_CRITICAL:
        style = STYLES["danger"]
    elif remaining <= TIME_WARNING:
        style = STYLES["warning"]

    total = block.duration.total_seconds()
    elapsed = min(max(0.0, (now - block.start_time).total_seconds()), total)
    filled = round(elapsed / total * _BAR_WIDTH) if total else _BAR_WIDTH
    text = Text("Time Remaining: ")
    text.append("█" * filled, style=STYLES["muted"])
    text.append("█" * (_BAR_WIDTH - filled), style=style)
    text.append(f" {format_duration(remaining)} (Reset on {format_clock(block.end_time)})")
    return text


def _family_costs(block: SessionBlock) -> dict[str, float]:
    costs: dict[str, float] = {}
    for entry in block.entries:
        family = model_family(entry.model)
        if family is not None:
            costs[family] = costs.get(family, 0.0) + entry.cost
    return costs


def _cost_bar(block: SessionBlock, max_cost: float) -> Group:
    """Cost against ``max_cost``, split into segments by model family."""
    costs = _family_costs(block)
    used = sum(costs.values())
    used_width = round(min(used / max_cost, 1.0) * _BAR_WIDTH) if max_cost > 0 else 0

    bar = Text("Cost Usage:     ")
    drawn = 0
    for family, cost in sorted(costs.items()):
        if used <= 0 or cost <= 0:
            continue
        width = min(used_width - drawn, max(1, round(cost / used * used_width)))
        bar.append("█" * width, style=_FAMILY_STYLES[family])
        drawn += width
    bar.append("░" * (_BAR_WIDTH - drawn), style=STYLES["muted"])
    bar.append(f" {format_currency(used)} / {format_currency(max_cost)}")

    legend = Text("                ")
    for family, cost in sorted(costs.items()):
        legend.append("■ ", style=_FAMILY_STYLES[family])
        legend.append(f"{family.capitalize()} {format_currency(cost)}  ")
    return Group(bar, legend)


def _tokens_table(block: SessionBlock) -> Table:
    table = Table(box=box.SIMPLE, header_style=STYLES["accent"])
    for header in ("Tokens", "Input", "Output", "Cache Create", "Cache Read", "Total"):
        table.add_column(header, justify="left" if header == "Tokens" else "right")

    per_model: dict[str, list[int]] = {}
    for entry in block.entries:
        row = per_model.setdefault(entry.model, [0, 0, 0, 0])
        row[0] += entry.input_tokens
        row[1] += entry.output_tokens
        row[2] += entry.cache_creation_tokens
        row[3] += entry.cache_read_tokens

    totals = [0, 0, 0, 0]
    for model, counts in sorted(per_model.items()):
        if not any(counts):
            continue
        table.add_row(
            format_model_name(model), *map(format_number, counts), format_number(sum(counts))
        )
        totals = [a + b for a, b in zip(totals, counts, strict=True)]
    if len(per_model) > 1:
        table.add_row(
            Text("Total", style="bold"),
            *(Text(format_number(v), style="bold") for v in [*totals, sum(totals)]),
        )
    return table


def _cost_table(block: SessionBlock) -> Table:
    """Per-model cost split across token types, proportional to token share."""
    table = Table(box=box.SIMPLE, header_style=STYLES["accent"])
    for header in ("Cost", "Input", "Output", "Cache Create", "Cache Read", "Total"):
        table.add_column(header, justify="left" if header == "Cost" else "right")

    per_model: dict[str, list[float]] = {}
    for entry in block.entries:
        counts = (
            entry.input_tokens,
            entry.output_tokens,
            entry.cache_creation_tokens,
            entry.cache_read_tokens,
        )
        total = sum(counts)
        if total <= 0 or entry.cost <= 0:
            continue
        row = per_model.setdefault(entry.model, [0.0, 0.0, 0.0, 0.0])
        for i, count in enumerate(counts):
            row[i] += count * entry.cost / total

    totals = [0.0, 0.0, 0.0, 0.0]
    for model, costs in sorted(per_model.items()):
        table.add_row(
            format_model_name(model), *map(format_currency, costs), format_currency(sum(costs))
        )
        totals = [a + b for a, b in zip(totals, costs, strict=True)]
    if len(per_model) > 1:
        table.add_row(
            Text("Total", style="bold"),
            *(Text(format_currency(v), style="bold") for v in [*totals, sum(totals)]),
        )
    return table


def _rate_cells(rates: TokenRates) -> list[str]:
    values = (rates.input, rates.output, rates.cache_create, rates.cache_read)
    return ["N/A" if v is None else format_number(v) for v in values]


def _period_table(block: SessionBlock, now: datetime) -> Table:
    rates = period_burn_rates(block, now=now)
    table = Table(box=box.SIMPLE, header_style=STYLES["accent"])
    table.add_column("Period")
    for header in ("Input t/min", "Output t/min", "Cache Create t/min", "Cache Read t/min"):
        table.add_column(header, justify="right")
    table.add_row("Block", *_rate_cells(rates.block))
    table.add_row("1 Hour", *_rate_cells(rates.one_hour))
    table.add_row("10 Minutes", *_rate_cells(rates.ten_minutes))
    return table


def render_watch_frame(
    block: SessionBlock,
    blocks: Sequence[Block],
    options: WatchDisplayOptions | None = None,
    *,
    now: datetime | None = None,
) -> Group:
    """Countdown, cost bar, current totals with estimates and optional tables."""
    options = options or WatchDisplayOptions()
    current_time = now or utc_now()
    rate = burn_rate(block)
    projection = project_usage(block, now=current_time)

    max_cost = historical_max_cost(blocks)
    if max_cost <= 0:
        max_cost = projection.total_cost if projection else max(block.cost_usd * 10, 1.0)

    tokens_text = format_number(block.total_tokens)
    cost_text = format_currency(block.cost_usd)
    width = max(len(tokens_text), len(cost_text))
    est_tokens = f" (Est. {format_number(projection.total_tokens)})" if projection else ""
    est_cost = ""
    if rate is not None:
        remaining_hours = max(0.0, (block.end_time - current_time).total_seconds() / 3600)
        projected_cost = block.cost_usd + rate.cost_per_hour * remaining_hours
        est_cost = f" (Est. {format_currency(projected_cost)})"
    elif projection is not None:
        est_cost = f" (Est. {format_currency(projection.total_cost)})"

    parts: list[RenderableType] = [
        _time_bar(block, current_time),
        _cost_bar(block, max_cost),
        Text(f"Tokens:  {tokens_text:<{width}}{est_tokens}"),
        Text(f"Cost:    {cost_text:<{width}}{est_cost}"),
    ]
    if options.show_tokens:
        parts.append(_tokens_table(block))
    if options.show_cost:
        parts.append(_cost_table(block))
    if options.show_period:
        parts.append(_period_table(block, current_time))
    parts.append(
        Text(f"{format_clock(current_time)} | Press Ctrl+C to exit", style=STYLES["muted"])
    )
    return Group(*parts)


def render_idle(now: datetime | None = None) -> Group:
    return Group(
        Text("No active session block found.", style=STYLES["warning"]),
        Text(""),
        Text(f"{format_clock(now or utc_now())} | Press Ctrl+C to exit", style=STYLES["muted"]),
    )


def render_watch_error(message: str, now: datetime | None = None) -> Group:
    return Group(
        Text("Error loading usage data:", style=STYLES["danger"]),
        Text(f"   {message}", style=STYLES["muted"]),
        Text(""),
        Text(f"{format_clock(now or utc_now())} | Press Ctrl+C to exit", style=STYLES["muted"]),
    )


def format_summary(summary: WatchSummary) -> str:
    return (
        f"Duration: {format_duration(summary.duration)} | "
        f"Tokens: {format_number(summary.tokens_used)} | "
        f"Cost: {format_currency(summary.cost_used)}"
    )


class RichWatchRenderer:
    """Draws watch frames onto a ``LiveTerminal``."""

    def __init__(
        self,
        terminal: LiveTerminal | None = None,
        options: WatchDisplayOptions | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._terminal = terminal or LiveTerminal()
        self._options = options or WatchDisplayOptions()
        self._clock = clock

    async def __aenter__(self) -> RichWatchRenderer:
        await self._terminal.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self._terminal.__aexit__(exc_type, exc, tb)

    def render_active(self, block: SessionBlock, blocks: Sequence[Block]) -> None:
        self._terminal.show(render_watch_frame(block, blocks, self._options, now=self._clock()))

    def render_idle(self) -> None:
        self._terminal.show(render_idle(self._clock()))

    def render_error(self, message: str) -> None:
        self._terminal.show(render_watch_error(message, self._clock()))
