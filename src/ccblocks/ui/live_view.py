"""Live dashboard frames for the active session block."""

from __future__ import annotations

from datetime import datetime
from types import TracebackType

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from ccblocks.models.blocks import BurnRate, ProjectedUsage, SessionBlock
from ccblocks.models.monitor import LiveMonitorConfig
from ccblocks.services.protocols import Clock, utc_now
from ccblocks.ui.formatting import (
    STYLES,
    format_clock,
    format_currency,
    format_duration,
    format_models,
    format_number,
    format_tokens_short,
    usage_style,
)
from ccblocks.ui.terminal import LiveTerminal

# Below this many columns the dashboard collapses to plain lines
COMPACT_LIVE_WIDTH = 60

HIGH_BURN_RATE = 1000
MODERATE_BURN_RATE = 500

_BAR_WIDTH = 50
_TITLE = "CLAUDE CODE - LIVE USAGE MONITOR"


def burn_rate_indicator(rate: BurnRate | None) -> Text:
    if rate is None:
        return Text("")
    if rate.tokens_per_minute > HIGH_BURN_RATE:
        return Text("HIGH", style=STYLES["danger"])
    if rate.tokens_per_minute > MODERATE_BURN_RATE:
        return Text("MODERATE", style=STYLES["warning"])
    return Text("NORMAL", style=STYLES["ok"])


def limit_status(projected_percent: float, *, has_limit: bool) -> Text:
    """Projection verdict against the configured limit."""
    if not has_limit:
        return Text("ON TRACK", style=STYLES["ok"])
    if projected_percent > 100:
        return Text("WILL EXCEED LIMIT", style=STYLES["danger"])
    if projected_percent > 80:
        return Text("APPROACHING LIMIT", style=STYLES["warning"])
    return Text("WITHIN LIMIT", style=STYLES["ok"])


def _percent(value: float, limit: float | None) -> float:
    if not limit:
        return 0.0
    return value / limit * 100


def _bar(completed: float, total: float, style: str) -> ProgressBar:
    return ProgressBar(
        total=max(total, 1e-9),
        completed=min(completed, total),
        width=_BAR_WIDTH,
        complete_style=style,
        finished_style=style,
    )


def _section(label: str, bar: RenderableType, summary: str, *details: Text | str) -> Table:
    grid = Table.grid(padding=(0, 2))
    grid.add_column(width=12)
    grid.add_column()
    grid.add_column(justify="right")
    grid.add_row(Text(label, style="bold"), bar, summary)
    if details:
        row = Table.grid(padding=(0, 4))
        for _ in details:
            row.add_column()
        row.add_row(*details)
        grid.add_row("", row, "")
    return grid


def _detail(label: str, value: Text | str) -> Text:
    text = Text(f"{label} ", style=STYLES["muted"])
    text.append(value if isinstance(value, Text) else Text(value))
    return text


def _session_section(block: SessionBlock, now: datetime) -> Table:
    elapsed = now - block.start_time
    remaining = block.end_time - now
    total = block.duration.total_seconds()
    percent = elapsed.total_seconds() / total * 100 if total else 0.0
    return _section(
        "SESSION",
        _bar(elapsed.total_seconds(), total, STYLES["accent"]),
        f"{percent:5.1f}%",
        _detail("Started:", format_clock(block.start_time)),
        _detail("Elapsed:", format_duration(elapsed)),
        _detail("Remaining:", f"{format_duration(remaining)} ({format_clock(block.end_time)})"),
    )


def _usage_section(
    block: SessionBlock, config: LiveMonitorConfig, rate: BurnRate | None
) -> Table:
    tokens = block.total_tokens
    rate_text = Text("N/A")
    if rate is not None:
        rate_text = Text(f"{round(rate.tokens_per_minute)} token/min ")
        rate_text.append(burn_rate_indicator(rate))

    if config.using_cost_limit:
        limit = config.cost_limit or 0.0
        percent = _percent(block.cost_usd, limit)
        hourly = f"${rate.cost_per_hour:.2f}/hour" if rate else "N/A"
        return _section(
            "USAGE",
            _bar(block.cost_usd, limit, usage_style(percent)),
            f"{percent:5.1f}% ({format_currency(block.cost_usd)}/{format_currency(limit)})",
            _detail("Cost:", f"{format_currency(block.cost_usd)} ({hourly})"),
            _detail("Limit:", format_currency(limit)),
            _detail("Tokens:", format_number(tokens)),
        )
    if config.using_token_limit:
        limit = config.token_limit or 0
        percent = _percent(tokens, limit)
        return _section(
            "USAGE",
            _bar(tokens, limit, usage_style(percent)),
            f"{percent:5.1f}% ({format_tokens_short(tokens)}/{format_tokens_short(limit)})",
            _detail("Tokens:", Text(f"{format_number(tokens)} (").append(rate_text).append(")")),
            _detail("Limit:", f"{format_number(limit)} tokens"),
            _detail("Cost:", format_currency(block.cost_usd)),
        )
    return _section(
        "USAGE",
        _bar(0.1, 1.0, STYLES["ok"]),
        f"({format_tokens_short(tokens)} tokens)",
        _detail("Tokens:", Text(f"{format_number(tokens)} (").append(rate_text).append(")")),
        _detail("Cost:", format_currency(block.cost_usd)),
    )


def _projection_section(projection: ProjectedUsage, config: LiveMonitorConfig) -> Table:
    has_limit = config.using_cost_limit or config.using_token_limit
    if config.using_cost_limit:
        limit = config.cost_limit or 0.0
        percent = _percent(projection.total_cost, limit)
        bar = _bar(projection.total_cost, limit, usage_style(percent))
        summary = (
            f"{percent:5.1f}% ({format_currency(projection.total_cost)}/{format_currency(limit)})"
        )
    elif config.using_token_limit:
        limit = config.token_limit or 0
        percent = _percent(projection.total_tokens, limit)
        bar = _bar(projection.total_tokens, limit, usage_style(percent))
        summary = (
            f"{percent:5.1f}% "
            f"({format_tokens_short(projection.total_tokens)}/{format_tokens_short(limit)})"
        )
    else:
        percent = 0.0
        bar = _bar(0.15, 1.0, STYLES["ok"])
        summary = f"({format_tokens_short(projection.total_tokens)} tokens)"

    return _section(
        "PROJECTION",
        bar,
        summary,
        _detail("Status:", limit_status(percent, has_limit=has_limit)),
        _detail("Tokens:", format_number(projection.total_tokens)),
        _detail("Cost:", format_currency(projection.total_cost)),
    )


def render_active_block(
    block: SessionBlock,
    config: LiveMonitorConfig,
    rate: BurnRate | None,
    projection: ProjectedUsage | None,
    *,
    now: datetime | None = None,
) -> RenderableType:
    """Full-width dashboard: session, usage, projection and models."""
    current_time = now or utc_now()
    parts: list[RenderableType] = [
        _session_section(block, current_time),
        Rule(style=STYLES["muted"]),
        _usage_section(block, config, rate),
    ]
    if projection is not None:
        parts += [Rule(style=STYLES["muted"]), _projection_section(projection, config)]
    if block.models:
        parts += [Rule(style=STYLES["muted"]), Text(f"Models: {format_models(block.models)}")]
    footer = (
        f"Refreshing every {config.refresh_interval:g}s  •  Press Ctrl+C to stop"
    )
    return Panel(
        Group(*parts),
        title=Text(_TITLE, style="bold"),
        subtitle=Text(footer, style=STYLES["muted"]),
        box=box.SQUARE,
        expand=True,
    )


def render_compact_block(
    block: SessionBlock,
    config: LiveMonitorConfig,
    rate: BurnRate | None,
    *,
    now: datetime | None = None,
) -> RenderableType:
    """Plain-line variant for narrow terminals."""
    current_time = now or utc_now()
    elapsed = current_time - block.start_time
    total = block.duration.total_seconds()
    session_percent = elapsed.total_seconds() / total * 100 if total else 0.0
    tokens = block.total_tokens

    lines: list[RenderableType] = [
        Text("LIVE MONITOR", style="bold", justify="center"),
        Rule(style=STYLES["muted"]),
        Text(f"Session: {session_percent:.1f}% ({format_duration(elapsed)})"),
    ]
    if config.using_cost_limit:
        limit = config.cost_limit or 0.0
        line = Text(f"Cost: {format_currency(block.cost_usd)}/{format_currency(limit)} ")
        line.append(_compact_status(_percent(block.cost_usd, limit)))
        lines += [line, Text(f"Tokens: {format_number(tokens)}")]
    elif config.using_token_limit:
        limit = config.token_limit or 0
        line = Text(f"Tokens: {format_number(tokens)}/{format_number(limit)} ")
        line.append(_compact_status(_percent(tokens, limit)))
        lines += [line, Text(f"Cost: {format_currency(block.cost_usd)}")]
    else:
        lines += [
            Text(f"Tokens: {format_number(tokens)}"),
            Text(f"Cost: {format_currency(block.cost_usd)}"),
        ]
    if rate is not None:
        lines.append(Text(f"Rate: {format_number(rate.tokens_per_minute)}/min"))
    lines += [
        Rule(style=STYLES["muted"]),
        Text(f"Refresh: {config.refresh_interval:g}s | Ctrl+C: stop", style=STYLES["muted"]),
    ]
    return Group(*lines)


def _compact_status(percent: float) -> Text:
    if percent > 100:
        return Text("OVER", style=STYLES["danger"])
    if percent > 80:
        return Text("WARN", style=STYLES["warning"])
    return Text("OK", style=STYLES["ok"])


def render_waiting() -> Text:
    return Text("No active session block found. Waiting...", style=STYLES["warning"])


def render_warning(message: str) -> Text:
    text = Text("Warning: ", style=f"bold {STYLES['warning']}")
    text.append(message, style=STYLES["warning"])
    return text


def render_error(message: str) -> Text:
    text = Text("Error: ", style=f"bold {STYLES['danger']}")
    text.append(message, style=STYLES["danger"])
    return text


class RichRenderer:
    """Draws live-monitor frames onto a ``LiveTerminal``."""

    def __init__(
        self,
        config: LiveMonitorConfig,
        terminal: LiveTerminal | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._config = config
        self._terminal = terminal or LiveTerminal()
        self._clock = clock

    @property
    def terminal(self) -> LiveTerminal:
        return self._terminal

    async def __aenter__(self) -> RichRenderer:
        await self._terminal.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self._terminal.__aexit__(exc_type, exc, tb)

    def render_block(
        self,
        block: SessionBlock,
        burn_rate: BurnRate | None,
        projection: ProjectedUsage | None,
    ) -> None:
        now = self._clock()
        if self._terminal.width < COMPACT_LIVE_WIDTH:
            frame = render_compact_block(block, self._config, burn_rate, now=now)
        else:
            frame = render_active_block(block, self._config, burn_rate, projection, now=now)
        self._terminal.show(frame)

    def render_waiting(self) -> None:
        self._terminal.show(render_waiting())

    def render_warning(self, message: str) -> None:
        self._terminal.show(render_warning(message))

    def render_error(self, message: str) -> None:
        self._terminal.show(render_error(message))
