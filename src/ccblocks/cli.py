"""Typer CLI for ccblocks: blocks and watch commands."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from result import Err

from ccblocks.config import (
    BLOCKS_COMPACT_WIDTH_THRESHOLD,
    DEFAULT_RECENT_DAYS,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
    DEFAULT_SESSION_DURATION_HOURS,
    ClaudePathError,
    Config,
    clamp_refresh_interval,
)
from ccblocks.models.history import PerModelHistoricalValues
from ccblocks.services.history import nth_highest_cost, nth_highest_tokens

if TYPE_CHECKING:
    from ccblocks.data.loader import UsageService
    from ccblocks.models.blocks import Block
    from ccblocks.ui.watch_view import WatchDisplayOptions

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="ccblocks",
    help="Claude Code usage grouped into session billing blocks.",
    no_args_is_help=True,
)

ClaudeDirOption = Annotated[
    Path | None,
    typer.Option("--claude-dir", help="Path to Claude data directory"),
]
SessionLengthOption = Annotated[
    float,
    typer.Option("--session-length", "-l", help="Session block duration in hours"),
]


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Report and monitor Claude Code session billing blocks."""
    configure_logging(verbose)


def parse_models(value: str | None) -> tuple[str, ...] | None:
    """Split a comma-separated model filter; empty input means no filter."""
    if not value:
        return None
    models = tuple(m.strip() for m in value.split(",") if m.strip())
    return models or None


def parse_limit(
    value: str | None,
    history: PerModelHistoricalValues,
    models: tuple[str, ...] | None,
    metric: str,
) -> float | int | None:
    """Resolve a limit option: a number, ``max`` or ``maxK`` (K-th highest block).

    Raises:
        typer.BadParameter: if the value is neither a number nor ``max[K]``.
    """
    if value is None or not value.strip():
        return None
    text = value.strip().lower()
    if text.startswith("max"):
        rank_text = text.removeprefix("max")
        if rank_text and not rank_text.isdigit():
            raise typer.BadParameter(f"Invalid limit: {value}")
        rank = int(rank_text) if rank_text else 1
        if metric == "tokens":
            return nth_highest_tokens(history, models, rank)
        return nth_highest_cost(history, models, rank)
    try:
        return int(text) if metric == "tokens" else float(text)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid limit: {value}") from exc


@dataclass(frozen=True)
class BlocksRequest:
    """Parsed ``blocks`` options, independent of typer."""

    active: bool = False
    recent: bool = False
    token_limit: str | None = None
    cost_limit: str | None = None
    live: bool = False
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS
    models: tuple[str, ...] | None = None
    since: str | None = None
    until: str | None = None
    json_output: bool = False


def _load_config(claude_dir: Path | None, **overrides: object) -> Config:
    try:
        return Config.from_env(claude_dir, **overrides)
    except (ClaudePathError, ValueError) as exc:
        logger.error("%s", exc)
        raise typer.Exit(1) from exc


@app.command()
def blocks(
    active: Annotated[
        bool, typer.Option("--active", "-a", help="Show only active block with projections")
    ] = False,
    recent: Annotated[
        bool,
        typer.Option(
            "--recent",
            "-r",
            help=f"Show blocks from last {DEFAULT_RECENT_DAYS} days (including active)",
        ),
    ] = False,
    token_limit: Annotated[
        str | None,
        typer.Option(
            "--token-limit",
            "-t",
            help='Token limit for quota warnings (e.g. 500000, "max" or "max2")',
        ),
    ] = None,
    cost_limit: Annotated[
        str | None,
        typer.Option(
            "--cost-limit", "-c", help='Cost limit for quota warnings (e.g. 5.50 or "max")'
        ),
    ] = None,
    session_length: SessionLengthOption = DEFAULT_SESSION_DURATION_HOURS,
    live: Annotated[
        bool, typer.Option("--live", help="Live monitoring mode with real-time updates")
    ] = False,
    refresh_interval: Annotated[
        float,
        typer.Option("--refresh-interval", help="Refresh interval in seconds for live mode"),
    ] = DEFAULT_REFRESH_INTERVAL_SECONDS,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Filter by model(s), comma-separated"),
    ] = None,
    since: Annotated[
        str | None, typer.Option("--since", "-s", help="Start date (YYYYMMDD)")
    ] = None,
    until: Annotated[
        str | None, typer.Option("--until", "-u", help="End date (YYYYMMDD)")
    ] = None,
    order: Annotated[str, typer.Option("--order", "-o", help="Sort order: asc or desc")] = "asc",
    mode: Annotated[
        str, typer.Option("--mode", help="Cost mode: auto, calculate or display")
    ] = "auto",
    project: Annotated[
        str | None, typer.Option("--project", "-p", help="Only include this project")
    ] = None,
    timezone: Annotated[
        str | None, typer.Option("--timezone", "-z", help="Timezone for date filters")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output JSON")] = False,
    claude_dir: ClaudeDirOption = None,
) -> None:
    """Show usage report grouped by session billing blocks."""
    if json_output:
        logging.getLogger("ccblocks").setLevel(logging.ERROR)
    config = _load_config(
        claude_dir,
        session_length_hours=session_length,
        cost_mode=mode,
        order=order,
        project=project,
        timezone=timezone,
    )
    request = BlocksRequest(
        active=active,
        recent=recent,
        token_limit=token_limit,
        cost_limit=cost_limit,
        live=live and not json_output,
        refresh_interval=refresh_interval,
        models=parse_models(model),
        since=since,
        until=until,
        json_output=json_output,
    )
    asyncio.run(_do_blocks(config, request))


async def _do_blocks(config: Config, request: BlocksRequest) -> None:
    """Load blocks, resolve limits and print the report or start live mode."""
    from rich.console import Console

    from ccblocks.data.loader import LoadOptions, UsageLoader, UsageService
    from ccblocks.services.blocks import filter_recent_blocks
    from ccblocks.services.history import historical_values
    from ccblocks.ui.report import active_block_detail, blocks_json, blocks_table

    loader = UsageLoader(config)
    service = UsageService(loader, config)
    all_blocks = await _load_or_exit(service, request)

    history = historical_values(all_blocks)
    token_limit = parse_limit(request.token_limit, history, request.models, "tokens")
    cost_limit = parse_limit(request.cost_limit, history, request.models, "cost")
    _log_resolved_limit(request.token_limit, token_limit, "tokens")
    _log_resolved_limit(request.cost_limit, cost_limit, "cost")

    if request.models:
        filtered = loader.with_options(LoadOptions(project=config.project, models=request.models))
        service = UsageService(filtered, config)
        blocks = await _load_or_exit(service, request)
    else:
        blocks = all_blocks

    if not blocks:
        if request.json_output:
            typer.echo(blocks_json([]))
        else:
            logger.warning("No Claude usage data found.")
        return

    if request.recent:
        blocks = filter_recent_blocks(blocks, DEFAULT_RECENT_DAYS)

    if request.active:
        blocks = [b for b in blocks if b.is_active]
        if not blocks:
            if request.json_output:
                typer.echo(blocks_json([], message="No active block"))
            else:
                logger.info("No active session block found.")
            return

    if request.live:
        await _do_live(config, request, service, history, token_limit, cost_limit)
        return

    tokens = int(token_limit) if token_limit else None
    if request.json_output:
        typer.echo(blocks_json(blocks, tokens))
        return

    console = Console()
    if request.active and len(blocks) == 1:
        console.print(active_block_detail(blocks[0], tokens))  # type: ignore[arg-type]
    else:
        compact = console.width < BLOCKS_COMPACT_WIDTH_THRESHOLD
        console.print(blocks_table(blocks, tokens, compact=compact))


async def _load_or_exit(service: UsageService, request: BlocksRequest) -> list[Block]:
    result = await service.load_blocks(request.since, request.until)
    if isinstance(result, Err):
        logger.error("%s", result.err_value)
        raise typer.Exit(1)
    return result.ok_value


def _log_resolved_limit(raw: str | None, resolved: float | int | None, metric: str) -> None:
    if raw is None or not raw.strip().lower().startswith("max"):
        return
    if resolved is None:
        logger.info("No previous sessions to derive a %s limit from", metric)
    else:
        logger.info("Using %s limit from previous sessions: %s", metric, resolved)


async def _do_live(
    config: Config,
    request: BlocksRequest,
    service: UsageService,
    history: PerModelHistoricalValues,
    token_limit: float | int | None,
    cost_limit: float | int | None,
) -> None:
    """Run the live monitor until interrupted."""
    from ccblocks.models.monitor import LiveMonitorConfig
    from ccblocks.services.live import LiveMonitorError, run_live_monitor
    from ccblocks.ui.live_view import RichRenderer

    if not request.active:
        logger.info("Live mode automatically shows only active blocks.")
    if request.token_limit is not None and request.cost_limit is not None:
        logger.error("Cannot specify both --token-limit and --cost-limit at the same time")
        raise typer.Exit(1)
    if request.token_limit is None and request.cost_limit is None:
        token_limit = parse_limit("max", history, request.models, "tokens")
        if token_limit:
            logger.info(
                "No limit specified, using max tokens from previous sessions: %s", token_limit
            )

    monitor_config = LiveMonitorConfig(
        window=config.window,
        refresh_interval=clamp_refresh_interval(request.refresh_interval),
        token_limit=int(token_limit) if token_limit else None,
        cost_limit=float(cost_limit) if cost_limit else None,
        models=request.models,
    )
    try:
        await run_live_monitor(monitor_config, service, RichRenderer(monitor_config))
    except LiveMonitorError as exc:
        typer.secho(f"Live monitoring error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from exc


@app.command()
def watch(
    session_length: SessionLengthOption = DEFAULT_SESSION_DURATION_HOURS,
    mode: Annotated[
        str, typer.Option("--mode", help="Cost mode: auto, calculate or display")
    ] = "auto",
    show_tokens: Annotated[
        bool, typer.Option("--show-tokens", help="Show per-model token table")
    ] = False,
    show_cost: Annotated[
        bool, typer.Option("--show-cost", help="Show per-model cost table")
    ] = False,
    show_period: Annotated[
        bool, typer.Option("--show-period", help="Show burn rates per period")
    ] = False,
    claude_dir: ClaudeDirOption = None,
) -> None:
    """Watch the active block, polling faster while usage is changing."""
    from ccblocks.ui.watch_view import WatchDisplayOptions

    config = _load_config(claude_dir, session_length_hours=session_length, cost_mode=mode)
    options = WatchDisplayOptions(
        show_tokens=show_tokens, show_cost=show_cost, show_period=show_period
    )
    asyncio.run(_do_watch(config, options))


async def _do_watch(config: Config, options: WatchDisplayOptions) -> None:
    """Run the watch loop and print what was consumed meanwhile."""
    from ccblocks.data.loader import UsageLoader, UsageService
    from ccblocks.services.live import CancelToken, install_signal_handlers
    from ccblocks.services.watch import WatchScheduler
    from ccblocks.ui.watch_view import RichWatchRenderer, format_summary

    service = UsageService(UsageLoader(config), config)
    token = CancelToken()
    uninstall = install_signal_handlers(token)
    try:
        scheduler = WatchScheduler(
            service.load_blocks,
            RichWatchRenderer(options=options),
            cancel_token=token,
        )
        summary = await scheduler.run()
    finally:
        uninstall()
    typer.secho(format_summary(summary), fg=typer.colors.CYAN)
