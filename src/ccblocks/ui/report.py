"""Static block reports: the blocks table, the active-block detail and JSON."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from rich import box
from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from ccblocks.config import BLOCKS_WARNING_THRESHOLD
from ccblocks.models.blocks import Block, GapBlock, ProjectedUsage, SessionBlock
from ccblocks.services.burn_rate import burn_rate, project_usage
from ccblocks.services.protocols import utc_now
from ccblocks.ui.formatting import (
    STYLES,
    format_currency,
    format_duration,
    format_model_name,
    format_number,
)


def _local(moment: datetime, compact: bool) -> str:
    local = moment.astimezone()
    return local.strftime("%m/%d %H:%M" if compact else "%Y-%m-%d %H:%M:%S")


def format_block_time(block: Block, *, compact: bool = False, now: datetime | None = None) -> str:
    """Start time plus duration or elapsed/remaining time for active blocks."""
    start = _local(block.start_time, compact)
    separator = "\n" if compact else " "

    if isinstance(block, GapBlock):
        end = block.end_time.astimezone().strftime("%H:%M") if compact else _local(
            block.end_time, compact
        )
        hours = round(block.duration.total_seconds() / 3600)
        joiner = "-" if compact else " - "
        return f"{start}{joiner}{end}{separator}({hours}h gap)"

    if block.is_active:
        current_time = now or utc_now()
        elapsed = format_duration(current_time - block.start_time)
        remaining = format_duration(block.end_time - current_time)
        if compact:
            return f"{start}{separator}({elapsed}/{remaining})"
        return f"{start} ({elapsed} elapsed, {remaining} remaining)"

    return f"{start}{separator}({format_duration(block.actual_end_time - block.start_time)})"


def _models_cell(models: Sequence[str]) -> str:
    if not models:
        return "-"
    return "\n".join(f"- {name}" for name in sorted({format_model_name(m) for m in models}))


def blocks_table(
    blocks: Sequence[Block],
    token_limit: int | None = None,
    *,
    compact: bool = False,
    now: datetime | None = None,
) -> Table:
    """Tabulate blocks; the active block gets REMAINING and PROJECTED rows."""
    current_time = now or utc_now()
    has_limit = token_limit is not None and token_limit > 0

    table = Table(
        title="Claude Code Token Usage Report - Session Blocks",
        title_style="bold",
        box=box.ROUNDED,
        header_style=STYLES["accent"],
    )
    table.add_column("Block Start")
    table.add_column("Duration/Status")
    table.add_column("Models")
    table.add_column("Tokens", justify="right")
    if has_limit:
        table.add_column("%", justify="right")
    table.add_column("Cost", justify="right")

    for block in blocks:
        if isinstance(block, GapBlock):
            cells = [format_block_time(block, compact=compact), "(inactive)", "-", "-"]
            cells += ["-"] * (2 if has_limit else 1)
            table.add_row(*cells, style=STYLES["gap"])
            continue

        tokens = block.total_tokens
        row: list[RenderableType] = [
            format_block_time(block, compact=compact, now=current_time),
            Text("ACTIVE", style=STYLES["ok"]) if block.is_active else "",
            _models_cell(block.models),
            format_number(tokens),
        ]
        if has_limit:
            percent = tokens / token_limit * 100
            row.append(Text(f"{percent:.1f}%", style=STYLES["danger"] if percent > 100 else ""))
        row.append(format_currency(block.cost_usd))
        table.add_row(*row)

        if block.is_active:
            _add_active_rows(table, block, token_limit, current_time)

    return table


def _add_active_rows(
    table: Table, block: SessionBlock, token_limit: int | None, now: datetime
) -> None:
    has_limit = token_limit is not None and token_limit > 0
    tokens = block.total_tokens
    if has_limit:
        remaining = max(0, token_limit - tokens)
        remaining_percent = (token_limit - tokens) / token_limit * 100
        table.add_row(
            Text(f"(assuming {format_number(token_limit)} token limit)", style=STYLES["muted"]),
            Text("REMAINING", style="blue"),
            "",
            format_number(remaining) if remaining > 0 else Text("0", style=STYLES["danger"]),
            f"{remaining_percent:.1f}%"
            if remaining_percent > 0
            else Text("0.0%", style=STYLES["danger"]),
            "",
        )

    projection = project_usage(block, now=now)
    if projection is None:
        return
    over = has_limit and projection.total_tokens > token_limit
    row: list[RenderableType] = [
        Text("(assuming current burn rate)", style=STYLES["muted"]),
        Text("PROJECTED", style=STYLES["warning"]),
        "",
        Text(format_number(projection.total_tokens), style=STYLES["danger"] if over else ""),
    ]
    if has_limit:
        row.append(f"{projection.total_tokens / token_limit * 100:.1f}%")
    row.append(format_currency(projection.total_cost))
    table.add_row(*row)


def limit_status(projected_tokens: int, limit: int) -> str:
    """``exceeds``, ``warning`` or ``ok`` for a projection against a token limit."""
    if projected_tokens > limit:
        return "exceeds"
    if projected_tokens > limit * BLOCKS_WARNING_THRESHOLD:
        return "warning"
    return "ok"


def active_block_detail(
    block: SessionBlock,
    token_limit: int | None = None,
    *,
    now: datetime | None = None,
) -> Group:
    """Status readout for a single active block."""
    current_time = now or utc_now()
    rate = burn_rate(block)
    projection = project_usage(block, now=current_time)
    tokens = block.total_tokens

    lines: list[RenderableType] = [
        Text("Current Session Block Status", style="bold"),
        Text.assemble(
            "Block Started: ",
            (_local(block.start_time, False), STYLES["accent"]),
            " (",
            (format_duration(current_time - block.start_time), STYLES["warning"]),
            " ago)",
        ),
        Text.assemble(
            "Time Remaining: ", (format_duration(block.end_time - current_time), STYLES["ok"])
        ),
        Text(""),
        Text("Current Usage:", style="bold"),
        Text(f"  Input Tokens:     {format_number(block.token_counts.input_tokens)}"),
        Text(f"  Output Tokens:    {format_number(block.token_counts.output_tokens)}"),
        Text(f"  Total Cost:       {format_currency(block.cost_usd)}"),
    ]
    if rate is not None:
        lines += [
            Text(""),
            Text("Burn Rate:", style="bold"),
            Text(f"  Tokens/minute:    {format_number(rate.tokens_per_minute)}"),
            Text(f"  Cost/hour:        {format_currency(rate.cost_per_hour)}"),
        ]
    if projection is not None:
        lines += [
            Text(""),
            Text("Projected Usage (if current rate continues):", style="bold"),
            Text(f"  Total Tokens:     {format_number(projection.total_tokens)}"),
            Text(f"  Total Cost:       {format_currency(projection.total_cost)}"),
        ]
        if token_limit is not None and token_limit > 0:
            lines += _limit_lines(tokens, projection, token_limit)
    return Group(*lines)


def _limit_lines(tokens: int, projection: ProjectedUsage, limit: int) -> list[RenderableType]:
    percent = projection.total_tokens / limit * 100
    status = {
        "exceeds": Text("EXCEEDS LIMIT", style=STYLES["danger"]),
        "warning": Text("WARNING", style=STYLES["warning"]),
        "ok": Text("OK", style=STYLES["ok"]),
    }[limit_status(projection.total_tokens, limit)]
    return [
        Text(""),
        Text("Token Limit Status:", style="bold"),
        Text(f"  Limit:            {format_number(limit)} tokens"),
        Text(f"  Current Usage:    {format_number(tokens)} ({tokens / limit * 100:.1f}%)"),
        Text(f"  Remaining:        {format_number(max(0, limit - tokens))} tokens"),
        Text(f"  Projected Usage:  {percent:.1f}% ").append(status),
    ]


def _iso(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def block_to_dict(
    block: Block, token_limit: int | None = None, *, now: datetime | None = None
) -> dict[str, Any]:
    """Camel-case document for one block, as emitted by ``--json``."""
    rate = burn_rate(block) if block.is_active else None
    projection = project_usage(block, now=now) if block.is_active else None
    counts = block.token_counts

    document: dict[str, Any] = {
        "id": block.id,
        "startTime": _iso(block.start_time),
        "endTime": _iso(block.end_time),
        "actualEndTime": _iso(block.actual_end_time),
        "isActive": block.is_active,
        "isGap": block.is_gap,
        "entries": len(block.entries),
        "tokenCounts": {
            "inputTokens": counts.input_tokens,
            "outputTokens": counts.output_tokens,
            "cacheCreationInputTokens": counts.cache_creation_tokens,
            "cacheReadInputTokens": counts.cache_read_tokens,
        },
        "totalTokens": block.total_tokens,
        "costUSD": block.cost_usd,
        "models": list(block.models),
        "burnRate": None,
        "projection": None,
    }
    if rate is not None:
        document["burnRate"] = {
            "tokensPerMinute": rate.tokens_per_minute,
            "costPerHour": rate.cost_per_hour,
        }
    if projection is not None:
        document["projection"] = {
            "totalTokens": projection.total_tokens,
            "totalCost": projection.total_cost,
            "remainingMinutes": projection.remaining_minutes,
        }
        if token_limit is not None and token_limit > 0:
            document["tokenLimitStatus"] = {
                "limit": token_limit,
                "projectedUsage": projection.total_tokens,
                "percentUsed": projection.total_tokens / token_limit * 100,
                "status": limit_status(projection.total_tokens, token_limit),
            }
    return document


def blocks_json(
    blocks: Sequence[Block],
    token_limit: int | None = None,
    *,
    now: datetime | None = None,
    message: str | None = None,
) -> str:
    current_time = now or utc_now()
    payload: dict[str, Any] = {
        "blocks": [block_to_dict(b, token_limit, now=current_time) for b in blocks]
    }
    if message is not None:
        payload["message"] = message
    return json.dumps(payload, indent=2, default=str)
