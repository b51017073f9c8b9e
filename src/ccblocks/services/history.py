"""Cross-block history: per-model rankings and maxima for adaptive limits."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Literal

from ccblocks.models.blocks import Block, SessionBlock
from ccblocks.models.history import (
    ModelBreakdown,
    ModelHistory,
    PerModelBreakdown,
    PerModelHistoricalValues,
)

type Metric = Literal["cost", "tokens"]


def model_matches(model_name: str, models: Sequence[str] | None) -> bool:
    """Case-insensitive, bidirectional substring match; no filter matches all."""
    if not models:
        return True
    name = model_name.lower()
    for term in models:
        lowered = term.lower()
        if lowered in name or name in lowered:
            return True
    return False


def _completed(blocks: Iterable[Block]) -> Iterable[SessionBlock]:
    for block in blocks:
        if isinstance(block, SessionBlock) and not block.is_active:
            yield block


def historical_values(blocks: Iterable[Block]) -> PerModelHistoricalValues:
    """Collect completed-block totals for every model that took part in them.

    Each model gets the block's full cost and tokens, not its own share, so
    rankings describe whole blocks while still supporting model filters.
    """
    collected: dict[str, tuple[list[float], list[int], list[int]]] = {}
    for block in _completed(blocks):
        total_tokens = block.token_counts.total_tokens
        if block.cost_usd <= 0 and total_tokens <= 0:
            continue
        for model in block.models:
            costs, tokens, counts = collected.setdefault(model, ([], [], []))
            costs.append(block.cost_usd)
            tokens.append(total_tokens)
            counts.append(len(block.entries))

    values: PerModelHistoricalValues = {}
    for model, (costs, tokens, counts) in collected.items():
        order = sorted(range(len(costs)), key=lambda i: costs[i], reverse=True)
        values[model] = ModelHistory(
            cost_usd=tuple(costs[i] for i in order),
            total_tokens=tuple(tokens[i] for i in order),
            entry_counts=tuple(counts[i] for i in order),
        )
    return values


def nth_highest(
    values: PerModelHistoricalValues,
    models: Sequence[str] | None,
    rank: int,
    metric: Metric = "cost",
) -> float | int | None:
    """Return the ``rank``-th highest cost or token total among matching models.

    Without a model filter the values are deduplicated first (one value per
    distinct block total); with a filter every occurrence counts.
    """
    if rank < 1:
        return None

    collected: list[float | int] = []
    for model, history in values.items():
        if not model_matches(model, models):
            continue
        collected.extend(history.cost_usd if metric == "cost" else history.total_tokens)

    collected.sort(reverse=True)
    if not models:
        collected = list(dict.fromkeys(collected))
    if rank > len(collected):
        return None
    return collected[rank - 1]


def nth_highest_cost(
    values: PerModelHistoricalValues, models: Sequence[str] | None, rank: int
) -> float | None:
    return nth_highest(values, models, rank, "cost")


def nth_highest_tokens(
    values: PerModelHistoricalValues, models: Sequence[str] | None, rank: int
) -> int | None:
    result = nth_highest(values, models, rank, "tokens")
    return None if result is None else int(result)


def per_model_breakdown(block: Block) -> PerModelBreakdown:
    """Split a block's cost, tokens and entry count by model."""
    totals: dict[str, list[float]] = {}
    for entry in block.entries:
        row = totals.setdefault(entry.model, [0.0, 0, 0])
        row[0] += entry.cost
        row[1] += entry.input_tokens + entry.output_tokens
        row[2] += 1
    return {
        model: ModelBreakdown(cost_usd=cost, total_tokens=int(tokens), entries=int(count))
        for model, (cost, tokens, count) in totals.items()
    }


def global_model_maxes(blocks: Iterable[Block]) -> PerModelBreakdown:
    """Per-model maxima of cost, tokens and entries over completed blocks."""
    maxes: PerModelBreakdown = {}
    for block in _completed(blocks):
        for model, data in per_model_breakdown(block).items():
            current = maxes.get(model)
            if current is None:
                maxes[model] = data
                continue
            maxes[model] = ModelBreakdown(
                cost_usd=max(current.cost_usd, data.cost_usd),
                total_tokens=max(current.total_tokens, data.total_tokens),
                entries=max(current.entries, data.entries),
            )
    return maxes


def model_cost_limit(maxes: PerModelBreakdown, models: Sequence[str] | None = None) -> float:
    """Highest per-model cost among models matching the filter (0 when none)."""
    return max(
        (data.cost_usd for name, data in maxes.items() if model_matches(name, models)),
        default=0.0,
    )


def model_token_limit(maxes: PerModelBreakdown, models: Sequence[str] | None = None) -> int:
    """Highest per-model token total among models matching the filter (0 when none)."""
    return max(
        (data.total_tokens for name, data in maxes.items() if model_matches(name, models)),
        default=0,
    )
