"""Model pricing table and per-entry cost resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ccblocks.data.parser import UsageRecord

# Prices per million tokens (USD)
# Source: Anthropic pricing page
MODEL_PRICING: dict[str, dict[str, float]] = {
    "claude-opus-4-5-20251101": {
        "input": 5.0,
        "output": 25.0,
        "cache_read": 0.5,
        "cache_creation": 6.25,
    },
    "claude-opus-4-1-20250805": {
        "input": 15.0,
        "output": 75.0,
        "cache_read": 1.5,
        "cache_creation": 18.75,
    },
    "claude-opus-4-20250514": {
        "input": 15.0,
        "output": 75.0,
        "cache_read": 1.5,
        "cache_creation": 18.75,
    },
    "claude-sonnet-4-5-20250929": {
        "input": 3.0,
        "output": 15.0,
        "cache_read": 0.3,
        "cache_creation": 3.75,
    },
    "claude-sonnet-4-20250514": {
        "input": 3.0,
        "output": 15.0,
        "cache_read": 0.3,
        "cache_creation": 3.75,
    },
    "claude-haiku-4-5-20251001": {
        "input": 1.0,
        "output": 5.0,
        "cache_read": 0.1,
        "cache_creation": 1.25,
    },
    "claude-3-5-haiku-20241022": {
        "input": 0.80,
        "output": 4.0,
        "cache_read": 0.08,
        "cache_creation": 1.0,
    },
}

# Family fallbacks for model ids missing from the table
FAMILY_PRICING: dict[str, dict[str, float]] = {
    "opus": MODEL_PRICING["claude-opus-4-1-20250805"],
    "sonnet": MODEL_PRICING["claude-sonnet-4-5-20250929"],
    "haiku": MODEL_PRICING["claude-haiku-4-5-20251001"],
}

# Default pricing for unknown models (use Sonnet-level pricing)
DEFAULT_PRICING: dict[str, float] = {
    "input": 3.0,
    "output": 15.0,
    "cache_read": 0.3,
    "cache_creation": 3.75,
}

# Claude Code writes this for locally generated, unbilled messages
SYNTHETIC_MODEL = "<synthetic>"


def get_pricing(model: str) -> dict[str, float]:
    """Get pricing for a model, falling back to its family, then to default."""
    if model in MODEL_PRICING:
        return MODEL_PRICING[model]
    lowered = model.lower()
    for family, pricing in FAMILY_PRICING.items():
        if family in lowered:
            return pricing
    return DEFAULT_PRICING


def estimate_cost(
    model: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    cache_read_tokens: int = 0,
    cache_creation_tokens: int = 0,
) -> dict[str, float]:
    """Estimate cost for token usage.

    Returns:
        Dict with input_cost, output_cost, cache_read_cost, cache_creation_cost, total_cost.
    """
    if model == SYNTHETIC_MODEL:
        return dict.fromkeys(
            ("input_cost", "output_cost", "cache_read_cost", "cache_creation_cost", "total_cost"),
            0.0,
        )
    pricing = get_pricing(model)
    input_cost = (input_tokens / 1_000_000) * pricing["input"]
    output_cost = (output_tokens / 1_000_000) * pricing["output"]
    cache_read_cost = (cache_read_tokens / 1_000_000) * pricing["cache_read"]
    cache_creation_cost = (cache_creation_tokens / 1_000_000) * pricing["cache_creation"]

    return {
        "input_cost": input_cost,
        "output_cost": output_cost,
        "cache_read_cost": cache_read_cost,
        "cache_creation_cost": cache_creation_cost,
        "total_cost": input_cost + output_cost + cache_read_cost + cache_creation_cost,
    }


def _calculated_cost(record: UsageRecord) -> float:
    if record.message.model is None:
        return 0.0
    usage = record.message.usage
    return estimate_cost(
        model=record.message.model,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        cache_read_tokens=usage.cache_read_input_tokens,
        cache_creation_tokens=usage.cache_creation_input_tokens,
    )["total_cost"]


def cost_for_record(record: UsageRecord, mode: str = "auto") -> float | None:
    """Resolve the cost of one usage record.

    Args:
        mode: 'display' uses the logged costUSD only (None when absent),
            'calculate' always prices tokens, 'auto' prefers the logged value
            and prices tokens otherwise.
    """
    match mode:
        case "display":
            return record.cost_usd
        case "calculate":
            return _calculated_cost(record)
        case _:
            if record.cost_usd is not None:
                return record.cost_usd
            return _calculated_cost(record)
