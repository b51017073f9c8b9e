"""Cross-block history models used for adaptive limits."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ModelHistory(BaseModel):
    """Completed-block totals for one model, co-sorted by cost descending.

    Index ``i`` of every tuple describes the same source block.
    """

    model_config = ConfigDict(frozen=True)

    cost_usd: tuple[float, ...] = ()
    total_tokens: tuple[int, ...] = ()
    entry_counts: tuple[int, ...] = ()


type PerModelHistoricalValues = dict[str, ModelHistory]


class ModelBreakdown(BaseModel):
    """Cost, token and entry totals for one model."""

    model_config = ConfigDict(frozen=True)

    cost_usd: float = 0.0
    total_tokens: int = 0
    entries: int = 0


type PerModelBreakdown = dict[str, ModelBreakdown]
