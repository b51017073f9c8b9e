"""Session block models."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict

from ccblocks.models.usage import TokenCounts, UsageEntry

GAP_ID_PREFIX = "gap-"


class SessionBlock(BaseModel):
    """A fixed-duration billing window holding at least one usage entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    start_time: datetime
    end_time: datetime
    actual_end_time: datetime
    is_active: bool = False
    is_gap: Literal[False] = False
    entries: tuple[UsageEntry, ...]
    token_counts: TokenCounts
    cost_usd: float = 0.0
    models: tuple[str, ...] = ()

    @property
    def total_tokens(self) -> int:
        return self.token_counts.total_tokens

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


class GapBlock(BaseModel):
    """A synthetic block covering inactivity longer than one window."""

    model_config = ConfigDict(frozen=True)

    id: str
    start_time: datetime
    end_time: datetime
    is_active: Literal[False] = False
    is_gap: Literal[True] = True

    @property
    def actual_end_time(self) -> None:
        return None

    @property
    def entries(self) -> tuple[UsageEntry, ...]:
        return ()

    @property
    def token_counts(self) -> TokenCounts:
        return TokenCounts()

    @property
    def cost_usd(self) -> float:
        return 0.0

    @property
    def models(self) -> tuple[str, ...]:
        return ()

    @property
    def total_tokens(self) -> int:
        return 0

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


type Block = SessionBlock | GapBlock


class BurnRate(BaseModel):
    """Consumption rate estimated from a block's own entries."""

    model_config = ConfigDict(frozen=True)

    tokens_per_minute: float
    cost_per_hour: float
    # Fraction (0-1) of the block span that saw actual activity; only set
    # when the sparse-usage correction ran.
    activity_density: float | None = None


class ProjectedUsage(BaseModel):
    """Forecast of an active block's totals at the end of its window."""

    model_config = ConfigDict(frozen=True)

    total_tokens: int
    total_cost: float
    remaining_minutes: int


class TokenRates(BaseModel):
    """Per-token-type rates in tokens per minute; None when not computable."""

    model_config = ConfigDict(frozen=True)

    input: float | None = None
    output: float | None = None
    cache_create: float | None = None
    cache_read: float | None = None


class PeriodBurnRates(BaseModel):
    """Token rates over the whole block, the last hour and the last ten minutes."""

    model_config = ConfigDict(frozen=True)

    block: TokenRates
    one_hour: TokenRates
    ten_minutes: TokenRates
