"""Models for the live monitor and watch loops."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field

from ccblocks.config import DEFAULT_REFRESH_INTERVAL_SECONDS, DEFAULT_SESSION_DURATION_HOURS


class LiveMonitorConfig(BaseModel):
    """Settings for one live monitoring run."""

    model_config = ConfigDict(frozen=True)

    window: timedelta = timedelta(hours=DEFAULT_SESSION_DURATION_HOURS)
    refresh_interval: float = Field(default=DEFAULT_REFRESH_INTERVAL_SECONDS, gt=0)
    token_limit: int | None = None
    cost_limit: float | None = None
    models: tuple[str, ...] | None = None

    @property
    def using_cost_limit(self) -> bool:
        return self.cost_limit is not None and self.cost_limit > 0

    @property
    def using_token_limit(self) -> bool:
        return self.token_limit is not None and self.token_limit > 0


class BlockSnapshot(BaseModel):
    """The observed state of the active block, used for change detection."""

    model_config = ConfigDict(frozen=True)

    token_count: int
    cost_usd: float
    burn_rate: float | None = None


class WatchSummary(BaseModel):
    """What was consumed while a watch session ran."""

    model_config = ConfigDict(frozen=True)

    duration: timedelta = timedelta()
    tokens_used: int = 0
    cost_used: float = 0.0
