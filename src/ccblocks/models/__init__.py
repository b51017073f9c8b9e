"""Pydantic models for ccblocks."""

from ccblocks.models.blocks import (
    GAP_ID_PREFIX,
    Block,
    BurnRate,
    GapBlock,
    PeriodBurnRates,
    ProjectedUsage,
    SessionBlock,
    TokenRates,
)
from ccblocks.models.history import (
    ModelBreakdown,
    ModelHistory,
    PerModelBreakdown,
    PerModelHistoricalValues,
)
from ccblocks.models.monitor import BlockSnapshot, LiveMonitorConfig, WatchSummary
from ccblocks.models.usage import TokenCounts, UsageEntry

__all__ = [
    "Block",
    "BlockSnapshot",
    "BurnRate",
    "GapBlock",
    "LiveMonitorConfig",
    "ModelBreakdown",
    "ModelHistory",
    "PerModelBreakdown",
    "PerModelHistoricalValues",
    "PeriodBurnRates",
    "ProjectedUsage",
    "SessionBlock",
    "TokenCounts",
    "TokenRates",
    "UsageEntry",
    "WatchSummary",
    "GAP_ID_PREFIX",
]
