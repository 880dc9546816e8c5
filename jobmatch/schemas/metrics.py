"""
Schemas for the round-timing metrics endpoints.

Durations are recorded per dispatch round (``dispatch_<trigger>``) and per
ranking pass (``rank_candidates``, ``rank_postings``).
"""

from typing import Dict

from pydantic import Field

from jobmatch.schemas.base import CustomBaseModel


class TimingStats(CustomBaseModel):
    """Duration statistics over the retained samples of one metric."""

    count: int = Field(description="Samples retained for this metric")
    avg: float = Field(description="Mean duration in milliseconds")
    min: float = Field(description="Fastest recorded duration in milliseconds")
    max: float = Field(description="Slowest recorded duration in milliseconds")


class MetricsResponse(CustomBaseModel):
    timing: Dict[str, TimingStats] = Field(
        description="Stats keyed by metric name, e.g. dispatch_new_posting"
    )


class MetricDetailResponse(CustomBaseModel):
    metric_name: str
    stats: TimingStats


class DispatchTimingSummary(CustomBaseModel):
    """Average round duration for one dispatch trigger."""

    avg_ms: float = Field(0.0, description="Mean round duration in milliseconds")
    count: int = Field(0, description="Rounds measured")

    @classmethod
    def from_stats(cls, stats: Dict[str, float]) -> "DispatchTimingSummary":
        return cls(avg_ms=stats.get("avg", 0.0), count=int(stats.get("count", 0)))


class MetricsResetResponse(CustomBaseModel):
    deleted_keys: int = Field(description="Redis keys removed")
    pattern: str
