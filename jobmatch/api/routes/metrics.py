"""
API routes for performance metrics endpoints.
"""

import logging
from typing import Dict

from fastapi import APIRouter, HTTPException, Query

from jobmatch.core.metrics import metrics_tracker
from jobmatch.schemas.metrics import (
    DispatchTimingSummary,
    MetricDetailResponse,
    MetricsResetResponse,
    MetricsResponse,
    TimingStats,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/metrics", tags=["metrics"])

DISPATCH_PREFIX = "dispatch_"


@router.get("", response_model=MetricsResponse)
async def get_all_metrics():
    """
    Get all performance metrics.

    Returns timing statistics for every recorded metric, e.g.
    dispatch_new_posting, dispatch_urgent_proximity, rank_candidates.
    """
    metrics = await metrics_tracker.get_all_metrics()
    timing_stats = {
        name: TimingStats(**stats) for name, stats in metrics.get("timing", {}).items()
    }
    return MetricsResponse(timing=timing_stats)


@router.get("/timing/{metric_name}", response_model=MetricDetailResponse)
async def get_timing_metric(metric_name: str):
    """
    Get timing statistics for a specific metric.

    Args:
        metric_name: Name of the metric (e.g., "dispatch_new_posting")
    """
    stats = await metrics_tracker.get_timing_stats(metric_name)

    if stats.get("count", 0) == 0:
        raise HTTPException(
            status_code=404, detail=f"No data found for metric: {metric_name}"
        )

    return MetricDetailResponse(metric_name=metric_name, stats=TimingStats(**stats))


@router.get("/summary", response_model=Dict[str, DispatchTimingSummary])
async def get_metrics_summary():
    """
    Average duration and count of each dispatch round type, keyed by trigger
    (e.g. new_posting, nearby_digest).
    """
    metrics = await metrics_tracker.get_all_metrics()
    return {
        name[len(DISPATCH_PREFIX):]: DispatchTimingSummary.from_stats(stats)
        for name, stats in metrics.get("timing", {}).items()
        if name.startswith(DISPATCH_PREFIX)
    }


@router.delete("", response_model=MetricsResetResponse)
async def reset_metrics(
    pattern: str = Query(
        default="metrics:*",
        description="Key pattern to reset (use 'metrics:*' for all metrics)",
    )
):
    """
    Reset metrics matching the specified pattern.

    WARNING: This will delete all matching metrics data.
    """
    if not pattern.startswith("metrics:"):
        raise HTTPException(status_code=400, detail="Pattern must start with 'metrics:'")
    deleted = await metrics_tracker.reset_metrics(pattern)
    logger.info(f"Reset {deleted} metrics keys matching pattern: {pattern}")
    return MetricsResetResponse(deleted_keys=deleted, pattern=pattern)
