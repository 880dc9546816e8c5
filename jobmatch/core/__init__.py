from .metrics import (
    metrics_tracker,
    TimingContext,
    MetricsTracker,
)

__all__ = [
    "metrics_tracker",
    "TimingContext",
    "MetricsTracker",
]
