"""
Performance metrics tracking system.

Tracks:
- Dispatch round duration per trigger (dispatch_<trigger>)
- Scoring pass duration
- Repository read latency for the heavier pulls
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis.asyncio as redis

from jobmatch.config import settings

logger = logging.getLogger(__name__)

EMPTY_STATS = {"count": 0, "avg": 0.0, "min": 0.0, "max": 0.0}


class MetricsTracker:
    """
    Performance metrics tracker using Redis for storage.

    Stores timing metrics in Redis sorted sets. When disabled every call is
    a no-op, and any failure is logged without reaching the caller. The
    client belongs to the event loop that created it; call ``close()``
    before that loop ends.
    """

    def __init__(self, redis_url: Optional[str] = None, enabled: Optional[bool] = None):
        self._redis_url = redis_url or settings.REDIS_URL
        self.enabled = settings.METRICS_ENABLED if enabled is None else enabled
        self._client: Optional[redis.Redis] = None

    @property
    async def client(self) -> redis.Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = await redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def record_timing(self, metric_name: str, duration_ms: float) -> None:
        """
        Record timing metric.

        Args:
            metric_name: Name of the metric (e.g., "dispatch_new_posting")
            duration_ms: Duration in milliseconds
        """
        if not self.enabled:
            return
        try:
            client = await self.client
            timestamp = datetime.now(timezone.utc).isoformat()
            key = f"metrics:timing:{metric_name}"

            await client.zadd(key, {f"{timestamp}:{duration_ms}": time.time()})
            # Keep only last 1000 entries
            await client.zremrangebyrank(key, 0, -1001)
            await client.incr(f"metrics:count:{metric_name}")
            await client.incrbyfloat(f"metrics:sum:{metric_name}", duration_ms)

            logger.debug(f"Recorded timing metric {metric_name}: {duration_ms:.2f}ms")

        except Exception as e:
            logger.warning(f"Failed to record timing metric {metric_name}: {e}")

    async def get_timing_stats(self, metric_name: str) -> Dict[str, float]:
        """
        Get timing statistics for a metric.

        Returns:
            Dictionary with count, avg, min, max values
        """
        if not self.enabled:
            return dict(EMPTY_STATS)
        try:
            client = await self.client
            values = await client.zrange(f"metrics:timing:{metric_name}", 0, -1)
        except Exception as e:
            logger.warning(f"Failed to get timing stats for {metric_name}: {e}")
            return dict(EMPTY_STATS)

        # Entries are "<iso timestamp>:<duration>"
        durations = []
        for v in values:
            try:
                durations.append(float(v.rsplit(":", 1)[-1]))
            except ValueError:
                continue

        if not durations:
            return dict(EMPTY_STATS)

        return {
            "count": len(durations),
            "avg": round(sum(durations) / len(durations), 2),
            "min": round(min(durations), 2),
            "max": round(max(durations), 2),
        }

    async def get_all_metrics(self) -> Dict[str, Any]:
        if not self.enabled:
            return {"timing": {}}
        try:
            client = await self.client
            timing_keys = await client.keys("metrics:timing:*")
        except Exception as e:
            logger.warning(f"Failed to get all metrics: {e}")
            return {"timing": {}}

        result: Dict[str, Any] = {"timing": {}}
        for key in timing_keys:
            metric_name = key.replace("metrics:timing:", "")
            result["timing"][metric_name] = await self.get_timing_stats(metric_name)
        return result

    async def reset_metrics(self, pattern: str = "metrics:*") -> int:
        """
        Reset all metrics matching pattern.

        Returns:
            Number of keys deleted
        """
        if not self.enabled:
            return 0
        try:
            client = await self.client
            keys = await client.keys(pattern)
            if keys:
                deleted = await client.delete(*keys)
                logger.info(f"Reset {deleted} metrics keys")
                return deleted
            return 0
        except Exception as e:
            logger.warning(f"Failed to reset metrics: {e}")
            return 0

    async def close(self) -> None:
        """Close the Redis client and release resources."""
        if self._client is None:
            return

        try:
            await self._client.aclose()
        except Exception as e:
            logger.debug(f"Error closing metrics redis client: {e}")
        finally:
            self._client = None


# Global metrics tracker instance
metrics_tracker = MetricsTracker()


class TimingContext:
    """
    Context manager for tracking timing of code blocks.

    Example:
        async with TimingContext("dispatch_new_posting") as timer:
            report = await round()
        report.duration_ms = timer.duration_ms
    """

    def __init__(self, metric_name: str, tracker: Optional[MetricsTracker] = None):
        self.metric_name = metric_name
        self.tracker = tracker or metrics_tracker
        self.start_time: Optional[float] = None
        self.duration_ms: float = 0.0

    async def __aenter__(self):
        self.start_time = time.perf_counter()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.duration_ms = (time.perf_counter() - self.start_time) * 1000
            await self.tracker.record_timing(self.metric_name, self.duration_ms)
            logger.debug(f"{self.metric_name} completed in {self.duration_ms:.2f}ms")
        return False

    @property
    def elapsed_ms(self) -> float:
        if self.start_time is None:
            return 0.0
        return (time.perf_counter() - self.start_time) * 1000
