"""
Per-recipient notification preferences.
"""

from datetime import time
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from jobmatch.schemas.base import CustomBaseModel

DEFAULT_MAX_DISTANCE_KM = 10.0


def in_quiet_hours(start: time, end: time, now: time) -> bool:
    """
    Whether ``now`` falls inside the [start, end) window.

    A window whose start is later than its end wraps midnight, so
    22:00-06:00 covers 23:30 and 02:00 but not 12:00.
    """
    now = now.replace(second=0, microsecond=0, tzinfo=None)
    start = start.replace(tzinfo=None)
    end = end.replace(tzinfo=None)
    if start > end:
        return now >= start or now < end
    return start <= now < end


class NotificationFrequency(str, Enum):
    INSTANT = "instant"
    BATCHED = "batched"


class QuietHours(CustomBaseModel):
    start: time = Field(..., description="Local start time, e.g. 22:00")
    end: time = Field(..., description="Local end time, e.g. 06:00")

    def contains(self, now: time) -> bool:
        return in_quiet_hours(self.start, self.end, now)


class NotificationPreference(CustomBaseModel):
    alerts_enabled: bool = True
    email_enabled: bool = True
    max_distance_km: float = Field(DEFAULT_MAX_DISTANCE_KM, gt=0.0)
    min_payment: Optional[float] = Field(None, ge=0.0)
    categories: List[str] = Field(
        default_factory=list, description="Allowed categories; empty means all"
    )
    quiet_hours: Optional[QuietHours] = None
    frequency: NotificationFrequency = NotificationFrequency.INSTANT

    @field_validator("max_distance_km", mode="before")
    @classmethod
    def _default_distance(cls, value):
        return DEFAULT_MAX_DISTANCE_KM if value is None else value

    @field_validator("categories", mode="before")
    @classmethod
    def _none_is_all(cls, value):
        return [] if value is None else value

    @field_validator("frequency", mode="before")
    @classmethod
    def _lower_frequency(cls, value):
        if value is None:
            return NotificationFrequency.INSTANT
        return value.lower() if isinstance(value, str) else value

    def allows_category(self, category: Optional[str]) -> bool:
        if not self.categories:
            return True
        if category is None:
            return False
        wanted = category.strip().lower()
        return any(allowed.strip().lower() == wanted for allowed in self.categories)

    def suppresses_instant_at(self, now: time) -> bool:
        return (
            self.frequency == NotificationFrequency.INSTANT
            and self.quiet_hours is not None
            and self.quiet_hours.contains(now)
        )
