"""
Schemas for recipients, outgoing messages and dispatch reports.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from jobmatch.schemas.base import CustomBaseModel
from jobmatch.schemas.matching import CandidateProfile
from jobmatch.schemas.preference import NotificationPreference


class Recipient(CustomBaseModel):
    """A user who may receive notifications, with the profile used for scoring."""

    user_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    profile: CandidateProfile
    preferences: NotificationPreference = Field(
        default_factory=NotificationPreference
    )
    is_active: bool = True
    is_verified: bool = True

    @property
    def is_reachable(self) -> bool:
        """Cheap eligibility gate applied before any scoring."""
        return self.is_active and self.is_verified and self.preferences.alerts_enabled

    @property
    def wants_email(self) -> bool:
        return bool(self.email) and self.preferences.email_enabled


class PushType(str, Enum):
    JOB_RECOMMENDATION = "JOB_RECOMMENDATION"
    SKILL_RECOMMENDATION = "SKILL_RECOMMENDATION"
    NEARBY_JOB_RECOMMENDATION = "NEARBY_JOB_RECOMMENDATION"
    URGENT_JOB_NEARBY = "URGENT_JOB_NEARBY"


class PushMessage(CustomBaseModel):
    type: PushType
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


class EmailTemplate(str, Enum):
    JOB_RECOMMENDATION = "job_recommendation"
    SKILL_RECOMMENDATION = "skill_recommendation"
    NEARBY_JOB_RECOMMENDATION = "nearby_job_recommendation"
    URGENT_JOB = "urgent_job"


class EmailMessage(CustomBaseModel):
    template: EmailTemplate
    subject: str
    context: Dict[str, Any] = Field(default_factory=dict)


class RecommendedPosting(CustomBaseModel):
    """A posting as presented to a recipient."""

    id: str
    title: str
    company_name: Optional[str] = None
    location: str = ""
    match_score: float
    job_type: Optional[str] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    distance_km: Optional[float] = None


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class DeliveryOutcome(CustomBaseModel):
    """What happened for one recipient in one round."""

    recipient_id: str
    push: DeliveryStatus = DeliveryStatus.SKIPPED
    email: DeliveryStatus = DeliveryStatus.SKIPPED
    errors: List[str] = Field(default_factory=list)


class DispatchStatus(str, Enum):
    COMPLETED = "completed"
    NOOP = "noop"


class DispatchReport(CustomBaseModel):
    """
    Result of one dispatch round.

    A round either completed a fan-out or was a no-op (nothing eligible,
    nothing above threshold). Per-recipient transport failures only show
    up in the counts and outcomes.
    """

    trigger: str
    subject_id: str
    status: DispatchStatus = DispatchStatus.COMPLETED
    reason: Optional[str] = None
    eligible_count: int = 0
    shortlisted_count: int = 0
    push_attempted: int = 0
    push_succeeded: int = 0
    push_failed: int = 0
    email_attempted: int = 0
    email_succeeded: int = 0
    email_failed: int = 0
    posting_ids: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    outcomes: List[DeliveryOutcome] = Field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def notified_count(self) -> int:
        return len(self.outcomes)

    def record(self, outcomes: List[DeliveryOutcome]) -> "DispatchReport":
        for outcome in outcomes:
            self.outcomes.append(outcome)
            if outcome.push != DeliveryStatus.SKIPPED:
                self.push_attempted += 1
                if outcome.push == DeliveryStatus.SENT:
                    self.push_succeeded += 1
                else:
                    self.push_failed += 1
            if outcome.email != DeliveryStatus.SKIPPED:
                self.email_attempted += 1
                if outcome.email == DeliveryStatus.SENT:
                    self.email_succeeded += 1
                else:
                    self.email_failed += 1
        return self


class DigestReport(CustomBaseModel):
    """Aggregate of a periodic sweep over many users."""

    total_users: int = 0
    users_notified: int = 0
    users_failed: int = 0
    total_postings: int = 0
    duration_ms: float = 0.0


class DispatchAccepted(CustomBaseModel):
    """Returned when a dispatch round has been queued."""

    task_id: str
    trigger: str
    status: str = "queued"
