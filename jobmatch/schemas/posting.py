"""
Schemas for postings as read from the profile/job repository.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import Field

from jobmatch.schemas.base import CustomBaseModel
from jobmatch.schemas.common import Location, SkillMap
from jobmatch.schemas.matching import MatchQuery


def _join_address(*parts: Optional[str]) -> str:
    return ", ".join(part for part in parts if part)


class Posting(CustomBaseModel):
    """A standard job posting."""

    id: str
    title: str
    company_name: Optional[str] = None
    job_type: Optional[str] = Field(None, description="e.g. FULL_TIME, PART_TIME")
    required_skills: SkillMap = Field(default_factory=SkillMap)
    location: Location = Field(default_factory=Location)
    province: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    is_remote: bool = False
    min_experience_years: Optional[float] = Field(None, ge=0.0)
    is_active: bool = True
    is_verified: bool = False
    expires_at: Optional[datetime] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None

    @property
    def address(self) -> str:
        return _join_address(self.city, self.district, self.province)

    def is_open(self, now: Optional[datetime] = None) -> bool:
        """Active, verified and not yet expired."""
        if not (self.is_active and self.is_verified):
            return False
        if self.expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at > now

    def to_match_query(self) -> MatchQuery:
        return MatchQuery(
            subject_id=self.id,
            required_skills=self.required_skills,
            location=self.location,
            is_remote=self.is_remote,
            min_experience_years=self.min_experience_years,
            province=self.province,
            district=self.district,
            city=self.city,
        )


class UrgentPosting(CustomBaseModel):
    """A time-critical posting announced to nearby users."""

    id: str
    poster_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    payment_amount: float = Field(..., ge=0.0)
    payment_type: str = Field("FIXED", description="e.g. FIXED, HOURLY, DAILY")
    urgency_level: str = Field("HIGH", description="e.g. HIGH, CRITICAL")
    location: Location = Field(default_factory=Location)
    province: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    start_time: Optional[datetime] = None
    contact_phone: Optional[str] = None
    poster_name: Optional[str] = None
    required_skills: List[str] = Field(default_factory=list)

    @property
    def address(self) -> str:
        return _join_address(self.city, self.district, self.province)
