"""
Schemas for the scorer inputs and outputs.
"""

from typing import List, Optional, Tuple

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from jobmatch.schemas.base import CustomBaseModel
from jobmatch.schemas.common import Location, SkillMap


class ExperienceRecord(CustomBaseModel):
    """One entry of a candidate's work history."""

    title: Optional[str] = Field(None, description="e.g. Frontend Developer")
    years: float = Field(
        0.0,
        ge=0.0,
        validation_alias=AliasChoices("years", "duration"),
        description="Length of the engagement in years",
    )

    @field_validator("years", mode="before")
    @classmethod
    def _missing_duration_is_zero(cls, value):
        return 0.0 if value is None else value


class MatchQuery(CustomBaseModel):
    """Job-side inputs to scoring."""

    subject_id: str = Field(..., description="Posting identifier")
    required_skills: SkillMap = Field(default_factory=SkillMap)
    location: Location = Field(default_factory=Location)
    is_remote: bool = False
    min_experience_years: Optional[float] = Field(None, ge=0.0)
    province: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None


class CandidateProfile(CustomBaseModel):
    """User-side inputs to scoring."""

    id: str = Field(..., description="User identifier")
    skills: SkillMap = Field(default_factory=SkillMap)
    location: Location = Field(default_factory=Location)
    experience: List[ExperienceRecord] = Field(default_factory=list)
    province: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None

    @field_validator("experience", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value

    @property
    def total_experience_years(self) -> float:
        return sum(record.years for record in self.experience)


class MatchBreakdown(CustomBaseModel):
    model_config = ConfigDict(frozen=True)

    matched_skills: Tuple[str, ...] = ()
    missing_skills: Tuple[str, ...] = ()
    location_match: bool = False
    experience_match: bool = False
    distance_km: Optional[float] = Field(
        None, description="Set when both sides had valid coordinates"
    )


class MatchResult(CustomBaseModel):
    """
    Score of one (query, candidate) pair.

    ``subject_id`` is the candidate that was scored and ``query_id`` the
    posting it was scored against. Component scores are fractions in
    [0, 1]; ``match_score`` is their weighted sum scaled to [0, 100].
    """

    model_config = ConfigDict(frozen=True)

    subject_id: str
    query_id: str
    match_score: float = Field(..., ge=0.0, le=100.0)
    skill_score: float = Field(..., ge=0.0, le=1.0)
    location_score: float = Field(..., ge=0.0, le=1.0)
    experience_score: float = Field(..., ge=0.0, le=1.0)
    breakdown: MatchBreakdown


class SkillSearchHit(CustomBaseModel):
    candidate_id: str
    matched_skills: List[str] = Field(default_factory=list)
    match_count: int = 0
    match_percentage: float = Field(..., ge=0.0, le=100.0)


class RankCandidatesRequest(CustomBaseModel):
    query: MatchQuery
    candidates: List[CandidateProfile]
    limit: Optional[int] = Field(None, ge=1, le=500)
    min_score: float = Field(0.0, ge=0.0, le=100.0)


class RankPostingsRequest(CustomBaseModel):
    candidate: CandidateProfile
    queries: List[MatchQuery]
    limit: Optional[int] = Field(None, ge=1, le=500)
    min_score: float = Field(0.0, ge=0.0, le=100.0)


class SkillSearchResponse(CustomBaseModel):
    data: List[SkillSearchHit] = Field(default_factory=list)
    page: int
    limit: int
    count: int = Field(
        0, description="Hits on this page; profiles are filtered after paging"
    )
