"""
Attribute scorer: how well one candidate fits one job query.

The overall score is a weighted sum of three components, each a fraction
in [0, 1], scaled to [0, 100]:

- skills: matched required skills / required skills
- location: 1.0 for remote postings, for aligned province/district/city
  strings, or for coordinates within ``LOCATION_MATCH_RADIUS_KM``;
  0.0 otherwise (including unknown locations)
- experience: 1.0 when the candidate's summed years meet the minimum,
  otherwise years / minimum

Default weights are skill 0.6, location 0.2, experience 0.2, so a full
skill match on its own reaches 60 and clears the default notification
threshold of 50.
"""

import logging
from typing import List, Optional, Tuple

from pydantic import ConfigDict, Field, model_validator

from jobmatch.config import settings
from jobmatch.core.exceptions import InvalidQueryError
from jobmatch.schemas.base import CustomBaseModel
from jobmatch.schemas.common import SkillMap
from jobmatch.schemas.matching import (
    CandidateProfile,
    MatchBreakdown,
    MatchQuery,
    MatchResult,
)
from jobmatch.services.geo.location import distance_km, is_valid_location

logger = logging.getLogger(__name__)


class MatchWeights(CustomBaseModel):
    """Relative importance of each scoring component."""

    model_config = ConfigDict(frozen=True)

    skill: float = Field(0.6, ge=0.0, le=1.0)
    location: float = Field(0.2, ge=0.0, le=1.0)
    experience: float = Field(0.2, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _skill_dominates(self):
        total = self.skill + self.location + self.experience
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"match weights must sum to 1.0, got {total:.4f}")
        if self.skill <= max(self.location, self.experience):
            raise ValueError("skill weight must be larger than every other weight")
        return self


def default_weights() -> MatchWeights:
    return MatchWeights(
        skill=settings.MATCH_WEIGHT_SKILL,
        location=settings.MATCH_WEIGHT_LOCATION,
        experience=settings.MATCH_WEIGHT_EXPERIENCE,
    )


# Spelling variants that should count as the same skill
SKILL_SYNONYMS = {
    "react": ["react.js", "reactjs", "react-js", "reactjsx"],
    "node.js": ["nodejs", "node", "node-js"],
    "javascript": ["js", "ecmascript", "javascript es6"],
    "typescript": ["ts", "typescript es6"],
    "python": ["py", "python3", "python 3"],
    "java": ["java 8", "java 11", "java 17"],
    "c++": ["cpp", "c plus plus"],
    "c#": ["csharp", "c-sharp", "dotnet"],
    ".net": ["dotnet", "asp.net"],
    "html": ["html5", "html 5"],
    "css": ["css3", "css 3", "scss", "sass"],
    "sql": ["mysql", "postgresql", "postgres", "sql server"],
    "mongodb": ["mongo", "mongo db"],
    "express": ["express.js", "expressjs"],
    "vue": ["vue.js", "vuejs", "vue 3"],
    "angular": ["angularjs", "angular 2", "angular.js"],
    "docker": ["docker container", "dockerfile"],
    "kubernetes": ["k8s", "kube"],
    "aws": ["amazon web services", "amazon aws"],
    "azure": ["microsoft azure"],
    "gcp": ["google cloud", "google cloud platform"],
}


def normalize_skill_name(skill: str) -> str:
    """Lower-case, trim and map known variants to their canonical name."""
    normalized = skill.strip().lower()
    for canonical, variants in SKILL_SYNONYMS.items():
        if normalized == canonical or normalized in variants:
            return canonical
    return normalized


def skills_match(first: str, second: str) -> bool:
    """
    Case-insensitive skill comparison.

    Matches on canonical names, listed synonyms, or substring
    containment in either direction ("react" ~ "react native").
    """
    a = normalize_skill_name(first)
    b = normalize_skill_name(second)
    if not a or not b:
        return False
    if a == b:
        return True
    if b in SKILL_SYNONYMS.get(a, []) or a in SKILL_SYNONYMS.get(b, []):
        return True
    return a in b or b in a


def calculate_skills_match(
    required: SkillMap, available: Optional[SkillMap]
) -> Tuple[float, List[str], List[str]]:
    """
    Calculate skills match between required and available skills.

    Returns:
        Tuple of (score, matched_skills, missing_skills); names are the
        required skill names in their original order
    """
    required_names = required.names()
    if not required_names:
        return 0.0, [], []

    available_names = available.names() if available else []
    matched: List[str] = []
    missing: List[str] = []
    for skill in required_names:
        if any(skills_match(skill, candidate_skill) for candidate_skill in available_names):
            matched.append(skill)
        else:
            missing.append(skill)

    return len(matched) / len(required_names), matched, missing


def _text_location_aligned(query: MatchQuery, candidate: CandidateProfile) -> bool:
    compared = 0
    for field in ("province", "district", "city"):
        wanted = getattr(query, field)
        actual = getattr(candidate, field)
        if not wanted or not actual:
            continue
        compared += 1
        if wanted.strip().lower() != actual.strip().lower():
            return False
    return compared > 0


def calculate_location_match(
    query: MatchQuery,
    candidate: CandidateProfile,
    radius_km: Optional[float] = None,
) -> Tuple[float, bool, Optional[float]]:
    """
    Returns:
        Tuple of (score, matched, distance_km). Distance is only set
        when both sides carry valid coordinates.
    """
    radius_km = settings.LOCATION_MATCH_RADIUS_KM if radius_km is None else radius_km

    distance = None
    if is_valid_location(query.location) and is_valid_location(candidate.location):
        distance = distance_km(query.location, candidate.location)

    if query.is_remote:
        return 1.0, True, distance

    matched = _text_location_aligned(query, candidate) or (
        distance is not None and distance <= radius_km
    )
    return (1.0 if matched else 0.0), matched, distance


def calculate_experience_match(
    candidate: CandidateProfile, min_years: Optional[float]
) -> Tuple[float, bool]:
    """
    Returns:
        Tuple of (score, meets_minimum)
    """
    if not min_years or min_years <= 0:
        return 1.0, True

    years = candidate.total_experience_years
    if years >= min_years:
        return 1.0, True
    return max(0.0, years / min_years), False


def score_candidate(
    query: MatchQuery,
    candidate: CandidateProfile,
    weights: Optional[MatchWeights] = None,
    location_radius_km: Optional[float] = None,
) -> MatchResult:
    """
    Score one candidate against one query.

    Raises:
        InvalidQueryError: if the query declares no required skills
    """
    if not query.required_skills:
        raise InvalidQueryError(
            f"Query {query.subject_id} must declare at least one required skill"
        )
    weights = weights or default_weights()

    skill_score, matched_skills, missing_skills = calculate_skills_match(
        query.required_skills, candidate.skills
    )
    location_score, location_match, distance = calculate_location_match(
        query, candidate, location_radius_km
    )
    experience_score, experience_match = calculate_experience_match(
        candidate, query.min_experience_years
    )

    overall = 100.0 * (
        weights.skill * skill_score
        + weights.location * location_score
        + weights.experience * experience_score
    )
    overall = round(min(100.0, max(0.0, overall)), 2)

    return MatchResult(
        subject_id=candidate.id,
        query_id=query.subject_id,
        match_score=overall,
        skill_score=skill_score,
        location_score=location_score,
        experience_score=experience_score,
        breakdown=MatchBreakdown(
            matched_skills=tuple(matched_skills),
            missing_skills=tuple(missing_skills),
            location_match=location_match,
            experience_match=experience_match,
            distance_km=distance,
        ),
    )
