"""
API routes for scoring and ranking.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from jobmatch.api.dependencies import get_repository
from jobmatch.core.exceptions import InvalidQueryError
from jobmatch.core.metrics import TimingContext
from jobmatch.schemas.matching import (
    MatchResult,
    RankCandidatesRequest,
    RankPostingsRequest,
    SkillSearchResponse,
)
from jobmatch.services.matching.selector import (
    rank_candidates_for_query,
    rank_queries_for_candidate,
)
from jobmatch.services.matching.skill_search import parse_skill_query, search_by_skill_keywords
from jobmatch.services.repository.base import ProfileJobRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/matching", tags=["matching"])


@router.post("/rank-candidates", response_model=List[MatchResult])
async def rank_candidates(request: RankCandidatesRequest):
    """
    Rank candidates for one job query.

    Returns:
        Results sorted by match score, highest first
    """
    logger.info(
        f"Ranking {len(request.candidates)} candidates for {request.query.subject_id}"
    )
    async with TimingContext("rank_candidates"):
        return rank_candidates_for_query(
            request.query, request.candidates, request.limit, request.min_score
        )


@router.post("/rank-postings", response_model=List[MatchResult])
async def rank_postings(request: RankPostingsRequest):
    """Rank job queries for one candidate."""
    logger.info(f"Ranking {len(request.queries)} postings for {request.candidate.id}")
    async with TimingContext("rank_postings"):
        return rank_queries_for_candidate(
            request.candidate, request.queries, request.limit, request.min_score
        )


@router.get("/search", response_model=SkillSearchResponse)
async def search_by_skills(
    skills: str = Query(..., description="Comma-separated skill keywords"),
    location: Optional[str] = Query(
        None, description="province[,district[,city]]"
    ),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Profiles per page"),
    repository: ProfileJobRepository = Depends(get_repository),
):
    """
    Search approved profiles by skill keywords.

    A page of profiles is read from the store (optionally narrowed by
    location) and then filtered to those holding at least one keyword.
    """
    if not parse_skill_query(skills):
        raise InvalidQueryError("Skills parameter is required")

    parts = [part.strip() or None for part in (location or "").split(",")]
    parts += [None] * (3 - len(parts))
    province, district, city = parts[:3]

    recipients = await repository.list_candidates(
        limit=limit,
        offset=(page - 1) * limit,
        province=province,
        district=district,
        city=city,
    )
    hits = search_by_skill_keywords(skills, [r.profile for r in recipients])
    return SkillSearchResponse(data=hits, page=page, limit=limit, count=len(hits))
