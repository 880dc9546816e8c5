"""
Candidate selector: ranked, thresholded and de-duplicated shortlists.
"""

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Set

from jobmatch.schemas.matching import CandidateProfile, MatchQuery, MatchResult
from jobmatch.services.matching.scorer import MatchWeights, score_candidate
from jobmatch.services.repository.base import ProfileJobRepository

logger = logging.getLogger(__name__)


def _by_candidate(result: MatchResult) -> str:
    return result.subject_id


def _by_query(result: MatchResult) -> str:
    return result.query_id


def _rank(
    results: Iterable[MatchResult],
    tie_key: Callable[[MatchResult], str],
    limit: Optional[int],
    min_score: float,
) -> List[MatchResult]:
    kept = [r for r in results if r.match_score >= min_score]
    # Highest score first; equal scores fall back to id order so runs are reproducible
    kept.sort(key=lambda r: (-r.match_score, tie_key(r)))
    if limit is not None:
        kept = kept[: max(0, limit)]
    return kept


def rank_candidates_for_query(
    query: MatchQuery,
    candidates: Sequence[CandidateProfile],
    limit: Optional[int] = None,
    min_score: float = 0.0,
    weights: Optional[MatchWeights] = None,
) -> List[MatchResult]:
    """
    Score every candidate against one query.

    Args:
        query: Job-side inputs (must declare at least one required skill)
        candidates: Profiles to score
        limit: Maximum results to return (None for all)
        min_score: Results scoring below this are dropped

    Returns:
        Results sorted by score descending, ties broken by candidate id
    """
    results = [score_candidate(query, candidate, weights) for candidate in candidates]
    return _rank(results, _by_candidate, limit, min_score)


def rank_queries_for_candidate(
    candidate: CandidateProfile,
    queries: Sequence[MatchQuery],
    limit: Optional[int] = None,
    min_score: float = 0.0,
    weights: Optional[MatchWeights] = None,
) -> List[MatchResult]:
    """
    Score one candidate against many queries ("jobs for this user").

    Returns:
        Results sorted by score descending, ties broken by posting id
    """
    results = [score_candidate(query, candidate, weights) for query in queries]
    return _rank(results, _by_query, limit, min_score)


def exclude_applied(
    results: Iterable[MatchResult],
    applied_ids: Set[str],
    key: Callable[[MatchResult], str] = _by_candidate,
) -> List[MatchResult]:
    return [r for r in results if key(r) not in applied_ids]


async def build_candidate_shortlist(
    repository: ProfileJobRepository,
    query: MatchQuery,
    candidates: Sequence[CandidateProfile],
    min_score: float,
    limit: Optional[int] = None,
    weights: Optional[MatchWeights] = None,
) -> List[MatchResult]:
    """
    Shortlist of candidates to notify about one posting.

    Candidates who already applied to the posting are removed before the
    shortlist is truncated.
    """
    ranked = rank_candidates_for_query(query, candidates, None, min_score, weights)
    if not ranked:
        return []

    applied = await repository.applied_user_ids(
        query.subject_id, [r.subject_id for r in ranked]
    )
    shortlist = exclude_applied(ranked, applied, _by_candidate)
    if applied:
        logger.debug(
            "Dropped %d candidates who already applied to %s",
            len(ranked) - len(shortlist),
            query.subject_id,
        )
    return shortlist if limit is None else shortlist[:limit]


async def build_posting_shortlist(
    repository: ProfileJobRepository,
    candidate: CandidateProfile,
    queries: Sequence[MatchQuery],
    min_score: float,
    limit: Optional[int] = None,
    weights: Optional[MatchWeights] = None,
) -> List[MatchResult]:
    """Shortlist of postings to recommend to one candidate."""
    ranked = rank_queries_for_candidate(candidate, queries, None, min_score, weights)
    if not ranked:
        return []

    applied = await repository.applied_posting_ids(
        candidate.id, [r.query_id for r in ranked]
    )
    shortlist = exclude_applied(ranked, applied, _by_query)
    return shortlist if limit is None else shortlist[:limit]
