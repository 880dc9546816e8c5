"""
Keyword search over candidate skills.

A lighter variant of the scorer used by the talent search screen: no
weights, no location, only the share of queried skills a candidate has.
"""

from typing import List, Sequence

from jobmatch.core.exceptions import InvalidQueryError
from jobmatch.schemas.matching import CandidateProfile, SkillSearchHit


def parse_skill_query(skill_query: str) -> List[str]:
    """Split "React, node.js ,SQL" into ["react", "node.js", "sql"]."""
    tokens: List[str] = []
    for raw in (skill_query or "").split(","):
        token = raw.strip().lower()
        if token and token not in tokens:
            tokens.append(token)
    return tokens


def search_by_skill_keywords(
    skill_query: str, candidates: Sequence[CandidateProfile]
) -> List[SkillSearchHit]:
    """
    Rank candidates by the share of queried skills they have.

    Raises:
        InvalidQueryError: if the query holds no skill tokens
    """
    tokens = parse_skill_query(skill_query)
    if not tokens:
        raise InvalidQueryError("Skills parameter is required")

    hits: List[SkillSearchHit] = []
    for candidate in candidates:
        names = [name.lower() for name in candidate.skills.names()]
        matched = [
            token
            for token in tokens
            if any(token in name or name in token for name in names)
        ]
        if not matched:
            continue
        hits.append(
            SkillSearchHit(
                candidate_id=candidate.id,
                matched_skills=matched,
                match_count=len(matched),
                match_percentage=len(matched) / len(tokens) * 100,
            )
        )

    hits.sort(key=lambda hit: (-hit.match_percentage, hit.candidate_id))
    return hits
