# Matching services module
from jobmatch.services.matching.scorer import (
    MatchWeights,
    default_weights,
    score_candidate,
)
from jobmatch.services.matching.selector import (
    build_candidate_shortlist,
    build_posting_shortlist,
    rank_candidates_for_query,
    rank_queries_for_candidate,
)
from jobmatch.services.matching.skill_search import search_by_skill_keywords
