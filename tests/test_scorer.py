import pytest
from pydantic import ValidationError as PydanticValidationError

from jobmatch.core.exceptions import InvalidQueryError
from jobmatch.schemas.common import Location, SkillMap
from jobmatch.schemas.matching import CandidateProfile, MatchQuery
from jobmatch.services.matching.scorer import (
    MatchWeights,
    calculate_experience_match,
    calculate_location_match,
    calculate_skills_match,
    normalize_skill_name,
    score_candidate,
    skills_match,
)
from tests.factories import KATHMANDU, offset_north


def query(**fields) -> MatchQuery:
    fields.setdefault("subject_id", "job-1")
    fields.setdefault("required_skills", {"python": 3, "sql": 2})
    return MatchQuery(**fields)


def candidate(**fields) -> CandidateProfile:
    fields.setdefault("id", "user-1")
    return CandidateProfile(**fields)


@pytest.mark.scenario
def test_remote_react_query_matches_react_js_candidate_without_location():
    result = score_candidate(
        query(required_skills={"react": 3}, is_remote=True),
        candidate(skills={"react.js": 4}),
    )
    assert "react" in result.breakdown.matched_skills
    assert result.breakdown.missing_skills == ()
    assert result.location_score == 1.0
    assert result.breakdown.location_match is True
    assert result.match_score == 100.0


def test_superset_of_required_skills_matches_everything():
    required = {"python": 3, "Django": 2, "sql": 1}
    result = score_candidate(
        query(required_skills=required),
        candidate(skills={"PYTHON": 5, "django": 3, "SQL": 4, "docker": 2}),
    )
    assert list(result.breakdown.matched_skills) == list(required)
    assert result.breakdown.missing_skills == ()
    assert result.skill_score == 1.0


def test_missing_skills_are_reported_in_required_order():
    score, matched, missing = calculate_skills_match(
        SkillMap({"python": 3, "kubernetes": 2, "sql": 1}),
        SkillMap({"postgres": 3, "python3": 2}),
    )
    assert matched == ["python", "sql"]
    assert missing == ["kubernetes"]
    assert score == pytest.approx(2 / 3)


def test_candidate_without_skills_scores_zero_on_skills():
    result = score_candidate(query(), candidate())
    assert result.skill_score == 0.0
    assert result.breakdown.missing_skills == ("python", "sql")


def test_empty_required_skills_is_rejected():
    with pytest.raises(InvalidQueryError):
        score_candidate(query(required_skills={}), candidate(skills={"python": 3}))


@pytest.mark.parametrize(
    "a, b",
    [("React", "react.js"), ("nodejs", "Node.js"), ("k8s", "Kubernetes"), ("react", "react native")],
)
def test_skill_names_match_across_variants(a, b):
    assert skills_match(a, b)
    assert skills_match(b, a)


def test_unrelated_skills_do_not_match():
    assert not skills_match("rust", "python")
    assert normalize_skill_name("  ReactJS ") == "react"


def test_location_credit_from_text_alignment():
    q = query(province="Bagmati", district="Kathmandu")
    c = candidate(province="bagmati ", district="Kathmandu", city="Baneshwor")
    score, matched, distance = calculate_location_match(q, c)
    assert (score, matched, distance) == (1.0, True, None)


def test_text_mismatch_without_coordinates_gets_no_credit():
    q = query(province="Bagmati", district="Lalitpur")
    c = candidate(province="Bagmati", district="Kathmandu")
    assert calculate_location_match(q, c)[0] == 0.0


def test_location_credit_from_distance_within_radius():
    q = query(location=KATHMANDU)
    near = candidate(location=offset_north(KATHMANDU, 20))
    far = candidate(location=offset_north(KATHMANDU, 80))

    score, matched, distance = calculate_location_match(q, near, radius_km=50)
    assert score == 1.0 and matched and 19 < distance < 21
    assert calculate_location_match(q, far, radius_km=50)[:2] == (0.0, False)


def test_unknown_location_degrades_instead_of_failing():
    result = score_candidate(
        query(location=Location(latitude=27.7, longitude=85.3)),
        candidate(skills={"python": 3, "sql": 3}),
    )
    assert result.location_score == 0.0
    assert result.breakdown.distance_km is None
    assert result.match_score == 80.0


def test_experience_partial_credit():
    c = candidate(experience=[{"title": "Dev", "years": 1}, {"title": "Dev", "duration": 0.5}])
    assert calculate_experience_match(c, 3) == (pytest.approx(0.5), False)
    assert calculate_experience_match(c, 1.5) == (1.0, True)
    assert calculate_experience_match(c, None) == (1.0, True)


def test_overall_score_is_weighted_sum():
    weights = MatchWeights(skill=0.6, location=0.2, experience=0.2)
    result = score_candidate(
        query(min_experience_years=4),
        candidate(skills={"python": 3}, experience=[{"years": 2}]),
        weights,
    )
    # 0.6 * 0.5 + 0.2 * 0 + 0.2 * 0.5
    assert result.match_score == pytest.approx(40.0)
    assert 0 <= result.match_score <= 100


@pytest.mark.parametrize(
    "weights",
    [
        {"skill": 0.5, "location": 0.2, "experience": 0.2},
        {"skill": 0.3, "location": 0.4, "experience": 0.3},
    ],
)
def test_weights_must_sum_to_one_with_skill_dominant(weights):
    with pytest.raises(PydanticValidationError):
        MatchWeights(**weights)


@pytest.mark.parametrize(
    "blob",
    [["python"], {"python": 0}, {"python": 6}, {"python": "expert"}, {"": 3}, {"python": True}],
)
def test_malformed_skill_blobs_are_rejected(blob):
    with pytest.raises(PydanticValidationError):
        SkillMap.model_validate(blob)


def test_loose_skill_blob_is_coerced():
    skills = SkillMap.model_validate({"Python": "4", "sql": 2.6})
    assert skills.level_of("python") == 4
    assert skills.level_of("SQL") == 3
    assert SkillMap.model_validate(None).names() == []
