from datetime import time
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from jobmatch.config import settings
from jobmatch.core.exceptions import InvalidQueryError, RepositoryUnavailableError
from jobmatch.models import Employer, IndividualProfile, JobPosting, User
from jobmatch.schemas.common import Location
from jobmatch.schemas.preference import NotificationFrequency
from jobmatch.services.geo.location import bounding_box
from jobmatch.services.repository.sql_repository import (
    SqlProfileJobRepository,
    _parse_one,
    _parse_rows,
    posting_from_row,
    recipient_from_row,
)


def user_row(user_id="u1", profile_status="APPROVED", **fields):
    fields.setdefault("email", f"{user_id}@example.com")
    fields.setdefault("first_name", "Ana")
    fields.setdefault("status", "ACTIVE")
    fields.setdefault("is_email_verified", True)
    fields.setdefault("job_alerts", True)
    fields.setdefault("email_notifications", True)
    fields.setdefault("urgent_job_notifications_enabled", True)
    profile = None
    if profile_status is not None:
        profile = IndividualProfile(
            id=f"kyc-{user_id}",
            user_id=user_id,
            status=profile_status,
            technical_skills=fields.pop("skills", {"Python": 4, "sql": "3"}),
            experience=[{"title": "Developer", "years": 2}],
            province="Bagmati",
            district="Kathmandu",
            latitude=27.7172,
            longitude=85.3240,
        )
    return User(id=user_id, profile=profile, **fields)


def test_standard_recipient_uses_job_alert_switch():
    row = user_row(job_alerts=True, urgent_job_notifications_enabled=False)

    recipient = recipient_from_row(row)
    assert recipient.preferences.alerts_enabled is True
    assert recipient.is_reachable
    assert recipient.profile.skills.level_of("python") == 4
    assert recipient.profile.skills.level_of("SQL") == 3
    assert recipient.profile.location.latitude == 27.7172
    assert recipient.profile.total_experience_years == 2


def test_urgent_recipient_uses_urgent_switch():
    row = user_row(job_alerts=True, urgent_job_notifications_enabled=False)

    recipient = recipient_from_row(row, urgent=True)
    assert recipient.preferences.alerts_enabled is False
    assert not recipient.is_reachable

    row = user_row(job_alerts=False, urgent_job_notifications_enabled=True)
    assert recipient_from_row(row, urgent=True).preferences.alerts_enabled is True
    assert recipient_from_row(row).preferences.alerts_enabled is False


def test_quiet_hours_and_urgent_preferences_are_parsed():
    row = user_row(
        urgent_job_quiet_hours_start="22:00",
        urgent_job_quiet_hours_end="06:00",
        urgent_job_max_distance=25.0,
        urgent_job_min_payment=Decimal("1500.00"),
        urgent_job_preferred_categories=["PLUMBING"],
        urgent_job_notification_frequency="BATCHED",
    )
    preferences = recipient_from_row(row, urgent=True).preferences

    assert preferences.quiet_hours.start == time(22, 0)
    assert preferences.quiet_hours.end == time(6, 0)
    assert preferences.max_distance_km == 25.0
    assert preferences.min_payment == 1500.0
    assert preferences.categories == ["PLUMBING"]
    assert preferences.frequency == NotificationFrequency.BATCHED


def test_missing_preferences_fall_back_to_defaults():
    row = user_row(urgent_job_quiet_hours_start="22:00")
    preferences = recipient_from_row(row, urgent=True).preferences

    # Quiet hours need both ends
    assert preferences.quiet_hours is None
    assert preferences.max_distance_km == settings.DEFAULT_ALERT_DISTANCE_KM == 10
    assert preferences.min_payment is None
    assert preferences.categories == []
    assert preferences.frequency == NotificationFrequency.INSTANT


def test_email_opt_out_keeps_push_only():
    recipient = recipient_from_row(user_row(email_notifications=False))
    assert recipient.email == "u1@example.com"
    assert not recipient.wants_email


@pytest.mark.parametrize(
    "fields, profile_status",
    [
        ({"is_email_verified": False}, "APPROVED"),
        ({}, "PENDING"),
        ({}, None),
    ],
)
def test_unverified_users_are_not_reachable(fields, profile_status):
    recipient = recipient_from_row(user_row(profile_status=profile_status, **fields))
    assert recipient.is_verified is False
    assert not recipient.is_reachable


def test_user_without_profile_has_empty_candidate():
    recipient = recipient_from_row(user_row(profile_status=None))
    assert recipient.profile.id == "u1"
    assert len(recipient.profile.skills) == 0
    assert not recipient.profile.location.is_known


def test_suspended_user_is_inactive():
    assert recipient_from_row(user_row(status="SUSPENDED")).is_active is False


def job_row(job_id="job-1", **fields):
    fields.setdefault("title", "Backend Engineer")
    fields.setdefault("required_skills", {"python": 3})
    fields.setdefault("is_remote", False)
    fields.setdefault("is_active", True)
    fields.setdefault("is_verified", True)
    return JobPosting(
        id=job_id,
        employer_id="emp-1",
        employer=Employer(id="emp-1", user_id="owner", company_name="Acme"),
        **fields,
    )


def test_posting_from_row():
    posting = posting_from_row(
        job_row(
            latitude=27.7,
            longitude=85.3,
            experience_years=2,
            salary_min=Decimal("50000.00"),
            city="Kathmandu",
        )
    )
    assert posting.company_name == "Acme"
    assert posting.required_skills.level_of("Python") == 3
    assert posting.location.latitude == 27.7
    assert posting.min_experience_years == 2
    assert posting.salary_min == 50000.0
    assert posting.salary_max is None
    assert posting.is_open()


def test_malformed_rows_are_skipped_in_listings():
    rows = [
        job_row("good"),
        job_row("bad-shape", required_skills=["python"]),
        job_row("bad-level", required_skills={"python": 9}),
    ]
    postings = _parse_rows(rows, posting_from_row, "posting")
    assert [p.id for p in postings] == ["good"]


def test_malformed_single_row_is_an_invalid_query():
    with pytest.raises(InvalidQueryError, match="bad-shape"):
        _parse_one(job_row("bad-shape", required_skills=["python"]), posting_from_row, "Posting")


class FakeResult:
    def __init__(self, rows):
        self.rows = rows

    def scalars(self):
        return self

    def unique(self):
        return self

    def all(self):
        return list(self.rows)

    def scalar_one_or_none(self):
        return self.rows[0] if self.rows else None


class FakeSession:
    def __init__(self, rows=(), error=None):
        self.rows = rows
        self.error = error
        self.statements = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, statement):
        self.statements.append(statement)
        if self.error is not None:
            raise self.error
        return FakeResult(self.rows)


def refusing_factory():
    raise OperationalError("SELECT 1", {}, Exception("connection refused"))


async def test_driver_errors_become_repository_unavailable():
    repository = SqlProfileJobRepository(refusing_factory)
    with pytest.raises(RepositoryUnavailableError, match="connection refused"):
        await repository.get_posting("job-1")
    with pytest.raises(RepositoryUnavailableError):
        await repository.list_alert_candidates(limit=10)


async def test_socket_errors_become_repository_unavailable():
    session = FakeSession(error=ConnectionRefusedError("db:5432 refused"))
    repository = SqlProfileJobRepository(lambda: session)
    with pytest.raises(RepositoryUnavailableError, match="refused"):
        await repository.applied_posting_ids("u1", ["job-1"])
    assert len(session.statements) == 1


async def test_empty_lookups_skip_the_database():
    repository = SqlProfileJobRepository(refusing_factory)
    assert await repository.applied_posting_ids("u1", []) == set()
    assert await repository.applied_user_ids("job-1", []) == set()


async def test_listing_parses_rows_and_drops_malformed_ones():
    session = FakeSession(rows=[job_row("good"), job_row("bad", required_skills=["x"])])
    repository = SqlProfileJobRepository(lambda: session)
    postings = await repository.list_open_postings(limit=5, on_site_only=True)
    assert [p.id for p in postings] == ["good"]


async def test_urgent_box_search_builds_urgent_recipients():
    row = user_row(job_alerts=False, urgent_job_notifications_enabled=True)
    session = FakeSession(rows=[row])
    repository = SqlProfileJobRepository(lambda: session)
    [recipient] = await repository.find_urgent_recipients_in_box(
        bounding_box(Location(latitude=27.7, longitude=85.3), 5), exclude_user_id="poster"
    )
    assert recipient.preferences.alerts_enabled is True
