from datetime import datetime, time
from zoneinfo import ZoneInfo

import pytest

from jobmatch.core.exceptions import InvalidLocationError, PostingNotFoundError
from jobmatch.schemas.common import Location
from jobmatch.schemas.notification import DispatchStatus, EmailTemplate, PushType
from jobmatch.schemas.preference import QuietHours
from jobmatch.services.geo.location import distance_km
from jobmatch.services.notification.urgent_notifier import (
    UrgentProximityNotifier,
    passes_preferences,
)
from tests.factories import FakeRepository, make_recipient, make_urgent, offset_north

SITE = Location(latitude=27.70, longitude=85.32)
NOON = datetime(2026, 3, 10, 12, 0, tzinfo=ZoneInfo("Asia/Kathmandu"))
LATE = datetime(2026, 3, 10, 23, 30, tzinfo=ZoneInfo("Asia/Kathmandu"))
QUIET = QuietHours(start=time(22, 0), end=time(6, 0))


def notifier(repository, push, email, config):
    return UrgentProximityNotifier(repository, push, email, config)


def sent_to(push):
    return sorted(recipient for recipient, _ in push.sent)


@pytest.mark.scenario
async def test_payment_threshold_filters_recipients(push, email, test_settings):
    repository = FakeRepository(
        urgent=[make_urgent(location=SITE, payment_amount=500)],
        recipients=[
            make_recipient("a", location=offset_north(SITE, 8), max_distance_km=10, min_payment=1000),
            make_recipient("b", location=offset_north(SITE, 8), max_distance_km=10),
        ],
    )
    report = await notifier(repository, push, email, test_settings).dispatch_urgent_proximity_alert(
        "urgent-1", now=NOON
    )
    assert sent_to(push) == ["b"]
    assert report.shortlisted_count == 1


async def test_poster_is_never_notified(push, email, test_settings):
    repository = FakeRepository(
        urgent=[make_urgent(poster_id="poster", location=SITE)],
        recipients=[
            make_recipient("poster", location=SITE),
            make_recipient("neighbour", location=offset_north(SITE, 1)),
        ],
    )
    await notifier(repository, push, email, test_settings).dispatch_urgent_proximity_alert(
        "urgent-1", now=NOON
    )
    assert sent_to(push) == ["neighbour"]
    [query] = repository.calls_to("find_urgent_recipients_in_box")
    assert query["exclude_user_id"] == "poster"


def test_poster_is_excluded_in_process_too():
    poster = make_recipient("poster", location=SITE)
    reason = passes_preferences(poster, make_urgent(poster_id="poster"), 0.0, NOON)
    assert reason == "poster"


async def test_each_recipient_uses_their_own_distance(push, email, test_settings):
    repository = FakeRepository(
        urgent=[make_urgent(location=SITE)],
        recipients=[
            make_recipient("close-enough", location=offset_north(SITE, 15), max_distance_km=20),
            make_recipient("too-far", location=offset_north(SITE, 15), max_distance_km=10),
            make_recipient("default", location=offset_north(SITE, 9)),
        ],
    )
    await notifier(repository, push, email, test_settings).dispatch_urgent_proximity_alert(
        "urgent-1", now=NOON
    )
    assert sent_to(push) == ["close-enough", "default"]


async def test_search_box_covers_largest_configured_distance(push, email, test_settings):
    far_away = offset_north(SITE, 150)
    repository = FakeRepository(
        urgent=[make_urgent(location=SITE)],
        recipients=[make_recipient("wide", location=far_away, max_distance_km=200)],
    )
    await notifier(repository, push, email, test_settings).dispatch_urgent_proximity_alert(
        "urgent-1", now=NOON
    )
    [query] = repository.calls_to("find_urgent_recipients_in_box")
    assert query["box"].contains(far_away)
    assert sent_to(push) == ["wide"]


async def test_quiet_hours_suppress_instant_alerts(push, email, test_settings):
    repository = FakeRepository(
        urgent=[make_urgent(location=SITE)],
        recipients=[
            make_recipient("sleeper", location=offset_north(SITE, 2), quiet_hours=QUIET),
            make_recipient(
                "batched", location=offset_north(SITE, 2), quiet_hours=QUIET, frequency="batched"
            ),
            make_recipient("owl", location=offset_north(SITE, 2)),
        ],
    )
    service = notifier(repository, push, email, test_settings)

    await service.dispatch_urgent_proximity_alert("urgent-1", now=LATE)
    assert sent_to(push) == ["batched", "owl"]

    push.sent.clear()
    await service.dispatch_urgent_proximity_alert("urgent-1", now=NOON)
    assert sent_to(push) == ["batched", "owl", "sleeper"]


async def test_utc_now_is_converted_to_local_time(push, email, test_settings):
    repository = FakeRepository(
        urgent=[make_urgent(location=SITE)],
        recipients=[make_recipient("sleeper", location=offset_north(SITE, 2), quiet_hours=QUIET)],
    )
    # 18:00 UTC is 23:45 in Kathmandu
    utc_evening = datetime(2026, 3, 10, 18, 0, tzinfo=ZoneInfo("UTC"))
    report = await notifier(repository, push, email, test_settings).dispatch_urgent_proximity_alert(
        "urgent-1", now=utc_evening
    )
    assert report.status == DispatchStatus.NOOP


async def test_category_and_alert_switch_filters(push, email, test_settings):
    repository = FakeRepository(
        urgent=[make_urgent(location=SITE, category="PLUMBING")],
        recipients=[
            make_recipient("electrician", location=SITE, categories=["ELECTRICAL"]),
            make_recipient("plumber", location=SITE, categories=["plumbing"]),
            make_recipient("muted", location=SITE, alerts_enabled=False),
            make_recipient("gone", location=SITE, is_active=False),
        ],
    )
    await notifier(repository, push, email, test_settings).dispatch_urgent_proximity_alert(
        "urgent-1", now=NOON
    )
    assert sent_to(push) == ["plumber"]


async def test_urgent_message_content(push, email, test_settings):
    urgent = make_urgent(location=SITE, title="Fix a burst pipe", payment_amount=500)
    near = offset_north(SITE, 8)
    repository = FakeRepository(urgent=[urgent], recipients=[make_recipient("b", location=near)])

    await notifier(repository, push, email, test_settings).dispatch_urgent_proximity_alert(
        "urgent-1", now=NOON
    )
    [(_, message)] = push.sent
    assert message.type == PushType.URGENT_JOB_NEARBY
    assert message.title == "Urgent Job Near You!"
    assert message.message == (
        f"Fix a burst pipe is only {distance_km(SITE, near):.1f}km away. "
        "Payment: Rs. 500 (FIXED)"
    )
    [(address, mail)] = email.sent
    assert address == "b@example.com"
    assert mail.template == EmailTemplate.URGENT_JOB


async def test_unknown_urgent_posting_raises(push, email, test_settings):
    with pytest.raises(PostingNotFoundError):
        await notifier(
            FakeRepository(), push, email, test_settings
        ).dispatch_urgent_proximity_alert("missing")


async def test_urgent_posting_without_coordinates_is_rejected(push, email, test_settings):
    repository = FakeRepository(urgent=[make_urgent(location=Location(latitude=27.7))])
    with pytest.raises(InvalidLocationError):
        await notifier(repository, push, email, test_settings).dispatch_urgent_proximity_alert(
            "urgent-1"
        )
    assert repository.calls_to("find_urgent_recipients_in_box") == []


class BoxIgnoresLocation(FakeRepository):
    async def find_urgent_recipients_in_box(self, box, exclude_user_id=None):
        self._call("find_urgent_recipients_in_box", box=box, exclude_user_id=exclude_user_id)
        return [r for r in self.recipients.values() if r.user_id != exclude_user_id]


async def test_recipients_without_location_are_not_eligible(push, email, test_settings):
    repository = BoxIgnoresLocation(
        urgent=[make_urgent(location=SITE)],
        recipients=[
            make_recipient("near", location=offset_north(SITE, 1)),
            make_recipient("too-far", location=offset_north(SITE, 9), max_distance_km=5),
            make_recipient("nowhere"),
        ],
    )
    report = await notifier(repository, push, email, test_settings).dispatch_urgent_proximity_alert(
        "urgent-1", now=NOON
    )
    assert report.eligible_count == 2
    assert report.shortlisted_count == 1
    assert sent_to(push) == ["near"]
