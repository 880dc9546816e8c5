import asyncio

import pytest
from celery.exceptions import Retry

from jobmatch.core import metrics as metrics_module
from jobmatch.core.exceptions import PostingNotFoundError, RepositoryUnavailableError
from jobmatch.core.metrics import MetricsTracker, TimingContext
from jobmatch.schemas.notification import DispatchReport
from jobmatch.workers.tasks import notification_tasks


class FakeService:
    def __init__(self, outcome):
        self.outcome = outcome

    async def dispatch_new_posting_recommendations(self, posting_id, min_score):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def run_round_with(outcome):
    async def fake_run_round(service_cls, call):
        report = await call(FakeService(outcome))
        return report.model_dump(mode="json", by_alias=True)

    return fake_run_round


def test_report_is_returned_as_json(monkeypatch):
    report = DispatchReport(trigger="new_posting", subject_id="job-1", shortlisted_count=2)
    monkeypatch.setattr(notification_tasks, "_run_round", run_round_with(report))

    result = notification_tasks.dispatch_new_posting_recommendations("job-1")
    assert result["trigger"] == "new_posting"
    assert result["shortlistedCount"] == 2
    assert result["status"] == "completed"


def test_unknown_posting_is_reported_not_retried(monkeypatch):
    monkeypatch.setattr(
        notification_tasks, "_run_round", run_round_with(PostingNotFoundError("job-9"))
    )
    result = notification_tasks.dispatch_new_posting_recommendations("job-9")
    assert result == {"status": "failed", "error": "Posting job-9 not found"}


def test_repository_outage_retries_the_round(monkeypatch):
    retries = []

    def fake_retry(exc=None, countdown=None, **kwargs):
        retries.append((exc, countdown))
        return Retry("retrying", exc)

    task = notification_tasks.dispatch_new_posting_recommendations
    monkeypatch.setattr(
        notification_tasks, "_run_round", run_round_with(RepositoryUnavailableError("down"))
    )
    monkeypatch.setattr(task, "retry", fake_retry)

    with pytest.raises(Retry):
        task("job-1")
    [(exc, countdown)] = retries
    assert isinstance(exc, RepositoryUnavailableError)
    assert countdown == notification_tasks.RETRY_COUNTDOWN_SECONDS


def test_digest_runs_on_a_schedule():
    from jobmatch.core.celery_app import celery_app

    entry = celery_app.conf.beat_schedule["daily-recommendation-digest"]
    assert entry["task"] == notification_tasks.dispatch_recommendations_to_all_users.name


class LoopBoundRedis:
    """Fails like redis.asyncio does when reused after its loop has closed."""

    def __init__(self):
        self.loop = asyncio.get_running_loop()
        self.recorded = []
        self.closed = False

    def _check_loop(self):
        if self.closed or asyncio.get_running_loop() is not self.loop:
            raise RuntimeError("Event loop is closed")

    async def zadd(self, key, mapping):
        self._check_loop()
        self.recorded.append(key)

    async def zremrangebyrank(self, key, start, stop):
        self._check_loop()

    async def incr(self, key):
        self._check_loop()

    async def incrbyfloat(self, key, amount):
        self._check_loop()

    async def zrange(self, key, start, stop):
        self._check_loop()
        return []

    async def keys(self, pattern):
        self._check_loop()
        return []

    async def aclose(self):
        self._check_loop()
        self.closed = True


class LoopBoundTracker(MetricsTracker):
    def __init__(self):
        super().__init__(enabled=True)
        self.clients = []

    @property
    async def client(self):
        if self._client is None:
            self._client = LoopBoundRedis()
            self.clients.append(self._client)
        return self._client


class TimedService:
    def __init__(self, repository, push, email):
        pass

    async def run(self):
        async with TimingContext("dispatch_new_posting"):
            return DispatchReport(trigger="new_posting", subject_id="job-1")


class FakeEngine:
    async def dispose(self):
        pass


def test_consecutive_worker_rounds_keep_recording_metrics(monkeypatch):
    tracker = LoopBoundTracker()
    monkeypatch.setattr(metrics_module, "metrics_tracker", tracker)
    monkeypatch.setattr(notification_tasks, "metrics_tracker", tracker)
    monkeypatch.setattr(
        notification_tasks, "create_worker_sessionmaker", lambda: (FakeEngine(), None)
    )

    first = asyncio.run(notification_tasks._run_round(TimedService, lambda s: s.run()))
    second = asyncio.run(notification_tasks._run_round(TimedService, lambda s: s.run()))

    assert first["trigger"] == second["trigger"] == "new_posting"
    assert len(tracker.clients) == 2
    assert all(client.closed for client in tracker.clients)
    assert [c.recorded for c in tracker.clients] == [
        ["metrics:timing:dispatch_new_posting"],
        ["metrics:timing:dispatch_new_posting"],
    ]


def test_metric_failures_never_reach_the_round():
    tracker = LoopBoundTracker()

    async def timed_round():
        async with TimingContext("dispatch_new_posting", tracker=tracker):
            return "done"

    assert asyncio.run(timed_round()) == "done"
    # The client from the first loop is still cached and now unusable
    assert asyncio.run(timed_round()) == "done"
    assert asyncio.run(tracker.get_timing_stats("dispatch_new_posting"))["count"] == 0
    assert asyncio.run(tracker.reset_metrics()) == 0


def test_nearby_sweep_runs_after_the_digest():
    from jobmatch.core.celery_app import celery_app

    entry = celery_app.conf.beat_schedule["daily-nearby-recommendations"]
    assert entry["task"] == notification_tasks.dispatch_nearby_recommendations_to_all_users.name
    assert entry["schedule"].hour == {3}
    assert entry["schedule"].minute == {30}
