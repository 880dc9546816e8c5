"""
Celery tasks for notification dispatch rounds.

Handles:
- New posting recommendations
- Similar postings after an application
- Skill gap after a rejection
- Profile and nearby recommendations
- Urgent proximity alerts
- The periodic digest and nearby sweeps

Each task runs one round on its own event loop. A round that fails because
the repository is unreachable is retried as a whole; unknown ids and invalid
input are logged and reported without retrying.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from jobmatch.core.celery_app import celery_app
from jobmatch.core.exceptions import JobMatchError, RepositoryUnavailableError
from jobmatch.core.metrics import metrics_tracker
from jobmatch.database import create_worker_sessionmaker
from jobmatch.services.notification.recommendation_dispatcher import (
    RecommendationDispatcher,
)
from jobmatch.services.notification.transports import (
    build_email_transport,
    build_push_transport,
)
from jobmatch.services.notification.urgent_notifier import UrgentProximityNotifier
from jobmatch.services.repository.sql_repository import SqlProfileJobRepository

logger = logging.getLogger(__name__)

RETRY_COUNTDOWN_SECONDS = 60


async def _run_round(service_cls, call: Callable[[Any], Awaitable[Any]]) -> Dict:
    """
    Build the service with real transports, run one round and clean up.

    Args:
        service_cls: RecommendationDispatcher or UrgentProximityNotifier
        call: Receives the service and returns the round's report

    Returns:
        The report as a JSON-ready dictionary
    """
    worker_engine, session_factory = create_worker_sessionmaker()
    push = build_push_transport()
    email = build_email_transport()
    try:
        service = service_cls(SqlProfileJobRepository(session_factory), push, email)
        report = await call(service)
        return report.model_dump(mode="json", by_alias=True)
    finally:
        await push.close()
        await email.close()
        await worker_engine.dispose()
        # Each task runs on a fresh loop; drop the Redis client bound to this one
        await metrics_tracker.close()


def _execute(task, description: str, service_cls, call) -> Dict:
    try:
        return asyncio.run(_run_round(service_cls, call))
    except RepositoryUnavailableError as e:
        logger.warning(
            f"{description}: repository unavailable, retry "
            f"{task.request.retries + 1}/{task.max_retries}: {e}"
        )
        raise task.retry(exc=e, countdown=RETRY_COUNTDOWN_SECONDS)
    except JobMatchError as e:
        logger.error(f"{description} failed: {e}")
        return {"status": "failed", "error": str(e)}


@celery_app.task(
    bind=True,
    max_retries=3,
    name="jobmatch.workers.tasks.notification_tasks.dispatch_new_posting_recommendations",
)
def dispatch_new_posting_recommendations(
    self, posting_id: str, min_score: Optional[float] = None
) -> Dict:
    return _execute(
        self,
        f"New posting recommendations for {posting_id}",
        RecommendationDispatcher,
        lambda d: d.dispatch_new_posting_recommendations(posting_id, min_score),
    )


@celery_app.task(
    bind=True,
    max_retries=3,
    name="jobmatch.workers.tasks.notification_tasks.dispatch_similar_posting_recommendations",
)
def dispatch_similar_posting_recommendations(
    self, user_id: str, applied_posting_id: str, min_score: Optional[float] = None
) -> Dict:
    return _execute(
        self,
        f"Similar postings for {user_id}",
        RecommendationDispatcher,
        lambda d: d.dispatch_similar_posting_recommendations(
            user_id, applied_posting_id, min_score
        ),
    )


@celery_app.task(
    bind=True,
    max_retries=3,
    name="jobmatch.workers.tasks.notification_tasks.dispatch_skill_gap_on_rejection",
)
def dispatch_skill_gap_on_rejection(
    self, user_id: str, rejected_posting_id: str, min_score: Optional[float] = None
) -> Dict:
    return _execute(
        self,
        f"Skill gap for {user_id}",
        RecommendationDispatcher,
        lambda d: d.dispatch_skill_gap_on_rejection(
            user_id, rejected_posting_id, min_score
        ),
    )


@celery_app.task(
    bind=True,
    max_retries=3,
    name="jobmatch.workers.tasks.notification_tasks.dispatch_profile_recommendations",
)
def dispatch_profile_recommendations(
    self, user_id: str, min_score: Optional[float] = None
) -> Dict:
    return _execute(
        self,
        f"Profile recommendations for {user_id}",
        RecommendationDispatcher,
        lambda d: d.dispatch_profile_recommendations(user_id, min_score),
    )


@celery_app.task(
    bind=True,
    max_retries=3,
    name="jobmatch.workers.tasks.notification_tasks.dispatch_nearby_posting_recommendations",
)
def dispatch_nearby_posting_recommendations(
    self,
    user_id: str,
    max_distance_km: Optional[float] = None,
    min_score: Optional[float] = None,
) -> Dict:
    return _execute(
        self,
        f"Nearby postings for {user_id}",
        RecommendationDispatcher,
        lambda d: d.dispatch_nearby_posting_recommendations(
            user_id, max_distance_km, min_score
        ),
    )


@celery_app.task(
    bind=True,
    max_retries=3,
    name="jobmatch.workers.tasks.notification_tasks.dispatch_urgent_proximity_alert",
)
def dispatch_urgent_proximity_alert(self, urgent_posting_id: str) -> Dict:
    return _execute(
        self,
        f"Urgent proximity alert for {urgent_posting_id}",
        UrgentProximityNotifier,
        lambda n: n.dispatch_urgent_proximity_alert(urgent_posting_id),
    )


@celery_app.task(
    bind=True,
    max_retries=3,
    name="jobmatch.workers.tasks.notification_tasks.dispatch_recommendations_to_all_users",
)
def dispatch_recommendations_to_all_users(self, min_score: Optional[float] = None) -> Dict:
    return _execute(
        self,
        "Recommendation digest",
        RecommendationDispatcher,
        lambda d: d.dispatch_recommendations_to_all_users(min_score),
    )


@celery_app.task(
    bind=True,
    max_retries=3,
    name="jobmatch.workers.tasks.notification_tasks.dispatch_nearby_recommendations_to_all_users",
)
def dispatch_nearby_recommendations_to_all_users(
    self,
    max_distance_km: Optional[float] = None,
    min_score: Optional[float] = None,
) -> Dict:
    return _execute(
        self,
        "Nearby recommendation sweep",
        RecommendationDispatcher,
        lambda d: d.dispatch_nearby_recommendations_to_all_users(max_distance_km, min_score),
    )
