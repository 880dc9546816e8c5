"""
API routes that queue notification dispatch rounds.

Every endpoint hands the round to a Celery worker and returns 202 with the
task id; the round's report is available from the Celery result backend.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from jobmatch.api.dependencies import CeleryTaskQueue, get_task_queue
from jobmatch.schemas.notification import DispatchAccepted
from jobmatch.workers.tasks import notification_tasks

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _accepted(queue: CeleryTaskQueue, trigger: str, task, *args) -> DispatchAccepted:
    task_id = queue.enqueue(task, *args)
    logger.info(f"Queued {trigger} round as task {task_id}")
    return DispatchAccepted(task_id=task_id, trigger=trigger)


@router.post(
    "/postings/{posting_id}/recommendations",
    response_model=DispatchAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def queue_new_posting_recommendations(
    posting_id: str,
    min_score: Optional[float] = Query(None, ge=0.0, le=100.0),
    queue: CeleryTaskQueue = Depends(get_task_queue),
):
    return _accepted(
        queue,
        "new_posting",
        notification_tasks.dispatch_new_posting_recommendations,
        posting_id,
        min_score,
    )


@router.post(
    "/users/{user_id}/similar/{posting_id}",
    response_model=DispatchAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def queue_similar_postings(
    user_id: str,
    posting_id: str,
    min_score: Optional[float] = Query(None, ge=0.0, le=100.0),
    queue: CeleryTaskQueue = Depends(get_task_queue),
):
    return _accepted(
        queue,
        "similar_postings",
        notification_tasks.dispatch_similar_posting_recommendations,
        user_id,
        posting_id,
        min_score,
    )


@router.post(
    "/users/{user_id}/skill-gap/{posting_id}",
    response_model=DispatchAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def queue_skill_gap(
    user_id: str,
    posting_id: str,
    min_score: Optional[float] = Query(None, ge=0.0, le=100.0),
    queue: CeleryTaskQueue = Depends(get_task_queue),
):
    return _accepted(
        queue,
        "skill_gap",
        notification_tasks.dispatch_skill_gap_on_rejection,
        user_id,
        posting_id,
        min_score,
    )


@router.post(
    "/users/{user_id}/recommendations",
    response_model=DispatchAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def queue_profile_recommendations(
    user_id: str,
    min_score: Optional[float] = Query(None, ge=0.0, le=100.0),
    queue: CeleryTaskQueue = Depends(get_task_queue),
):
    return _accepted(
        queue,
        "profile_recommendations",
        notification_tasks.dispatch_profile_recommendations,
        user_id,
        min_score,
    )


@router.post(
    "/users/{user_id}/nearby",
    response_model=DispatchAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def queue_nearby_postings(
    user_id: str,
    max_distance_km: Optional[float] = Query(
        None, gt=0.0, le=500.0, description="Search radius in km"
    ),
    min_score: Optional[float] = Query(None, ge=0.0, le=100.0),
    queue: CeleryTaskQueue = Depends(get_task_queue),
):
    return _accepted(
        queue,
        "nearby_postings",
        notification_tasks.dispatch_nearby_posting_recommendations,
        user_id,
        max_distance_km,
        min_score,
    )


@router.post(
    "/urgent/{urgent_posting_id}",
    response_model=DispatchAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def queue_urgent_alert(
    urgent_posting_id: str,
    queue: CeleryTaskQueue = Depends(get_task_queue),
):
    return _accepted(
        queue,
        "urgent_proximity",
        notification_tasks.dispatch_urgent_proximity_alert,
        urgent_posting_id,
    )
