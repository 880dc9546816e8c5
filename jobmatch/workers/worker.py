"""
Worker entry point for running Celery workers.

Usage:
    python -m jobmatch.workers.worker

Or with Celery CLI:
    celery -A jobmatch.core.celery_app worker --loglevel=info -Q notification_queue
    celery -A jobmatch.core.celery_app beat --loglevel=info
"""

import logging

from jobmatch.core.celery_app import celery_app

logger = logging.getLogger(__name__)


def main():
    logger.info("Starting JobMatch Celery worker...")
    logger.info(f"Broker: {celery_app.conf.broker_url}")
    logger.info(f"Backend: {celery_app.conf.result_backend}")
    logger.info("Queues: notification_queue")

    celery_app.worker_main(
        [
            "worker",
            "--loglevel=info",
            "--queues=notification_queue",
            "--concurrency=4",
            "--max-tasks-per-child=100",
        ]
    )


if __name__ == "__main__":
    main()
