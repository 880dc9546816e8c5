"""
Urgent proximity notifier.

Announces a newly created urgent posting to nearby users:

    validate coordinates -> bounding-box fetch -> exact distance
    -> per-recipient preferences -> fan-out

The bounding box is sized to the largest alert distance any user may have
configured, so the cheap pre-filter never drops someone who would pass the
exact check.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from jobmatch.config import Settings, settings as default_settings
from jobmatch.core.exceptions import InvalidLocationError, PostingNotFoundError
from jobmatch.core.metrics import TimingContext
from jobmatch.schemas.notification import DispatchReport, Recipient
from jobmatch.schemas.posting import UrgentPosting
from jobmatch.services.geo.location import bounding_box, distance_km, is_valid_location
from jobmatch.services.notification import messages
from jobmatch.services.notification.fanout import Delivery, FanoutPool
from jobmatch.services.notification.recommendation_dispatcher import noop_report
from jobmatch.services.notification.transports import (
    EmailTransport,
    NoopEmailTransport,
    NoopPushTransport,
    PushTransport,
)
from jobmatch.services.repository.base import ProfileJobRepository

logger = logging.getLogger(__name__)


def passes_preferences(
    recipient: Recipient,
    posting: UrgentPosting,
    distance: float,
    local_now: datetime,
) -> Optional[str]:
    """
    Check one recipient against an urgent posting.

    Args:
        recipient: Candidate recipient
        posting: The urgent posting being announced
        distance: Exact distance between the two, in km
        local_now: Current time in the platform's local time zone

    Returns:
        None when every check passes, otherwise the reason for exclusion
    """
    prefs = recipient.preferences
    if recipient.user_id == posting.poster_id:
        return "poster"
    if not recipient.is_active:
        return "inactive"
    if not prefs.alerts_enabled:
        return "alerts disabled"
    if prefs.suppresses_instant_at(local_now.time()):
        return "quiet hours"
    if distance > prefs.max_distance_km:
        return "too far"
    if prefs.min_payment is not None and posting.payment_amount < prefs.min_payment:
        return "payment below minimum"
    if not prefs.allows_category(posting.category):
        return "category not wanted"
    return None


class UrgentProximityNotifier:

    def __init__(
        self,
        repository: ProfileJobRepository,
        push_transport: Optional[PushTransport] = None,
        email_transport: Optional[EmailTransport] = None,
        config: Settings = default_settings,
    ):
        self.repository = repository
        self.config = config
        self.fanout = FanoutPool(
            push_transport or NoopPushTransport(),
            email_transport or NoopEmailTransport(),
            concurrency=config.FANOUT_CONCURRENCY,
            send_timeout=config.FANOUT_SEND_TIMEOUT_SECONDS,
        )

    async def _search_radius(self) -> float:
        configured = await self.repository.max_urgent_alert_distance()
        radius = self.config.URGENT_MAX_ALLOWED_RADIUS_KM
        if configured is not None and configured > radius:
            logger.warning(
                f"A user alert distance of {configured}km exceeds the "
                f"{radius}km limit; widening the search box"
            )
            radius = configured
        return radius

    def _local_now(self, now: Optional[datetime]) -> datetime:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(ZoneInfo(self.config.TIMEZONE))

    async def dispatch_urgent_proximity_alert(
        self, urgent_posting_id: str, now: Optional[datetime] = None
    ) -> DispatchReport:
        """
        Notify nearby users about an urgent posting.

        Args:
            urgent_posting_id: The urgent posting just created
            now: Evaluation time for quiet hours (defaults to the current time)

        Raises:
            PostingNotFoundError: unknown id
            InvalidLocationError: the posting has no usable coordinates
        """
        report = DispatchReport(trigger="urgent_proximity", subject_id=urgent_posting_id)
        logger.info(f"Starting urgent_proximity round for {urgent_posting_id}")

        async with TimingContext("dispatch_urgent_proximity") as timer:
            posting = await self.repository.get_urgent_posting(urgent_posting_id)
            if posting is None:
                raise PostingNotFoundError(urgent_posting_id)
            if not is_valid_location(posting.location):
                raise InvalidLocationError(
                    f"Urgent posting {urgent_posting_id} has no valid coordinates"
                )

            box = bounding_box(posting.location, await self._search_radius())
            candidates = await self.repository.find_urgent_recipients_in_box(
                box, exclude_user_id=posting.poster_id
            )

            local_now = self._local_now(now)
            selected: List[Tuple[Recipient, float]] = []
            for recipient in candidates:
                location = recipient.profile.location
                if not is_valid_location(location):
                    logger.debug(f"Skipping {recipient.user_id} for {posting.id}: no location")
                    continue
                report.eligible_count += 1
                distance = distance_km(posting.location, location)
                reason = passes_preferences(recipient, posting, distance, local_now)
                if reason is not None:
                    logger.debug(f"Skipping {recipient.user_id} for {posting.id}: {reason}")
                    continue
                selected.append((recipient, distance))

            report.shortlisted_count = len(selected)
            report.posting_ids = [posting.id]

            if not selected:
                noop_report(report, "no nearby recipient accepts this posting")
            else:
                deliveries = []
                for recipient, distance in selected:
                    wants_email = recipient.wants_email
                    deliveries.append(
                        Delivery(
                            recipient_id=recipient.user_id,
                            push=messages.urgent_push(posting, distance),
                            email_address=recipient.email if wants_email else None,
                            email=(
                                messages.urgent_email(recipient, posting, distance)
                                if wants_email
                                else None
                            ),
                        )
                    )
                report.record(await self.fanout.deliver(deliveries))
                logger.info(
                    f"urgent_proximity for {posting.id} done: "
                    f"{report.notified_count} notified, "
                    f"push {report.push_succeeded}/{report.push_attempted}, "
                    f"email {report.email_succeeded}/{report.email_attempted}"
                )
            report.duration_ms = round(timer.elapsed_ms, 2)

        return report
