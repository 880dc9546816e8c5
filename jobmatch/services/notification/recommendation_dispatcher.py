"""
Recommendation dispatcher.

Each dispatch round follows the same pipeline:

    gather -> eligibility -> score -> threshold -> dedup (applied) -> fan-out

and returns a ``DispatchReport``. A round with nothing to send is a no-op
report, not an error. Unknown ids raise ``NotFoundError`` subclasses and
repository failures propagate as ``RepositoryUnavailableError`` so the
caller (usually a Celery task) can retry the whole round.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from jobmatch.config import Settings, settings as default_settings
from jobmatch.core.exceptions import (
    CandidateNotFoundError,
    InvalidQueryError,
    JobMatchError,
    PostingNotFoundError,
    RepositoryUnavailableError,
)
from jobmatch.core.metrics import TimingContext
from jobmatch.schemas.matching import MatchResult
from jobmatch.schemas.notification import (
    DeliveryOutcome,
    DeliveryStatus,
    DigestReport,
    DispatchReport,
    DispatchStatus,
    Recipient,
    RecommendedPosting,
)
from jobmatch.schemas.posting import Posting
from jobmatch.services.geo.location import (
    bounding_box,
    find_within_radius,
    is_valid_location,
)
from jobmatch.services.matching.scorer import MatchWeights, default_weights, score_candidate
from jobmatch.services.matching.selector import (
    build_candidate_shortlist,
    build_posting_shortlist,
)
from jobmatch.services.notification import messages
from jobmatch.services.notification.fanout import Delivery, FanoutPool
from jobmatch.services.notification.transports import (
    EmailTransport,
    NoopEmailTransport,
    NoopPushTransport,
    PushTransport,
)
from jobmatch.services.repository.base import ProfileJobRepository

logger = logging.getLogger(__name__)


def noop_report(report: DispatchReport, reason: str) -> DispatchReport:
    report.status = DispatchStatus.NOOP
    report.reason = reason
    logger.info(f"{report.trigger} for {report.subject_id}: nothing to send ({reason})")
    return report


def count_outcomes(digest: DigestReport, outcomes: Sequence[DeliveryOutcome]) -> None:
    """A user counts as notified when at least one channel went out."""
    for outcome in outcomes:
        if DeliveryStatus.SENT in (outcome.push, outcome.email):
            digest.users_notified += 1
        else:
            digest.users_failed += 1


def scorable_postings(postings: Sequence[Posting]) -> List[Posting]:
    """Drop pulled postings that declare no required skills."""
    kept = []
    for posting in postings:
        if not posting.required_skills:
            logger.warning(f"Posting {posting.id} declares no required skills; skipped")
            continue
        kept.append(posting)
    return kept


class RecommendationDispatcher:

    def __init__(
        self,
        repository: ProfileJobRepository,
        push_transport: Optional[PushTransport] = None,
        email_transport: Optional[EmailTransport] = None,
        config: Settings = default_settings,
        weights: Optional[MatchWeights] = None,
    ):
        self.repository = repository
        self.config = config
        self.weights = weights or default_weights()
        self.fanout = FanoutPool(
            push_transport or NoopPushTransport(),
            email_transport or NoopEmailTransport(),
            concurrency=config.FANOUT_CONCURRENCY,
            send_timeout=config.FANOUT_SEND_TIMEOUT_SECONDS,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_posting(self, posting_id: str) -> Posting:
        posting = await self.repository.get_posting(posting_id)
        if posting is None:
            raise PostingNotFoundError(posting_id)
        return posting

    async def _require_recipient(self, user_id: str) -> Recipient:
        recipient = await self.repository.get_recipient(user_id)
        if recipient is None:
            raise CandidateNotFoundError(user_id)
        return recipient

    @staticmethod
    def _email_for(recipient: Recipient) -> Optional[str]:
        return recipient.email if recipient.wants_email else None

    def _delivery(self, recipient: Recipient, push, email) -> Delivery:
        address = self._email_for(recipient)
        return Delivery(
            recipient_id=recipient.user_id,
            push=push,
            email_address=address,
            email=email if address else None,
        )

    async def _recommend_for(
        self,
        recipient: Recipient,
        postings: Sequence[Posting],
        min_score: float,
        limit: int,
    ) -> List[Tuple[Posting, MatchResult]]:
        by_id: Dict[str, Posting] = {p.id: p for p in postings}
        shortlist = await build_posting_shortlist(
            self.repository,
            recipient.profile,
            [p.to_match_query() for p in postings],
            min_score,
            limit,
            self.weights,
        )
        return [(by_id[r.query_id], r) for r in shortlist]

    async def _run(self, metric: str, report: DispatchReport, round_) -> DispatchReport:
        logger.info(f"Starting {report.trigger} round for {report.subject_id}")
        async with TimingContext(metric) as timer:
            await round_(report)
            report.duration_ms = round(timer.elapsed_ms, 2)
        if report.status == DispatchStatus.COMPLETED:
            logger.info(
                f"{report.trigger} for {report.subject_id} done: "
                f"{report.notified_count} notified, "
                f"push {report.push_succeeded}/{report.push_attempted}, "
                f"email {report.email_succeeded}/{report.email_attempted}"
            )
        return report

    # ------------------------------------------------------------------
    # New posting -> matching users
    # ------------------------------------------------------------------

    async def dispatch_new_posting_recommendations(
        self, posting_id: str, min_score: Optional[float] = None
    ) -> DispatchReport:
        """
        Notify users who match a new (or newly verified) posting.

        Args:
            posting_id: The posting that just became visible
            min_score: Threshold, defaults to NEW_POSTING_MIN_SCORE

        Returns:
            Report of the round
        """
        if min_score is None:
            min_score = self.config.NEW_POSTING_MIN_SCORE
        report = DispatchReport(trigger="new_posting", subject_id=posting_id)

        async def round_(report: DispatchReport) -> None:
            posting = await self._require_posting(posting_id)
            if not posting.is_open():
                noop_report(report, "posting is not open")
                return
            if not posting.required_skills:
                raise InvalidQueryError(
                    f"Posting {posting_id} must declare at least one required skill"
                )

            recipients = await self.repository.list_alert_candidates(
                limit=self.config.RECOMMENDATION_CANDIDATE_CAP
            )
            eligible = {r.user_id: r for r in recipients if r.is_reachable}
            report.eligible_count = len(eligible)
            if not eligible:
                noop_report(report, "no eligible recipients")
                return

            shortlist = await build_candidate_shortlist(
                self.repository,
                posting.to_match_query(),
                [r.profile for r in eligible.values()],
                min_score,
                weights=self.weights,
            )
            report.shortlisted_count = len(shortlist)
            if not shortlist:
                noop_report(report, f"no candidate scored {min_score} or higher")
                return

            report.posting_ids = [posting.id]
            deliveries = []
            for result in shortlist:
                recipient = eligible[result.subject_id]
                recommendation = messages.recommended_posting(posting, result)
                deliveries.append(
                    self._delivery(
                        recipient,
                        messages.new_posting_push(posting, result),
                        messages.recommendation_email(recipient, [recommendation]),
                    )
                )
            report.record(await self.fanout.deliver(deliveries))

        return await self._run("dispatch_new_posting", report, round_)

    # ------------------------------------------------------------------
    # User applied -> similar postings
    # ------------------------------------------------------------------

    async def dispatch_similar_posting_recommendations(
        self, user_id: str, applied_posting_id: str, min_score: Optional[float] = None
    ) -> DispatchReport:
        """Recommend postings of the same job type after an application."""
        if min_score is None:
            min_score = self.config.SIMILAR_POSTING_MIN_SCORE
        report = DispatchReport(trigger="similar_postings", subject_id=user_id)

        async def round_(report: DispatchReport) -> None:
            recipient = await self._require_recipient(user_id)
            applied = await self._require_posting(applied_posting_id)
            if not recipient.is_reachable:
                noop_report(report, "recipient is not eligible for alerts")
                return
            report.eligible_count = 1

            postings = await self.repository.list_open_postings(
                limit=self.config.SIMILAR_POSTING_CAP,
                job_type=applied.job_type,
                exclude_ids=[applied.id],
            )
            postings = [p for p in scorable_postings(postings) if p.id != applied.id]
            picks = await self._recommend_for(
                recipient, postings, min_score, self.config.SIMILAR_SHORTLIST_SIZE
            )
            report.shortlisted_count = len(picks)
            if not picks:
                noop_report(report, f"no similar posting scored {min_score} or higher")
                return

            recommendations = [messages.recommended_posting(p, r) for p, r in picks]
            report.posting_ids = [p.id for p, _ in picks]
            delivery = self._delivery(
                recipient,
                messages.similar_postings_push(applied, recommendations),
                messages.recommendation_email(recipient, recommendations),
            )
            report.record(await self.fanout.deliver([delivery]))

        return await self._run("dispatch_similar_postings", report, round_)

    # ------------------------------------------------------------------
    # Application rejected -> skill gap
    # ------------------------------------------------------------------

    async def dispatch_skill_gap_on_rejection(
        self, user_id: str, rejected_posting_id: str, min_score: Optional[float] = None
    ) -> DispatchReport:
        """
        Tell a rejected applicant which skills they were missing, and which
        open postings they already qualify for.
        """
        if min_score is None:
            min_score = self.config.SKILL_GAP_MIN_SCORE
        report = DispatchReport(trigger="skill_gap", subject_id=user_id)

        async def round_(report: DispatchReport) -> None:
            recipient = await self._require_recipient(user_id)
            rejected = await self._require_posting(rejected_posting_id)
            if not recipient.is_reachable:
                noop_report(report, "recipient is not eligible for alerts")
                return
            report.eligible_count = 1

            gap = score_candidate(rejected.to_match_query(), recipient.profile, self.weights)
            missing = list(gap.breakdown.missing_skills)
            report.missing_skills = missing
            if not missing:
                noop_report(report, "no missing skills")
                return

            postings = await self.repository.list_open_postings(
                limit=self.config.SKILL_GAP_POSTING_CAP,
                exclude_ids=[rejected.id],
            )
            postings = [p for p in scorable_postings(postings) if p.id != rejected.id]
            picks = await self._recommend_for(
                recipient, postings, min_score, self.config.SKILL_GAP_SHORTLIST_SIZE
            )
            report.shortlisted_count = len(picks)
            report.posting_ids = [p.id for p, _ in picks]
            similar = [messages.recommended_posting(p, r) for p, r in picks]

            delivery = self._delivery(
                recipient,
                messages.skill_gap_push(
                    rejected, missing, gap.breakdown.matched_skills, len(similar)
                ),
                messages.skill_gap_email(
                    recipient, rejected, missing, gap.breakdown.matched_skills, similar
                ),
            )
            report.record(await self.fanout.deliver([delivery]))

        return await self._run("dispatch_skill_gap", report, round_)

    # ------------------------------------------------------------------
    # Profile changed / digest -> best open postings
    # ------------------------------------------------------------------

    async def dispatch_profile_recommendations(
        self, user_id: str, min_score: Optional[float] = None
    ) -> DispatchReport:
        if min_score is None:
            min_score = self.config.PROFILE_MIN_SCORE
        report = DispatchReport(trigger="profile_recommendations", subject_id=user_id)

        async def round_(report: DispatchReport) -> None:
            recipient = await self._require_recipient(user_id)
            if not recipient.is_reachable:
                noop_report(report, "recipient is not eligible for alerts")
                return
            report.eligible_count = 1

            postings = await self.repository.list_open_postings(
                limit=self.config.PROFILE_POSTING_CAP
            )
            picks = await self._recommend_for(
                recipient,
                scorable_postings(postings),
                min_score,
                self.config.PROFILE_SHORTLIST_SIZE,
            )
            report.shortlisted_count = len(picks)
            if not picks:
                noop_report(report, f"no posting scored {min_score} or higher")
                return

            recommendations = [messages.recommended_posting(p, r) for p, r in picks]
            report.posting_ids = [p.id for p, _ in picks]
            delivery = self._delivery(
                recipient,
                messages.digest_push(recommendations),
                messages.recommendation_email(recipient, recommendations),
            )
            report.record(await self.fanout.deliver([delivery]))

        return await self._run("dispatch_profile_recommendations", report, round_)

    # ------------------------------------------------------------------
    # Nearby on-site postings
    # ------------------------------------------------------------------

    async def dispatch_nearby_posting_recommendations(
        self,
        user_id: str,
        max_distance_km: Optional[float] = None,
        min_score: Optional[float] = None,
    ) -> DispatchReport:
        """
        Recommend on-site postings within ``max_distance_km`` of the user.

        Results are ordered by distance band (whole kilometres), then score,
        then exact distance.
        """
        if max_distance_km is None:
            max_distance_km = self.config.NEARBY_RADIUS_KM
        if min_score is None:
            min_score = self.config.NEARBY_MIN_SCORE
        report = DispatchReport(trigger="nearby_postings", subject_id=user_id)

        async def round_(report: DispatchReport) -> None:
            recipient = await self._require_recipient(user_id)
            if not recipient.is_reachable:
                noop_report(report, "recipient is not eligible for alerts")
                return
            await self._nearby_round(report, recipient, max_distance_km, min_score)

        return await self._run("dispatch_nearby_postings", report, round_)

    async def _nearby_round(
        self,
        report: DispatchReport,
        recipient: Recipient,
        max_distance_km: float,
        min_score: float,
    ) -> None:
        home = recipient.profile.location
        if not is_valid_location(home):
            noop_report(report, "recipient has no location")
            return
        report.eligible_count = 1

        postings = await self.repository.list_open_postings(
            limit=self.config.NEARBY_POSTING_CAP,
            on_site_only=True,
            box=bounding_box(home, max_distance_km),
        )
        nearby = find_within_radius(
            home,
            [p for p in scorable_postings(postings) if not p.is_remote],
            max_distance_km,
            key=lambda p: p.location,
        )
        distances = {p.id: d for p, d in nearby}

        picks = await self._recommend_for(
            recipient, [p for p, _ in nearby], min_score, len(nearby)
        )
        picks.sort(
            key=lambda pair: (
                math.floor(distances[pair[0].id]),
                -pair[1].match_score,
                distances[pair[0].id],
            )
        )
        picks = picks[: self.config.NEARBY_SHORTLIST_SIZE]
        report.shortlisted_count = len(picks)
        if not picks:
            noop_report(report, f"no posting within {max_distance_km}km scored {min_score} or higher")
            return

        recommendations = [
            messages.recommended_posting(p, r, distances[p.id]) for p, r in picks
        ]
        report.posting_ids = [p.id for p, _ in picks]
        delivery = self._delivery(
            recipient,
            messages.nearby_push(recommendations, max_distance_km),
            messages.nearby_email(recipient, recommendations, max_distance_km),
        )
        report.record(await self.fanout.deliver([delivery]))

    # ------------------------------------------------------------------
    # Periodic digest for everyone
    # ------------------------------------------------------------------

    async def dispatch_recommendations_to_all_users(
        self, min_score: Optional[float] = None
    ) -> DigestReport:
        """
        Send each alert-enabled user their best open postings.

        Postings are pulled once for the whole sweep. Invalid data for one
        user is logged and counted without stopping the sweep; a repository
        outage aborts it so the caller can retry.
        """
        if min_score is None:
            min_score = self.config.PROFILE_MIN_SCORE
        digest = DigestReport()

        async with TimingContext("dispatch_digest") as timer:
            recipients = await self.repository.list_alert_candidates(
                limit=self.config.DIGEST_USER_CAP
            )
            recipients = [r for r in recipients if r.is_reachable]
            postings = scorable_postings(
                await self.repository.list_open_postings(
                    limit=self.config.PROFILE_POSTING_CAP
                )
            )
            digest.total_users = len(recipients)
            digest.total_postings = len(postings)
            logger.info(
                f"Digest sweep over {len(recipients)} users and {len(postings)} postings"
            )

            deliveries = []
            if postings:
                for recipient in recipients:
                    try:
                        picks = await self._recommend_for(
                            recipient, postings, min_score, self.config.PROFILE_SHORTLIST_SIZE
                        )
                    except RepositoryUnavailableError:
                        raise
                    except JobMatchError as e:
                        logger.error(f"Digest for {recipient.user_id} failed: {e}")
                        digest.users_failed += 1
                        continue
                    if not picks:
                        continue
                    recommendations: List[RecommendedPosting] = [
                        messages.recommended_posting(p, r) for p, r in picks
                    ]
                    deliveries.append(
                        self._delivery(
                            recipient,
                            messages.digest_push(recommendations),
                            messages.recommendation_email(recipient, recommendations),
                        )
                    )

            count_outcomes(digest, await self.fanout.deliver(deliveries))
            digest.duration_ms = round(timer.elapsed_ms, 2)

        logger.info(
            f"Digest sweep done: {digest.users_notified} notified, "
            f"{digest.users_failed} failed of {digest.total_users}"
        )
        return digest

    async def dispatch_nearby_recommendations_to_all_users(
        self,
        max_distance_km: Optional[float] = None,
        min_score: Optional[float] = None,
    ) -> DigestReport:
        """
        Run the nearby round for every alert-enabled user with a home location.

        Each user gets their own capped, box-filtered postings pull.
        ``total_postings`` counts the distinct postings recommended.
        """
        if max_distance_km is None:
            max_distance_km = self.config.NEARBY_RADIUS_KM
        if min_score is None:
            min_score = self.config.NEARBY_MIN_SCORE
        digest = DigestReport()
        recommended = set()

        async with TimingContext("dispatch_nearby_digest") as timer:
            recipients = await self.repository.list_alert_candidates(
                limit=self.config.NEARBY_SWEEP_USER_CAP
            )
            recipients = [
                r
                for r in recipients
                if r.is_reachable and is_valid_location(r.profile.location)
            ]
            digest.total_users = len(recipients)
            logger.info(f"Nearby sweep over {len(recipients)} users within {max_distance_km}km")

            for recipient in recipients:
                report = DispatchReport(trigger="nearby_postings", subject_id=recipient.user_id)
                try:
                    await self._nearby_round(report, recipient, max_distance_km, min_score)
                except RepositoryUnavailableError:
                    raise
                except JobMatchError as e:
                    logger.error(f"Nearby round for {recipient.user_id} failed: {e}")
                    digest.users_failed += 1
                    continue
                recommended.update(report.posting_ids)
                count_outcomes(digest, report.outcomes)

            digest.total_postings = len(recommended)
            digest.duration_ms = round(timer.elapsed_ms, 2)

        logger.info(
            f"Nearby sweep done: {digest.users_notified} notified, "
            f"{digest.users_failed} failed of {digest.total_users}"
        )
        return digest
