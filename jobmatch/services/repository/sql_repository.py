"""
SQLAlchemy implementation of the profile/job repository.

Every call opens its own short-lived session. Loose JSON columns (skills,
experience, categories) are parsed into typed schemas here; rows that do
not parse are logged and skipped in listings.
"""

import logging
from datetime import datetime, timezone
from functools import wraps
from typing import Callable, Iterable, List, Optional, Sequence, Set, TypeVar

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from jobmatch.config import settings
from jobmatch.core.exceptions import InvalidQueryError, RepositoryUnavailableError
from jobmatch.models import IndividualProfile, JobApplication, JobPosting, UrgentJob, User
from jobmatch.schemas.common import Location
from jobmatch.schemas.matching import CandidateProfile
from jobmatch.schemas.notification import Recipient
from jobmatch.schemas.posting import Posting, UrgentPosting
from jobmatch.schemas.preference import NotificationPreference, QuietHours
from jobmatch.services.geo.location import BoundingBox
from jobmatch.services.repository.base import ProfileJobRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

APPROVED = "APPROVED"
ACTIVE = "ACTIVE"


def _guard(func_: Callable) -> Callable:
    """Translate driver and connection failures into RepositoryUnavailableError."""

    @wraps(func_)
    async def wrapper(*args, **kwargs):
        try:
            return await func_(*args, **kwargs)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Repository call {func_.__name__} failed: {e}")
            raise RepositoryUnavailableError(str(e)) from e

    return wrapper


def _to_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def posting_from_row(job: JobPosting) -> Posting:
    return Posting(
        id=str(job.id),
        title=job.title,
        company_name=job.employer.company_name if job.employer else None,
        job_type=job.job_type,
        required_skills=job.required_skills,
        location=Location(latitude=job.latitude, longitude=job.longitude),
        province=job.province,
        district=job.district,
        city=job.city,
        is_remote=bool(job.is_remote),
        min_experience_years=job.experience_years,
        is_active=bool(job.is_active),
        is_verified=bool(job.is_verified),
        expires_at=job.expires_at,
        salary_min=_to_float(job.salary_min),
        salary_max=_to_float(job.salary_max),
    )


def urgent_posting_from_row(job: UrgentJob) -> UrgentPosting:
    poster_name = None
    if job.poster is not None:
        poster_name = f"{job.poster.first_name or ''} {job.poster.last_name or ''}".strip() or None
    return UrgentPosting(
        id=str(job.id),
        poster_id=str(job.poster_id),
        title=job.title,
        description=job.description,
        category=job.category,
        payment_amount=float(job.payment_amount),
        payment_type=job.payment_type,
        urgency_level=job.urgency_level,
        location=Location(latitude=job.latitude, longitude=job.longitude),
        province=job.province,
        district=job.district,
        city=job.city,
        start_time=job.start_time,
        contact_phone=job.contact_phone,
        poster_name=poster_name,
    )


def recipient_from_row(user: User, urgent: bool = False) -> Recipient:
    """
    Build a recipient from a user row and its profile.

    ``urgent`` selects which alert switch counts as "alerts enabled":
    the urgent-job switch or the standard job-alert switch.
    """
    profile = user.profile
    quiet_hours = None
    if user.urgent_job_quiet_hours_start and user.urgent_job_quiet_hours_end:
        quiet_hours = QuietHours(
            start=user.urgent_job_quiet_hours_start,
            end=user.urgent_job_quiet_hours_end,
        )

    preferences = NotificationPreference(
        alerts_enabled=bool(
            user.urgent_job_notifications_enabled if urgent else user.job_alerts
        ),
        email_enabled=bool(user.email_notifications),
        max_distance_km=(
            user.urgent_job_max_distance
            if user.urgent_job_max_distance is not None
            else settings.DEFAULT_ALERT_DISTANCE_KM
        ),
        min_payment=_to_float(user.urgent_job_min_payment),
        categories=user.urgent_job_preferred_categories,
        quiet_hours=quiet_hours,
        frequency=user.urgent_job_notification_frequency,
    )

    if profile is not None:
        candidate = CandidateProfile(
            id=str(user.id),
            skills=profile.technical_skills,
            location=Location(latitude=profile.latitude, longitude=profile.longitude),
            experience=profile.experience,
            province=profile.province,
            district=profile.district,
            city=profile.city,
        )
    else:
        candidate = CandidateProfile(id=str(user.id))

    return Recipient(
        user_id=str(user.id),
        email=user.email,
        first_name=user.first_name,
        profile=candidate,
        preferences=preferences,
        is_active=user.status == ACTIVE,
        is_verified=bool(user.is_email_verified)
        and profile is not None
        and profile.status == APPROVED,
    )


def _parse_rows(rows: Iterable, builder: Callable[..., T], kind: str, **kwargs) -> List[T]:
    parsed = []
    for row in rows:
        try:
            parsed.append(builder(row, **kwargs))
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed {kind} {getattr(row, 'id', '?')}: {e}")
    return parsed


def _parse_one(row, builder: Callable[..., T], kind: str, **kwargs) -> T:
    try:
        return builder(row, **kwargs)
    except PydanticValidationError as e:
        raise InvalidQueryError(f"{kind} {row.id} has malformed data: {e}") from e


class SqlProfileJobRepository(ProfileJobRepository):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _open_postings_filter(now: datetime):
        return and_(
            JobPosting.is_active.is_(True),
            JobPosting.is_verified.is_(True),
            or_(JobPosting.expires_at.is_(None), JobPosting.expires_at > now),
        )

    @staticmethod
    def _reachable_user_filter():
        return and_(
            User.status == ACTIVE,
            User.is_email_verified.is_(True),
            IndividualProfile.status == APPROVED,
        )

    @_guard
    async def get_posting(self, posting_id: str) -> Optional[Posting]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobPosting).where(JobPosting.id == posting_id)
            )
            job = result.scalar_one_or_none()
        if job is None:
            return None
        return _parse_one(job, posting_from_row, "Posting")

    @_guard
    async def get_urgent_posting(self, posting_id: str) -> Optional[UrgentPosting]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UrgentJob).where(UrgentJob.id == posting_id)
            )
            job = result.scalar_one_or_none()
        if job is None:
            return None
        return _parse_one(job, urgent_posting_from_row, "Urgent posting")

    @_guard
    async def get_recipient(self, user_id: str) -> Optional[Recipient]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(User).options(selectinload(User.profile)).where(User.id == user_id)
            )
            user = result.scalar_one_or_none()
        if user is None:
            return None
        return _parse_one(user, recipient_from_row, "User")

    @_guard
    async def list_open_postings(
        self,
        limit: int,
        job_type: Optional[str] = None,
        exclude_ids: Sequence[str] = (),
        on_site_only: bool = False,
        box: Optional[BoundingBox] = None,
    ) -> List[Posting]:
        query = select(JobPosting).where(
            self._open_postings_filter(datetime.now(timezone.utc))
        )
        if job_type is not None:
            query = query.where(JobPosting.job_type == job_type)
        if exclude_ids:
            query = query.where(JobPosting.id.notin_(list(exclude_ids)))
        if on_site_only:
            query = query.where(JobPosting.is_remote.is_(False))
        if box is not None:
            query = query.where(
                JobPosting.latitude.is_not(None),
                JobPosting.longitude.is_not(None),
                JobPosting.latitude.between(box.min_lat, box.max_lat),
                JobPosting.longitude.between(box.min_lon, box.max_lon),
            )
        query = query.order_by(JobPosting.created_at.desc()).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(query)
            jobs = result.scalars().unique().all()
        return _parse_rows(jobs, posting_from_row, "posting")

    @_guard
    async def list_alert_candidates(self, limit: int) -> List[Recipient]:
        query = (
            select(User)
            .join(IndividualProfile, IndividualProfile.user_id == User.id)
            .options(selectinload(User.profile))
            .where(self._reachable_user_filter(), User.job_alerts.is_(True))
            .order_by(IndividualProfile.updated_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            users = result.scalars().all()
        return _parse_rows(users, recipient_from_row, "user")

    @_guard
    async def list_candidates(
        self,
        limit: int,
        offset: int = 0,
        province: Optional[str] = None,
        district: Optional[str] = None,
        city: Optional[str] = None,
    ) -> List[Recipient]:
        query = (
            select(User)
            .join(IndividualProfile, IndividualProfile.user_id == User.id)
            .options(selectinload(User.profile))
            .where(IndividualProfile.status == APPROVED)
        )
        if province:
            query = query.where(IndividualProfile.province == province)
        if district:
            query = query.where(IndividualProfile.district == district)
        if city:
            query = query.where(IndividualProfile.city == city)
        query = query.order_by(User.id).offset(offset).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(query)
            users = result.scalars().all()
        return _parse_rows(users, recipient_from_row, "user")

    @_guard
    async def applied_posting_ids(
        self, user_id: str, posting_ids: Iterable[str]
    ) -> Set[str]:
        posting_ids = list(posting_ids)
        if not posting_ids:
            return set()
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobApplication.job_id).where(
                    JobApplication.applicant_id == user_id,
                    JobApplication.job_id.in_(posting_ids),
                )
            )
            return {str(job_id) for job_id in result.scalars().all()}

    @_guard
    async def applied_user_ids(
        self, posting_id: str, user_ids: Iterable[str]
    ) -> Set[str]:
        user_ids = list(user_ids)
        if not user_ids:
            return set()
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobApplication.applicant_id).where(
                    JobApplication.job_id == posting_id,
                    JobApplication.applicant_id.in_(user_ids),
                )
            )
            return {str(user_id) for user_id in result.scalars().all()}

    @_guard
    async def find_urgent_recipients_in_box(
        self, box: BoundingBox, exclude_user_id: Optional[str] = None
    ) -> List[Recipient]:
        query = (
            select(User)
            .join(IndividualProfile, IndividualProfile.user_id == User.id)
            .options(selectinload(User.profile))
            .where(
                IndividualProfile.status == APPROVED,
                User.status == ACTIVE,
                IndividualProfile.latitude.is_not(None),
                IndividualProfile.longitude.is_not(None),
                IndividualProfile.latitude.between(box.min_lat, box.max_lat),
                IndividualProfile.longitude.between(box.min_lon, box.max_lon),
            )
        )
        if exclude_user_id is not None:
            query = query.where(User.id != exclude_user_id)

        async with self._session_factory() as session:
            result = await session.execute(query)
            users = result.scalars().all()
        return _parse_rows(users, recipient_from_row, "user", urgent=True)

    @_guard
    async def max_urgent_alert_distance(self) -> Optional[float]:
        async with self._session_factory() as session:
            result = await session.execute(select(func.max(User.urgent_job_max_distance)))
            value = result.scalar_one_or_none()
        return _to_float(value)
