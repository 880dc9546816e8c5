"""
Read interface the matching core needs from the profile/job store.

Implementations must raise ``RepositoryUnavailableError`` when the store
cannot be reached, and return ``None`` (not raise) for unknown ids.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, Set

from jobmatch.schemas.notification import Recipient
from jobmatch.schemas.posting import Posting, UrgentPosting
from jobmatch.services.geo.location import BoundingBox


class ProfileJobRepository(ABC):

    @abstractmethod
    async def get_posting(self, posting_id: str) -> Optional[Posting]:
        ...

    @abstractmethod
    async def get_urgent_posting(self, posting_id: str) -> Optional[UrgentPosting]:
        ...

    @abstractmethod
    async def get_recipient(self, user_id: str) -> Optional[Recipient]:
        ...

    @abstractmethod
    async def list_open_postings(
        self,
        limit: int,
        job_type: Optional[str] = None,
        exclude_ids: Sequence[str] = (),
        on_site_only: bool = False,
        box: Optional[BoundingBox] = None,
    ) -> List[Posting]:
        """
        Most recent active, verified, unexpired postings.

        ``box`` restricts the pull to postings whose coordinates fall
        inside it; ``on_site_only`` drops remote postings.
        """

    @abstractmethod
    async def list_alert_candidates(self, limit: int) -> List[Recipient]:
        """Most recently updated active, verified users with alerts enabled."""

    @abstractmethod
    async def list_candidates(
        self,
        limit: int,
        offset: int = 0,
        province: Optional[str] = None,
        district: Optional[str] = None,
        city: Optional[str] = None,
    ) -> List[Recipient]:
        """Approved profiles for talent search, optionally filtered by area."""

    @abstractmethod
    async def applied_posting_ids(
        self, user_id: str, posting_ids: Iterable[str]
    ) -> Set[str]:
        """Subset of ``posting_ids`` the user has already applied to."""

    @abstractmethod
    async def applied_user_ids(
        self, posting_id: str, user_ids: Iterable[str]
    ) -> Set[str]:
        """Subset of ``user_ids`` who already applied to the posting."""

    @abstractmethod
    async def find_urgent_recipients_in_box(
        self, box: BoundingBox, exclude_user_id: Optional[str] = None
    ) -> List[Recipient]:
        """Active, verified users whose profile location lies inside ``box``."""

    @abstractmethod
    async def max_urgent_alert_distance(self) -> Optional[float]:
        """Largest alert distance any user has configured, if any."""
