"""
Exception hierarchy for the matching and notification core.
"""


class JobMatchError(Exception):
    """Base class for every error raised by the core."""


class ValidationError(JobMatchError, ValueError):
    """Input rejected before any scoring or delivery work."""


class InvalidLocationError(ValidationError):
    pass


class InvalidQueryError(ValidationError):
    pass


class InvalidPreferenceError(ValidationError):
    pass


class NotFoundError(JobMatchError, LookupError):
    """An id supplied by the caller does not exist in the repository."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class PostingNotFoundError(NotFoundError):
    def __init__(self, posting_id: str):
        super().__init__("Posting", posting_id)


class CandidateNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        super().__init__("User", user_id)


class RepositoryUnavailableError(JobMatchError):
    """The profile/job store could not be read; the whole round must be retried."""


class TransportError(JobMatchError):
    """A push or email send failed for one recipient."""
