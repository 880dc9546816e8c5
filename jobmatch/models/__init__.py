from jobmatch.models.user import IndividualProfile, User
from jobmatch.models.job import Employer, JobApplication, JobPosting, UrgentJob

__all__ = [
    "Employer",
    "IndividualProfile",
    "JobApplication",
    "JobPosting",
    "UrgentJob",
    "User",
]
