# Profile/job repository
from jobmatch.services.repository.base import ProfileJobRepository
from jobmatch.services.repository.sql_repository import SqlProfileJobRepository
