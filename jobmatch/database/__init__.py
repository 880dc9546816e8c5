from .base import Base
from .session import engine, AsyncSessionLocal, create_worker_sessionmaker

__all__ = ["Base", "engine", "AsyncSessionLocal", "create_worker_sessionmaker"]
