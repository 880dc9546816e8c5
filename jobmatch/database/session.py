from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from jobmatch.config import settings

_CONNECT_ARGS = {
    "server_settings": {
        "application_name": "jobmatch_engine",
    }
}

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    pool_size=20,
    max_overflow=40,
    pool_pre_ping=True,
    pool_recycle=3600,
    pool_timeout=30,
    connect_args=_CONNECT_ARGS,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


def create_worker_sessionmaker():
    """
    Engine and session factory for one Celery task run.

    Each task drives its own event loop through asyncio.run, so pooled
    connections must not outlive it. Dispose the returned engine when done.
    """
    worker_engine = create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        poolclass=NullPool,
        connect_args=_CONNECT_ARGS,
    )
    factory = async_sessionmaker(
        bind=worker_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    return worker_engine, factory
