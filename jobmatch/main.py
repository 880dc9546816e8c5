import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from jobmatch.api.routes import matching, metrics, notifications
from jobmatch.config import configure_logging, settings
from jobmatch.core.exceptions import (
    NotFoundError,
    RepositoryUnavailableError,
    ValidationError,
)
from jobmatch.core.metrics import metrics_tracker
from jobmatch.database import engine

configure_logging(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up...")

    yield

    logger.info("Shutting down...")
    await metrics_tracker.close()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Job matching and notification engine",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Rejected {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RepositoryUnavailableError)
async def repository_unavailable_handler(request: Request, exc: RepositoryUnavailableError):
    logger.error(f"Repository unavailable while serving {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503, content={"detail": "Profile/job store unavailable, retry later"}
    )


# Include routers
app.include_router(matching.router)
app.include_router(notifications.router)
app.include_router(metrics.router)


@app.get("/")
def read_root():
    return HTMLResponse(content="<h1>JobMatch API is running</h1>")


@app.get("/health")
def health():
    return {"status": "ok"}
