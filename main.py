import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from prono import config
from prono.database import create_db_and_tables
from prono.exceptions import PronoError
from prono.logging_config import setup_logging
from prono.services.scheduler import build_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup: logging, tables, background jobs
    setup_logging()
    create_db_and_tables()

    scheduler = None
    if config.SCHEDULER_ENABLED:
        scheduler = build_scheduler()
        scheduler.start()
    app.state.scheduler = scheduler
    yield
    # Shutdown
    if scheduler:
        scheduler.stop()


# Initialize FastAPI app
app = FastAPI(
    title="League of Prono",
    description="Predict League of Legends esports matches and compete with friends",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(PronoError)
async def prono_error_handler(request: Request, exc: PronoError):
    if exc.status_code >= 500:
        logger.error(f"{exc.message} - Path: {request.url.path}")
    else:
        logger.info(f"{exc.status_code} {exc.message} - Path: {request.url.path}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
from prono.routers import friends, groups, leaderboard, matches, users  # noqa: E402

app.include_router(users.router)
app.include_router(friends.router)
app.include_router(matches.router)
app.include_router(groups.router)
app.include_router(leaderboard.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
