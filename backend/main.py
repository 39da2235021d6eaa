"""Channel Stats Tracker - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from config import get_settings
from database import engine
from models import Base
from routers import channels_router, collection_router, stats_router
from services.scheduler import start_scheduler, stop_scheduler
from middleware.rate_limit import limiter, rate_limit_exceeded_handler

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
# httpx logs every request URL, which includes the API key
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - create tables and start collection on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if not settings.youtube_api_key:
        logger.warning("YOUTUBE_API_KEY is not set - YouTube channels will not be collected")
    if not settings.tokinsight_api_key:
        logger.warning("TOKINSIGHT_API_KEY is not set - TikTok channels will not be collected")

    # Hourly collection plus an immediate first sweep
    start_scheduler()

    yield

    stop_scheduler()
    await engine.dispose()


app = FastAPI(
    title="Channel Stats Tracker API",
    description="Hourly YouTube and TikTok channel statistics",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(channels_router)
app.include_router(collection_router)
app.include_router(stats_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "channel-stats-tracker"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Channel Stats Tracker API",
        "version": "0.1.0",
        "docs": "/docs",
    }
