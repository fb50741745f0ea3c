"""FreelanceHub Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .database import build_marketplace
from .errors import register_exception_handlers
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import jobs_router, milestones_router, notifications_router

logger = get_logger("freelancehub.api")

SERVICE_NAME = "freelancehub-backend"
VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(
        f"Starting FreelanceHub Backend API (debug={settings.debug}, storage={settings.storage_backend})"
    )
    yield
    # Shutdown
    logger.info("Shutting down FreelanceHub Backend API")


app = FastAPI(
    title="FreelanceHub Backend API",
    description="Job marketplace API: postings, applications, milestones, ratings and notifications",
    version=VERSION,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter

# Errors are always {"message": ...}
register_exception_handlers(app)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(jobs_router, prefix=settings.api_prefix)
app.include_router(milestones_router, prefix=settings.api_prefix)
app.include_router(notifications_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "status": "ok",
    }


@app.get("/health")
async def health():
    """Detailed health check with actual storage verification."""
    storage_status = "disconnected"
    try:
        market = build_marketplace(get_settings())
        # Simple query to verify the backend answers
        market.jobs.storage.count_jobs()
        storage_status = "connected"
    except Exception as e:
        storage_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if storage_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "storage": storage_status,
        "backend": get_settings().storage_backend,
    }
