import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logfire

from medibook.config import settings
from medibook.database import init_db, close_db
from medibook.api import api_router
from medibook.services.reminder_scheduler import ReminderScheduler

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Logfire - auto-instruments FastAPI
if settings.logfire_token:
    logfire.configure(
        token=settings.logfire_token,
        service_name="medibook-scheduling",
        environment=settings.app_env,
        console=False,  # Disable console logging (too verbose)
    )
    logger.info("Logfire initialized")
else:
    logger.warning("Logfire token not set - observability disabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting %s...", settings.app_name)
    await init_db()
    logger.info("Database initialized")

    scheduler = ReminderScheduler()
    app.state.reminder_scheduler = scheduler
    if settings.reminder_scheduler_enabled:
        scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await scheduler.stop()
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    description="Appointment slot booking and reminder service",
    version="1.0.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
if settings.logfire_token:
    logfire.instrument_fastapi(app)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """Detailed health check."""
    scheduler = getattr(app.state, "reminder_scheduler", None)
    return {
        "status": "healthy",
        "database": "connected",
        "reminder_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "timezone": settings.timezone,
    }
