import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.core import config
from app.core.errors import WeeklyContestError
from app.core.observability import setup_logging
from app.core.scheduler import setup_scheduler, start_scheduler, stop_scheduler
from app.database import Database
from app.routes.contest.weekly_contest_routes import router as weekly_contest_router
from app.routes.scheduler.scheduler_routes import router as scheduler_router
from app.services.contest.audit import AuditService
from app.services.contest.events import participation_events
from app.utils.response import contest_error_response

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for the application"""
    # Startup
    setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    await Database.connect_db()

    audit_service = AuditService(Database.get_db())
    participation_events.subscribe(audit_service.on_participation)

    if config.SCHEDULER_ENABLED:
        setup_scheduler()
        start_scheduler()
    else:
        logger.info("Weekly contest scheduler disabled (SCHEDULER_ENABLED=false)")

    yield
    # Shutdown
    stop_scheduler()
    await participation_events.drain()
    participation_events.unsubscribe(audit_service.on_participation)
    await Database.close_db()


app = FastAPI(
    title=config.APP_NAME,
    version=config.APP_VERSION,
    description="Weekly contest scheduler and participation API",
    lifespan=lifespan
)

# CORS middleware
# In development, allow all origins for easier testing
cors_origins = [
    config.FRONTEND_URL,
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins if not config.DEBUG else ["*"],
    allow_credentials=not config.DEBUG,  # Can't use credentials with wildcard origin
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WeeklyContestError)
async def weekly_contest_error_handler(request: Request, exc: WeeklyContestError):
    """Any contest error that escapes a route keeps its kind and status"""
    return contest_error_response(exc)


# Include routers with /api prefix
app.include_router(weekly_contest_router, prefix="/api")
app.include_router(scheduler_router, prefix="/api")


@app.get("/")
async def read_root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {config.APP_NAME} API",
        "version": config.APP_VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
