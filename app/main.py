import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logfire

from app.config import settings
from app.database import init_db, close_db
from app.api import api_router
from app.api.errors import register_exception_handlers
from app.services.payment_service import payment_broker

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Logfire - auto-instruments FastAPI and httpx (scoring service calls)
if settings.logfire_token:
    logfire.configure(
        token=settings.logfire_token,
        service_name="clinic-scheduling-core",
        environment=settings.app_env,
        console=False,  # Disable console logging (too verbose)
    )
    logfire.instrument_httpx()
    logger.info("Logfire initialized")
else:
    # Keep logfire.info calls as no-ops without a token
    logfire.configure(send_to_logfire=False, console=False)
    logger.info("Logfire token not set - observability disabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting %s...", settings.app_name)
    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    description="Practitioner schedules, slot reservations and slot recommendations",
    version="1.0.0",
    lifespan=lifespan,
)

# Booking requests wait on this broker; payment callbacks resolve it
app.state.payment_broker = payment_broker

# Instrument FastAPI with Logfire
if settings.logfire_token:
    logfire.instrument_fastapi(app)

register_exception_handlers(app)

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
    return {
        "status": "healthy",
        "database": "connected",
        "scoring_service": "configured" if settings.scoring_service_url else "not_configured",
    }
