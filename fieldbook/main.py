"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldbook.api import availability, bookings, fields
from fieldbook.core.config import settings
from fieldbook.core.database import init_db
from fieldbook.core.exceptions import ConfigurationError, DomainException
from fieldbook.services.scheduler import maintenance_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Fieldbook booking service")
    logger.info(f"Debug mode: {settings.DEBUG}")

    await init_db()

    if settings.SCHEDULER_ENABLED:
        await maintenance_scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down Fieldbook booking service")
    await maintenance_scheduler.stop()


# Create FastAPI app
app = FastAPI(
    title="Fieldbook",
    description="Field and court slot reservations with pricing and cancellation policies",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException):
    if isinstance(exc, ConfigurationError):
        logger.error(f"Configuration error on {request.url.path}: {exc.message}")
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content=jsonable_encoder({"detail": http_exc.detail}))


# Include routers
app.include_router(fields.router)
app.include_router(availability.router)
app.include_router(bookings.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "scheduler_running": maintenance_scheduler.running,
    }
