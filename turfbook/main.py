"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from turfbook.api import bookings, maintenance, slots, stations
from turfbook.core.config import settings
from turfbook.core.database import init_db
from turfbook.core.errors import BookingError
from turfbook.services.scheduler import maintenance_scheduler

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
    logger.info("Starting Turfbook booking service")
    logger.info(f"Debug mode: {settings.DEBUG}")

    await init_db()

    if settings.SCHEDULER_ENABLED:
        await maintenance_scheduler.start()
    else:
        logger.info("Maintenance scheduler disabled")

    yield

    # Shutdown
    logger.info("Shutting down Turfbook booking service")
    await maintenance_scheduler.stop()


# Create FastAPI app
app = FastAPI(
    title="Turfbook",
    description="Slot listing, conflict-free booking and booking maintenance for the venue",
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

# Include routers
app.include_router(stations.router)
app.include_router(slots.router)
app.include_router(bookings.router)
app.include_router(maintenance.router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error}: {exc.details}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    missing = request.url.path == "/api/bookings/create" and any(
        err.get("type") == "missing" for err in errors
    )
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in errors
    )
    logger.info(f"Rejected {request.method} {request.url.path}: {details}")
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": "Missing required booking data" if missing else "Invalid request",
            "details": details,
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "scheduler_running": maintenance_scheduler.running,
    }
