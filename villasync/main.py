import logging
import os
from contextlib import asynccontextmanager

from arq import create_pool
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
from . import models, models_sync  # noqa: F401
from .config import SCHEDULER_ENABLED
from .database import Base, engine
from .domain.bookings.router import router as bookings_router
from .domain.calendar.router import router as calendar_router
from .domain.integrations.router import router as integrations_router
from .domain.sync.router import router as sync_router
from .domain.sync.scheduler import SyncScheduler
from .worker import get_redis_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    scheduler = SyncScheduler()
    app.state.scheduler = scheduler
    app.state.job_queue = None
    if SCHEDULER_ENABLED:
        scheduler.start()
    else:
        # The ARQ worker runs the cron jobs and owns the sync gate
        logger.info("In-process sync scheduler disabled (SCHEDULER_ENABLED=false)")
        try:
            app.state.job_queue = await create_pool(get_redis_settings())
            logger.info("✅ Connected to ARQ job queue for manual syncs")
        except Exception as e:
            logger.error(f"❌ Could not connect to ARQ job queue, manual sync unavailable: {e}")

    yield

    scheduler.stop()
    if app.state.job_queue is not None:
        await app.state.job_queue.close()
    logger.info("Application shutting down...")


app = FastAPI(title="VillaSync API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(bookings_router)
app.include_router(calendar_router)
app.include_router(integrations_router)
app.include_router(sync_router)


@app.get("/")
def root():
    return {"message": "VillaSync API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
