"""FastAPI application entry point."""

import logging
import traceback
from contextlib import asynccontextmanager

from arq import create_pool
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError

from .config import settings
from .database import async_session_maker
from .deps import build_search_services, make_backfill_hook
from .exceptions import SearchServiceError
from .routers import search_router
from .services.search_engine import close_search_engine, init_search_engine
from .worker import parse_redis_url

# Configure logging to show errors
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    logger.info("Initializing Elasticsearch client...")
    engine = init_search_engine()

    logger.info("Connecting to Redis job queue...")
    arq_pool = None
    try:
        arq_pool = await create_pool(parse_redis_url(settings.redis_url))
        logger.info("Redis job queue connected")
    except Exception as e:
        logger.warning(f"Redis connection failed, index recreation will not enqueue a backfill: {e}")

    app.state.arq_pool = arq_pool
    app.state.search_services = build_search_services(
        engine,
        async_session_maker,
        on_recreated=make_backfill_hook(arq_pool),
    )
    logger.info("Search services ready")

    yield

    # Shutdown
    if arq_pool is not None:
        logger.info("Closing Redis job queue...")
        await arq_pool.close()

    logger.info("Closing Elasticsearch client...")
    await close_search_engine()
    logger.info("Elasticsearch client closed")


# Create FastAPI application
app = FastAPI(
    title="Search Gateway",
    description="Secure query compilation, result fusion and index lifecycle over Elasticsearch",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SearchServiceError)
async def search_service_error_handler(request: Request, exc: SearchServiceError):
    """Render the error taxonomy as a JSON error body with its mapped status."""
    if exc.status_code >= 500:
        logger.error(f"{exc} on {request.method} {request.url} (cause: {exc.cause!r})")
    else:
        logger.info(f"{exc} on {request.method} {request.url}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Database pool exhaustion handler - return 503 so clients can retry
@app.exception_handler(SQLAlchemyTimeoutError)
async def db_pool_exhausted_handler(request: Request, exc: SQLAlchemyTimeoutError):
    """Handle database connection pool exhaustion with 503 Service Unavailable."""
    logger.warning(
        f"Database pool exhausted on {request.method} {request.url}: {exc}"
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": "Service temporarily unavailable. Please retry.",
            "retry_after": 5,
        },
        headers={"Retry-After": "5"},
    )


# Global exception handler to log errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log all unhandled exceptions with full traceback."""
    logger.error(f"Unhandled exception on {request.method} {request.url}:")
    logger.error(f"Exception type: {type(exc).__name__}")
    logger.error(f"Exception message: {str(exc)}")
    logger.error(f"Traceback:\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Include API routers
app.include_router(search_router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "status": "healthy",
        "service": "Search Gateway",
        "version": "1.0.0",
    }
