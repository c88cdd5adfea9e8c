"""
Application entry point: FastAPI app, lifespan and router wiring.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from messenger.config import settings
from messenger.db.pool import db_pool
from messenger.infrastructure.observability.logging import get_logger, setup_logging
from messenger.middleware import RequestContextMiddleware
from messenger.realtime.hub import realtime_hub
from messenger.routes import contacts, health, messages, realtime

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    try:
        logger.info("Initializing database pool")
        await db_pool.initialize()
    except Exception as e:
        logger.error("Failed to initialize services", error=str(e))
        raise

    logger.info(
        "All services initialized successfully",
        offline_broadcast_delay_s=settings.OFFLINE_BROADCAST_DELAY_SECONDS,
    )

    yield

    logger.info("Application shutting down")

    shutdown_errors = []

    # Stop pending offline broadcasts before the pool goes away
    try:
        await realtime_hub.shutdown()
    except Exception as e:
        logger.error("Error stopping realtime hub", error=str(e))
        shutdown_errors.append(f"Realtime: {e}")

    try:
        logger.info("Closing database pool")
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Messenger",
    description="Direct messaging with realtime presence and delivery",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(realtime.router)
app.include_router(messages.router)
app.include_router(contacts.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


# Added last so it wraps log_requests and the request id reaches that log line
app.add_middleware(RequestContextMiddleware)


if __name__ == "__main__":
    import uvicorn

    # Presence is held in memory: exactly one worker process
    uvicorn.run(app, host="0.0.0.0", port=8000, workers=1)
