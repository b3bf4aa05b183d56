"""
Ladder API Server

FastAPI server exposing the competitive-integrity engine: match ledger,
confirmation lifecycle, tournaments, seasons and challenges.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from ladder.api.auth_dependencies import get_storage
from ladder.api.routes import router, limiter as routes_limiter
from ladder.services.errors import LadderError, StateConflictError
from ladder.services.expiry_sweep_service import get_expiry_sweep_service

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up Ladder API...")

    storage = get_storage()

    if os.getenv("STORAGE_BACKEND", "sql").strip().lower() == "sql":
        from ladder.database import db

        # Fallback for environments where migrations have not been run
        await db.init_database()
        logger.info("Database initialized")

    sweep_service = get_expiry_sweep_service(get_storage)
    sweep_service.start()

    yield  # App is running

    # Shutdown
    logger.info("Shutting down Ladder API...")

    try:
        sweep_service.stop()
    except Exception as e:
        logger.error(f"Error stopping expiry sweep worker: {e}", exc_info=True)

    await storage.close()


app = FastAPI(
    title="Ladder API",
    description="Ratings, match confirmation, tournaments, seasons and challenges for a player ladder",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(LadderError)
async def ladder_error_handler(request: Request, exc: LadderError):
    """Map engine errors onto their HTTP status codes."""
    content = {"detail": exc.user_message}
    if isinstance(exc, StateConflictError):
        content["current_state"] = jsonable_encoder(exc.current_state)
    if exc.status_code >= 403:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
