"""
FastAPI application entry point for theNexus API.

Startup refuses to serve traffic if the permission catalog fails its
self-check or settings are malformed.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from nexus.api.errors import register_exception_handlers
from nexus.api.routes import admin_credits, dual_role, identity, introductions, subscription
from nexus.config.settings import get_settings
from nexus.constants.permissions import verify_permission_catalog
from nexus.database.session import get_session_factory, reset_engine
from nexus.jobs.expiry_sweeper import run_sweeper_loop
from nexus.platform.errors import ConfigurationError

# Configure structured logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting theNexus API")

    try:
        verify_permission_catalog()
        settings = get_settings()
    except ConfigurationError as e:
        logger.critical("Refusing to start: configuration error", extra={"error": str(e)})
        raise

    if settings.auth_configured:
        logger.info("Clerk authentication configured", extra={"issuer": settings.clerk_issuer})
    else:
        logger.warning(
            "Clerk authentication not configured. Set CLERK_FRONTEND_API; "
            "authenticated endpoints will return 401."
        )

    stop_event = asyncio.Event()
    sweeper_task = None
    if settings.expiry_sweep_enabled and settings.database_url:
        sweeper_task = asyncio.create_task(
            run_sweeper_loop(
                get_session_factory(),
                interval_seconds=settings.expiry_sweep_interval_seconds,
                stop_event=stop_event,
                batch_size=settings.expiry_sweep_batch_size,
            )
        )
    elif not settings.database_url:
        logger.error("DATABASE_URL is not set. Database endpoints will return 503.")

    yield

    # Shutdown
    stop_event.set()
    if sweeper_task is not None:
        await sweeper_task
    reset_engine()
    logger.info("Shutting down theNexus API")


app = FastAPI(
    title="theNexus API",
    description="Introductions between HR partners and professionals",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(subscription.router)
app.include_router(introductions.router)
app.include_router(identity.router)
app.include_router(admin_credits.router)
app.include_router(dual_role.router)


@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
