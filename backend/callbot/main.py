"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from callbot.api.v1.routes import api_router
from callbot.api.v1.endpoints import test_call
from callbot.core.config import ConfigManager, get_settings
from callbot.infrastructure.telephony.factory import CallControlFactory

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Loads settings and the user directory
    - Validates configuration
    - Builds the call orchestrator

    Shutdown:
    - Cancels pending follow-up actions
    - Releases the call-control client
    """
    # ========================
    # STARTUP
    # ========================
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting calling bot...")

    from callbot.services.call_orchestrator import build_call_orchestrator
    from callbot.core.validation import validate_config_on_startup

    orchestrator = build_call_orchestrator(settings, ConfigManager(settings.environment))

    strict_validation = settings.environment == "production"
    try:
        validate_config_on_startup(settings, orchestrator.directory, strict=strict_validation)
    except RuntimeError as e:
        if strict_validation:
            logger.error(f"Startup failed: {e}")
            raise
        logger.warning(f"Configuration warnings (non-fatal in {settings.environment}): {e}")

    app.state.orchestrator = orchestrator
    logger.info("Calling bot started successfully")

    yield  # Application is running

    # ========================
    # SHUTDOWN
    # ========================
    logger.info("Shutting down calling bot...")
    app.state.orchestrator = None

    try:
        await orchestrator.aclose()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")

    logger.info("Calling bot shutdown complete")


settings = get_settings()

app = FastAPI(
    title="Calling Bot",
    description="Call orchestration over Microsoft Graph Communications",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan
)

# Test-call trigger lives at the root, outside the versioned API
app.include_router(test_call.router)

# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": "Calling Bot API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns basic health status, the available call-control providers and
    follow-up scheduler counters.
    """
    health = {"status": "healthy", "providers": CallControlFactory.list_providers()}

    orchestrator = getattr(app.state, "orchestrator", None)
    if orchestrator is not None:
        health["call_control"] = orchestrator.client.name
        health["scheduler"] = orchestrator.scheduler.get_stats()

    return health


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
