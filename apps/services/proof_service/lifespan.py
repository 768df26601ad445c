"""
Proof Service Application Lifespan Handler

Startup builds the singletons and starts the pipeline workers; shutdown
stops them. Measurements still in flight at shutdown are not resumed.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from apps.services.proof_service.dependencies import (
    get_orchestrator,
    get_service_config,
    initialize_all,
)
from libs.core.logging_config import get_logger, setup_logging

# uvicorn.error until setup_logging has run
logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Startup:
        - Configures logging
        - Initializes all singleton dependencies
        - Starts the prove/verify worker pools

    Shutdown:
        - Stops the worker pools (running tools are killed)

    Args:
        app: FastAPI application instance
    """
    # ==========================================================================
    # STARTUP
    # ==========================================================================

    setup_logging(level=get_service_config().log_level, service_name="proof_service")
    service_logger = get_logger("proof_service")
    service_logger.info("Proof service starting...")

    try:
        initialize_all()
        service_logger.info("All dependencies initialized successfully")
    except Exception as e:
        service_logger.error(f"Failed to initialize dependencies: {e}")
        raise

    orchestrator = get_orchestrator()
    await orchestrator.start()

    config = get_service_config()
    service_logger.info(f"Proof service ready to accept requests on port {config.port}")

    # ==========================================================================
    # YIELD - Application runs here
    # ==========================================================================

    yield

    # ==========================================================================
    # SHUTDOWN
    # ==========================================================================

    service_logger.info("Proof service shutting down...")
    await orchestrator.stop()
    service_logger.info("Proof service shutdown complete")
