"""
Proof Service FastAPI Application - Measurement Proof Pipeline

Accepts a photographed measurement (image plus two 3D points), produces a
zero-knowledge proof of the distance between them with external tooling,
submits it for verification and reports status to pollers.

Structure:
    - config.py: Environment settings and tool registry loading
    - schemas.py: Measurement, status and attestation models
    - dependencies.py: Singleton instances with lazy initialization
    - lifespan.py: Application startup/shutdown handlers
    - services/: Store, normalizer, tool gateway, orchestrator, merger
    - routers/: HTTP endpoints

Run:
    uvicorn apps.services.proof_service.app:app --host 0.0.0.0 --port 3001
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.services.proof_service.lifespan import lifespan
from apps.services.proof_service.routers import health_router, measurements_router

logger = logging.getLogger("uvicorn.error")

# =============================================================================
# Application Factory
# =============================================================================

app = FastAPI(
    title="Measurement Proof Service",
    description="Zero-knowledge distance proofs for photographed measurements",
    version="1.0.0",
    lifespan=lifespan,
)

# =============================================================================
# Middleware
# =============================================================================

# CORS: the capture client is served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# Routers
# =============================================================================

# Health check endpoints
app.include_router(health_router)

# Submission, status, cancellation and image endpoints
app.include_router(measurements_router)


@app.get("/api/info")
async def api_info():
    """Service identity for clients probing the backend."""
    return {"service": app.title, "version": app.version}


if __name__ == "__main__":
    import uvicorn

    from apps.services.proof_service.config import get_config

    config = get_config()
    uvicorn.run(app, host=config.host, port=config.port)
