"""
Health Check Router

Endpoints:
    GET /healthz - Kubernetes-style health check
    GET /health  - Alias for /healthz
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter

from apps.services.proof_service.dependencies import get_orchestrator, get_record_store

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> Dict[str, Any]:
    """
    Health check with pipeline worker and queue status.

    Returns:
        "healthy" while the pipeline workers run, "degraded" otherwise
    """
    pipeline = get_orchestrator().stats()
    return {
        "status": "healthy" if pipeline["running"] else "degraded",
        "measurements": len(get_record_store()),
        "pipeline": pipeline,
    }


@router.get("/health")
async def health() -> Dict[str, Any]:
    """Alias for /healthz."""
    return await healthz()
