"""
Proof Service Router Modules

Router Organization:
    - health: Health check and pipeline status
    - measurements: Submission, status polling, cancellation, images
"""

from apps.services.proof_service.routers.health import router as health_router
from apps.services.proof_service.routers.measurements import router as measurements_router

__all__ = [
    "health_router",
    "measurements_router",
]
