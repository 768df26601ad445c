"""
Proof Service Modules

Record store, pipeline orchestration, external tool access, attestation
enrichment and ingestion.
"""

from apps.services.proof_service.services.record_store import RecordStore

from apps.services.proof_service.services.normalizer import (
    SCALE_FACTOR,
    normalize_point,
    normalize_points,
    squared_distance,
    build_pipeline_input,
)

from apps.services.proof_service.services.tool_gateway import (
    ToolGateway,
    ToolRun,
    SubprocessToolGateway,
)

from apps.services.proof_service.services.tool_policy import ToolPolicy

from apps.services.proof_service.services.orchestrator import (
    PipelineOrchestrator,
    build_policies,
    PROVE_STAGE,
    VERIFY_STAGE,
)

from apps.services.proof_service.services.attestation import AttestationMerger
from apps.services.proof_service.services.image_store import ImageStore
from apps.services.proof_service.services.ingestion import IngestionService, parse_point

__all__ = [
    # Store
    "RecordStore",
    # Normalizer
    "SCALE_FACTOR",
    "normalize_point",
    "normalize_points",
    "squared_distance",
    "build_pipeline_input",
    # Tools
    "ToolGateway",
    "ToolRun",
    "SubprocessToolGateway",
    "ToolPolicy",
    # Pipeline
    "PipelineOrchestrator",
    "build_policies",
    "PROVE_STAGE",
    "VERIFY_STAGE",
    # Status reads
    "AttestationMerger",
    # Ingestion
    "ImageStore",
    "IngestionService",
    "parse_point",
]
