"""
Proof Service Dependencies Module

Provides singleton instances with lazy initialization for the proof service.
Routers reach the core only through these getters, so tests can swap in
their own instances with the set_* helpers.
"""

import logging
from typing import Optional

from apps.services.proof_service.config import ProofServiceConfig, get_config, load_tool_registry
from apps.services.proof_service.services.attestation import AttestationMerger
from apps.services.proof_service.services.image_store import ImageStore
from apps.services.proof_service.services.ingestion import IngestionService
from apps.services.proof_service.services.orchestrator import PipelineOrchestrator
from apps.services.proof_service.services.record_store import RecordStore
from apps.services.proof_service.services.tool_gateway import SubprocessToolGateway, ToolGateway

logger = logging.getLogger(__name__)

# =============================================================================
# Private Singleton Storage
# =============================================================================

_config: Optional[ProofServiceConfig] = None
_record_store: Optional[RecordStore] = None
_tool_gateway: Optional[ToolGateway] = None
_orchestrator: Optional[PipelineOrchestrator] = None
_attestation_merger: Optional[AttestationMerger] = None
_image_store: Optional[ImageStore] = None
_ingestion_service: Optional[IngestionService] = None


# =============================================================================
# Configuration
# =============================================================================


def get_service_config() -> ProofServiceConfig:
    """Get the active configuration (env-derived unless overridden)."""
    global _config
    if _config is None:
        _config = get_config()
    return _config


def set_service_config(config: ProofServiceConfig) -> None:
    """Override configuration. Call before any other getter."""
    global _config
    _config = config


# =============================================================================
# Core Components
# =============================================================================


def get_record_store() -> RecordStore:
    """Get the record store singleton."""
    global _record_store
    if _record_store is None:
        _record_store = RecordStore(shard_count=get_service_config().store_shards)
        logger.info(f"[Dependencies] Record store initialized ({_record_store.shard_count} shards)")
    return _record_store


def get_tool_gateway() -> ToolGateway:
    """Get the external tool gateway singleton."""
    global _tool_gateway
    if _tool_gateway is None:
        config = get_service_config()
        _tool_gateway = SubprocessToolGateway(
            load_tool_registry(config.tool_registry_path),
            workdir=config.tool_workdir,
        )
        logger.info("[Dependencies] Subprocess tool gateway initialized")
    return _tool_gateway


def set_tool_gateway(gateway: ToolGateway) -> None:
    """Override the tool gateway. Call before get_orchestrator()."""
    global _tool_gateway
    _tool_gateway = gateway


def get_orchestrator() -> PipelineOrchestrator:
    """Get the pipeline orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = PipelineOrchestrator(
            get_record_store(),
            get_tool_gateway(),
            get_service_config(),
        )
        logger.info("[Dependencies] Pipeline orchestrator initialized")
    return _orchestrator


def get_attestation_merger() -> AttestationMerger:
    """Get the attestation merger singleton."""
    global _attestation_merger
    if _attestation_merger is None:
        _attestation_merger = AttestationMerger(get_record_store(), get_service_config().proofs_dir)
        logger.info("[Dependencies] Attestation merger initialized")
    return _attestation_merger


def get_image_store() -> ImageStore:
    """Get the image store singleton."""
    global _image_store
    if _image_store is None:
        _image_store = ImageStore(get_service_config().uploads_dir)
        logger.info("[Dependencies] Image store initialized")
    return _image_store


def get_ingestion_service() -> IngestionService:
    """Get the ingestion service singleton."""
    global _ingestion_service
    if _ingestion_service is None:
        _ingestion_service = IngestionService(
            get_record_store(),
            get_orchestrator(),
            get_image_store(),
            get_service_config(),
        )
        logger.info("[Dependencies] Ingestion service initialized")
    return _ingestion_service


# =============================================================================
# Initialization
# =============================================================================


def initialize_all() -> None:
    """Eagerly build every singleton in dependency order."""
    get_service_config()
    get_record_store()
    get_tool_gateway()
    get_orchestrator()
    get_attestation_merger()
    get_image_store()
    get_ingestion_service()


def reset_all() -> None:
    """Drop every singleton. Used by tests."""
    global _config, _record_store, _tool_gateway, _orchestrator
    global _attestation_merger, _image_store, _ingestion_service
    _config = None
    _record_store = None
    _tool_gateway = None
    _orchestrator = None
    _attestation_merger = None
    _image_store = None
    _ingestion_service = None
