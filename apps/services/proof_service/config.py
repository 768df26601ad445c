"""
Proof Service Configuration Module

Centralizes environment variables, path constants, and the external tool
registry for the proof service.

Tool registry:
    config/tool-registry.yaml holds the argv template for each external tool.
    Templates use str.format placeholders that the tool gateway fills in:

        witness:  {circuit_wasm} {input_path} {witness_path}
        prove:    {proving_key} {witness_path} {proof_path} {public_path}
        verify:   {measurement_id}
"""

import logging
import pathlib
from functools import lru_cache
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================================
# Tool Registry Defaults
# =============================================================================

WITNESS_TOOL = "witness"
PROVE_TOOL = "prove"
VERIFY_TOOL = "verify"

DEFAULT_TOOL_COMMANDS: Dict[str, List[str]] = {
    WITNESS_TOOL: [
        "node",
        "circuit-compiled/zkHotdog_js/generate_witness.js",
        "{circuit_wasm}",
        "{input_path}",
        "{witness_path}",
    ],
    PROVE_TOOL: [
        "npx",
        "snarkjs",
        "groth16",
        "prove",
        "{proving_key}",
        "{witness_path}",
        "{proof_path}",
        "{public_path}",
    ],
    VERIFY_TOOL: ["node", "dist/verify_client.js", "{measurement_id}"],
}

# =============================================================================
# Pydantic Settings Class
# =============================================================================


class ProofServiceConfig(BaseSettings):
    """Proof service configuration using Pydantic settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Server settings
    host: str = Field(default="0.0.0.0", alias="PROOF_SERVICE_HOST")
    port: int = Field(default=3001, alias="PROOF_SERVICE_PORT")
    public_base_url: str = Field(default="http://localhost:3000", alias="PUBLIC_BASE_URL")

    # Artifact locations
    uploads_dir: pathlib.Path = Field(default=pathlib.Path("uploads"), alias="UPLOADS_DIR")
    proofs_dir: pathlib.Path = Field(default=pathlib.Path("proofs"), alias="PROOFS_DIR")
    circuit_wasm: str = Field(
        default="circuit-compiled/zkHotdog_js/zkHotdog.wasm", alias="CIRCUIT_WASM"
    )
    proving_key: str = Field(default="keys/zkHotdog_final.zkey", alias="PROVING_KEY")

    # External tools
    tool_registry_path: pathlib.Path = Field(
        default=pathlib.Path("config/tool-registry.yaml"), alias="TOOL_REGISTRY_PATH"
    )
    tool_workdir: pathlib.Path = Field(default=pathlib.Path("."), alias="TOOL_WORKDIR")

    # Concurrency
    prove_workers: int = Field(default=4, ge=1, alias="PROVE_WORKERS")
    verify_workers: int = Field(default=4, ge=1, alias="VERIFY_WORKERS")
    store_shards: int = Field(default=16, ge=1, alias="STORE_SHARDS")

    # Deadlines (seconds) and bounded retries per tool
    witness_timeout: float = Field(default=300.0, gt=0, alias="WITNESS_TIMEOUT")
    proof_timeout: float = Field(default=600.0, gt=0, alias="PROOF_TIMEOUT")
    verify_timeout: float = Field(default=900.0, gt=0, alias="VERIFY_TIMEOUT")
    witness_max_attempts: int = Field(default=2, ge=1, alias="WITNESS_MAX_ATTEMPTS")
    proof_max_attempts: int = Field(default=2, ge=1, alias="PROOF_MAX_ATTEMPTS")
    # Submitting to the verification network is not idempotent
    verify_max_attempts: int = Field(default=1, ge=1, alias="VERIFY_MAX_ATTEMPTS")
    tool_backoff_factor: float = Field(default=2.0, ge=1.0, alias="TOOL_BACKOFF_FACTOR")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    def status_url(self, measurement_id: str) -> str:
        """Get the polling URL handed back to the submitting client."""
        return f"{self.public_base_url.rstrip('/')}/status/{measurement_id}"

    def proof_dir(self, measurement_id: str) -> pathlib.Path:
        """Get the per-measurement artifact directory."""
        return self.proofs_dir / measurement_id


@lru_cache()
def get_config() -> ProofServiceConfig:
    """Get cached proof service configuration."""
    return ProofServiceConfig()


def load_tool_registry(path: Optional[pathlib.Path] = None) -> Dict[str, List[str]]:
    """
    Load external tool argv templates from YAML.

    Entries missing from the file keep their built-in defaults. A missing file
    means "use the defaults"; a malformed file is a startup error.
    """
    commands = {name: list(argv) for name, argv in DEFAULT_TOOL_COMMANDS.items()}
    registry_path = path or get_config().tool_registry_path

    if not registry_path.exists():
        logger.info(f"[Config] No tool registry at {registry_path}, using defaults")
        return commands

    with open(registry_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    tools = data.get("tools", {})
    if not isinstance(tools, dict):
        raise ValueError(f"{registry_path}: 'tools' must be a mapping")

    for name, argv in tools.items():
        if name not in commands:
            logger.warning(f"[Config] Ignoring unknown tool '{name}' in {registry_path}")
            continue
        if not isinstance(argv, list) or not argv or not all(isinstance(a, str) for a in argv):
            raise ValueError(f"{registry_path}: tool '{name}' must be a non-empty list of strings")
        commands[name] = argv

    logger.info(f"[Config] Loaded tool registry from {registry_path}")
    return commands
