# conftest.py
# Ensure the repository root is on sys.path so pytest can import the
# package-style modules (e.g. apps.services.proof_service) consistently.

import sys
from pathlib import Path

import pytest

# conftest is at: apps/tests/conftest.py
# Walk up two levels to reach the repository root.
ROOT = Path(__file__).resolve().parents[2]
ROOT_STR = str(ROOT)

if ROOT_STR not in sys.path:
    # Insert at front so repo root takes precedence during imports
    sys.path.insert(0, ROOT_STR)

from apps.services.proof_service.config import ProofServiceConfig  # noqa: E402
from apps.services.proof_service.services.record_store import RecordStore  # noqa: E402
from apps.tests.fakes import FakeToolGateway  # noqa: E402
from libs.core.logging_config import setup_logging  # noqa: E402

# Configure logging once, without handlers, so the app lifespan does not
# write logs/ into the working tree or replace pytest's capture handlers.
setup_logging(log_to_console=False, log_to_file=False, service_name="proof_service_tests")


@pytest.fixture
def service_config(tmp_path):
    """Configuration rooted in a temp dir, fast deadlines, no retries."""
    return ProofServiceConfig(
        uploads_dir=tmp_path / "uploads",
        proofs_dir=tmp_path / "proofs",
        tool_registry_path=tmp_path / "tool-registry.yaml",
        public_base_url="http://testserver",
        prove_workers=2,
        verify_workers=2,
        store_shards=4,
        witness_timeout=5.0,
        proof_timeout=5.0,
        verify_timeout=5.0,
        witness_max_attempts=1,
        proof_max_attempts=1,
        verify_max_attempts=1,
    )


@pytest.fixture
def store():
    return RecordStore(shard_count=4)


@pytest.fixture
def fake_gateway():
    return FakeToolGateway()
