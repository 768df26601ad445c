"""
Attestation Merger

Once a measurement is Completed, the verification network eventually
publishes proofs/<id>/attestation.json. Status reads pick it up lazily: the
first read that finds a well-formed file attaches it to the record, and from
then on the stored attestation is returned as-is.

This is best-effort enrichment. A missing, unreadable or malformed file
leaves the record unchanged and is never reported to the caller.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from apps.services.proof_service.schemas import (
    Attestation,
    Measurement,
    MeasurementStatus,
)
from apps.services.proof_service.services.record_store import RecordStore
from libs.core.exceptions import IllegalTransitionError, MeasurementNotFoundError

logger = logging.getLogger(__name__)

ATTESTATION_FILE = "attestation.json"


class AttestationMerger:
    def __init__(self, store: RecordStore, proofs_dir: Path):
        self.store = store
        self.proofs_dir = Path(proofs_dir)

    def attestation_path(self, measurement_id: str) -> Path:
        return self.proofs_dir / measurement_id / ATTESTATION_FILE

    async def merge(self, measurement_id: str) -> Optional[Measurement]:
        """
        Return the record, enriched with attestation data when available.

        Returns:
            The (possibly enriched) record, or None for an unknown identity
        """
        record = self.store.snapshot(measurement_id)
        if record is None:
            return None
        if record.status is not MeasurementStatus.COMPLETED or record.attestation is not None:
            return record

        attestation = await self._probe(measurement_id)
        if attestation is None:
            return record

        def _attach(current: Measurement) -> Measurement:
            # A concurrent read may have attached it first
            if current.attestation is not None:
                return current
            return current.with_attestation(attestation)

        try:
            merged = self.store.mutate(measurement_id, _attach)
        except (IllegalTransitionError, MeasurementNotFoundError) as e:
            logger.warning(f"[Attestation] Could not attach to {measurement_id}: {e.message}")
            return self.store.snapshot(measurement_id)

        logger.info(f"[Attestation] Found attestation data for measurement {measurement_id}")
        return merged

    async def _probe(self, measurement_id: str) -> Optional[Attestation]:
        path = self.attestation_path(measurement_id)

        def _load() -> Optional[bytes]:
            if not path.exists():
                return None
            return path.read_bytes()

        try:
            content = await asyncio.to_thread(_load)
        except OSError as e:
            logger.warning(f"[Attestation] Failed to read attestation file {path}: {e}")
            return None

        if content is None:
            return None

        try:
            return Attestation.model_validate_json(content)
        except ValidationError as e:
            logger.warning(
                f"[Attestation] Failed to parse attestation data for {measurement_id}: "
                f"{e.error_count()} error(s)"
            )
            return None
