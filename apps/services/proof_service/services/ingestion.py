"""
Measurement ingestion: validate, normalize, persist the image, create the
Pending record and hand it to the pipeline. Returns as soon as the pipeline
has the measurement queued.
"""

import asyncio
import logging
import uuid
from typing import Optional, Union

from pydantic import ValidationError

from apps.services.proof_service.config import ProofServiceConfig
from apps.services.proof_service.schemas import Measurement, Point3D, SubmissionResponse
from apps.services.proof_service.services.image_store import ImageStore
from apps.services.proof_service.services.normalizer import normalize_points
from apps.services.proof_service.services.orchestrator import PipelineOrchestrator
from apps.services.proof_service.services.record_store import RecordStore
from libs.core.exceptions import MeasurementValidationError

logger = logging.getLogger(__name__)

RawField = Optional[Union[str, bytes]]


def parse_point(raw: RawField, field_name: str, label: str) -> Point3D:
    """Parse a JSON-encoded point, e.g. '{"x": 0.1, "y": 0, "z": -0.25}'."""
    if raw is None or (isinstance(raw, (str, bytes)) and not raw.strip()):
        raise MeasurementValidationError(f"Missing {label} data")
    try:
        return Point3D.model_validate_json(raw)
    except ValidationError as e:
        raise MeasurementValidationError(
            f"Failed to parse {field_name} JSON: {e.errors()[0]['msg']}",
            {"field": field_name},
        ) from e


class IngestionService:
    def __init__(
        self,
        store: RecordStore,
        orchestrator: PipelineOrchestrator,
        images: ImageStore,
        config: ProofServiceConfig,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.images = images
        self.config = config

    async def submit(
        self, image: Optional[bytes], start_raw: RawField, end_raw: RawField
    ) -> SubmissionResponse:
        """
        Accept a measurement.

        Raises:
            MeasurementValidationError: missing or malformed field; nothing stored
            ArtifactStorageError: image could not be written; no record created
        """
        if not image:
            raise MeasurementValidationError("Missing image data")
        start = parse_point(start_raw, "startPoint", "start point")
        end = parse_point(end_raw, "endPoint", "end point")

        start_point, end_point = normalize_points(start, end)

        measurement_id = str(uuid.uuid4())
        image_path = await asyncio.to_thread(self.images.save, measurement_id, image)

        record = Measurement(
            id=measurement_id,
            image_path=str(image_path),
            start_point=start_point,
            end_point=end_point,
        )
        self.store.create(measurement_id, record)
        self.orchestrator.submit(measurement_id)

        logger.info(f"[Ingest] Accepted measurement {measurement_id}")
        return SubmissionResponse(
            url=self.config.status_url(measurement_id),
            measurement_id=measurement_id,
        )
