"""
Measurement Router

Submission returns immediately with an identity and a polling URL; progress
is observed through the status endpoint.

Endpoints:
    POST /measurements - Submit image + startPoint + endPoint (multipart)
    GET /measurements/active - List measurements still in the pipeline
    POST /measurements/{measurement_id}/cancel - Cancel a measurement
    GET /status/{measurement_id} - Status, with attestation once published
    GET /img/{measurement_id} - Stored image
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse

from apps.services.proof_service.dependencies import (
    get_attestation_merger,
    get_image_store,
    get_ingestion_service,
    get_orchestrator,
    get_record_store,
)
from apps.services.proof_service.schemas import SubmissionResponse
from libs.core.exceptions import (
    ArtifactStorageError,
    MeasurementNotFoundError,
    MeasurementValidationError,
)

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["measurements"])


@router.post("/measurements", response_model=SubmissionResponse)
async def submit_measurement(
    image: Optional[UploadFile] = File(None),
    start_point: Optional[str] = Form(None, alias="startPoint"),
    end_point: Optional[str] = Form(None, alias="endPoint"),
) -> SubmissionResponse:
    """
    Accept a measurement and start proof generation in the background.

    Returns:
        Measurement ID and the status URL to poll

    Raises:
        HTTPException 400 on missing/malformed fields, 500 if the image
        cannot be stored
    """
    image_data = await image.read() if image is not None else None

    try:
        response = await get_ingestion_service().submit(image_data, start_point, end_point)
    except MeasurementValidationError as e:
        raise HTTPException(400, e.message)
    except ArtifactStorageError as e:
        logger.error(f"[Measurements] {e.message}")
        raise HTTPException(500, e.message)

    logger.info(f"[Measurements] Submitted {response.measurement_id}")
    return response


@router.get("/measurements/active")
async def list_active_measurements() -> Dict[str, Any]:
    """
    List measurements that are Pending or Processing.

    Returns:
        Active measurement summaries and count
    """
    active = [
        {
            "measurement_id": m.id,
            "status": m.status.value,
            "created_at": m.created_at,
            "updated_at": m.updated_at,
        }
        for m in get_record_store().list_active()
    ]
    return {"active_measurements": active, "count": len(active)}


@router.post("/measurements/{measurement_id}/cancel")
async def cancel_measurement(measurement_id: str) -> Dict[str, Any]:
    """
    Cancel a measurement that has not finished.

    Raises:
        HTTPException 404 if the measurement is unknown
    """
    try:
        return get_orchestrator().cancel(measurement_id)
    except MeasurementNotFoundError as e:
        raise HTTPException(404, e.message)


@router.get("/status/{measurement_id}")
async def measurement_status(measurement_id: str) -> Dict[str, Any]:
    """
    Get a measurement's status.

    Once Completed, the attestation published by the verification network
    is attached on the first read that finds it.

    Raises:
        HTTPException 404 if the measurement is unknown
    """
    record = await get_attestation_merger().merge(measurement_id)
    if record is None:
        raise HTTPException(404, f"Measurement with ID {measurement_id} not found")
    return record.to_response()


@router.get("/img/{measurement_id}")
async def measurement_image(measurement_id: str) -> FileResponse:
    """Serve the stored image for a measurement."""
    images = get_image_store()
    if not images.exists(measurement_id):
        raise HTTPException(404, f"Image with ID {measurement_id} not found")
    return FileResponse(
        images.path_for(measurement_id),
        media_type="image/jpeg",
        filename=f"{measurement_id}.jpg",
        content_disposition_type="inline",
    )
