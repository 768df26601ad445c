"""Pydantic models for measurements, their status machine and attestations."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from libs.core.exceptions import IllegalTransitionError


# =============================================================================
# Status
# =============================================================================


class MeasurementStatus(str, Enum):
    """Lifecycle of a measurement. Completed and Failed are terminal."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]

    def can_transition(self, target: "MeasurementStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: Dict[MeasurementStatus, frozenset] = {
    MeasurementStatus.PENDING: frozenset({MeasurementStatus.PROCESSING}),
    MeasurementStatus.PROCESSING: frozenset(
        {MeasurementStatus.COMPLETED, MeasurementStatus.FAILED}
    ),
    MeasurementStatus.COMPLETED: frozenset(),
    MeasurementStatus.FAILED: frozenset(),
}


# =============================================================================
# Points
# =============================================================================


class Point3D(BaseModel):
    """Raw client coordinates, in meters."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    x: float
    y: float
    z: float


class NormalizedPoint(BaseModel):
    """Fixed-point coordinates as consumed by the proving circuit."""

    model_config = ConfigDict(frozen=True)

    x: StrictInt
    y: StrictInt
    z: StrictInt

    def as_list(self) -> List[int]:
        return [self.x, self.y, self.z]


# =============================================================================
# Attestation
# =============================================================================


class Attestation(BaseModel):
    """Inclusion evidence published by the verification network.

    Field names on the wire are camelCase; that is what the external
    publisher writes and what the frontend reads back.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    attestation_id: int = Field(alias="attestationId", ge=0)
    merkle_path: List[str] = Field(default_factory=list, alias="merklePath")
    leaf_count: int = Field(default=0, alias="leafCount", ge=0)
    index: int = Field(default=0, ge=0)


# =============================================================================
# Measurement
# =============================================================================


class Measurement(BaseModel):
    """A submitted measurement. Immutable; changes produce a new copy."""

    model_config = ConfigDict(frozen=True)

    id: str
    image_path: str
    start_point: NormalizedPoint
    end_point: NormalizedPoint
    status: MeasurementStatus = MeasurementStatus.PENDING
    attestation: Optional[Attestation] = None
    failure_reason: Optional[str] = None
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)

    def transition(
        self, target: MeasurementStatus, reason: Optional[str] = None
    ) -> "Measurement":
        """Return a copy in the target status, or raise if the move is illegal."""
        if not self.status.can_transition(target):
            raise IllegalTransitionError(
                self.status.value, target.value, {"measurement_id": self.id}
            )
        update: Dict[str, Any] = {"status": target, "updated_at": time.time()}
        if reason is not None:
            update["failure_reason"] = reason
        return self.model_copy(update=update)

    def with_attestation(self, attestation: Attestation) -> "Measurement":
        """Attach attestation data. Allowed once, and only when Completed."""
        if self.status is not MeasurementStatus.COMPLETED:
            raise IllegalTransitionError(
                self.status.value, "attested", {"measurement_id": self.id}
            )
        if self.attestation is not None:
            raise IllegalTransitionError(
                "attested", "attested", {"measurement_id": self.id}
            )
        return self.model_copy(
            update={"attestation": attestation, "updated_at": time.time()}
        )

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# API payloads
# =============================================================================


class SubmissionResponse(BaseModel):
    url: str
    measurement_id: str
