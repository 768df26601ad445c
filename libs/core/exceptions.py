"""Custom exceptions for the measurement proof service."""

from typing import Any, Optional


class ProofServiceError(Exception):
    """Base exception for the proof service."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class MeasurementValidationError(ProofServiceError):
    """Submitted measurement is missing fields or malformed."""

    pass


class ArtifactStorageError(ProofServiceError):
    """An artifact (image, pipeline input) could not be written."""

    pass


class MeasurementNotFoundError(ProofServiceError):
    """No record exists for the requested identity."""

    def __init__(self, measurement_id: str, context: Optional[dict[str, Any]] = None):
        super().__init__(f"Measurement with ID {measurement_id} not found", context)
        self.measurement_id = measurement_id


class DuplicateMeasurementError(ProofServiceError):
    """A record with this identity already exists."""

    def __init__(self, measurement_id: str, context: Optional[dict[str, Any]] = None):
        super().__init__(f"Measurement {measurement_id} already exists", context)
        self.measurement_id = measurement_id


class IllegalTransitionError(ProofServiceError):
    """Status or attestation change that the state machine forbids."""

    def __init__(
        self,
        current: str,
        target: str,
        context: Optional[dict[str, Any]] = None,
    ):
        message = f"Illegal transition {current} -> {target}"
        super().__init__(message, context)
        self.current = current
        self.target = target


class ToolInvocationError(ProofServiceError):
    """External tool exited non-zero or could not be spawned."""

    def __init__(
        self,
        message: str,
        tool: str,
        exit_code: Optional[int] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.tool = tool
        self.exit_code = exit_code


class ToolTimeoutError(ToolInvocationError):
    """External tool exceeded its deadline and was killed."""

    def __init__(
        self,
        tool: str,
        timeout: float,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(f"{tool} timed out after {timeout}s", tool, None, context)
        self.timeout = timeout
