"""
Coordinate Normalizer

The proving circuit works over a finite field, so client coordinates (floats,
in meters) are scaled to integers before they reach it. Normalization happens
exactly once, at ingestion; a NormalizedPoint is rejected if passed back in.

The distance fed to the circuit is the integer squared Euclidean distance
between the two normalized points, published as the `distance_squared`
public input.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Tuple

from apps.services.proof_service.schemas import NormalizedPoint, Point3D

SCALE_FACTOR = 100000


def _scale(value: float) -> int:
    # Half away from zero, sign preserved
    scaled = Decimal(repr(value)) * SCALE_FACTOR
    magnitude = int(abs(scaled).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return -magnitude if scaled < 0 else magnitude


def normalize_point(point: Point3D) -> NormalizedPoint:
    """Scale a raw point into the circuit's integer domain."""
    if isinstance(point, NormalizedPoint):
        raise TypeError("point is already normalized")
    if not isinstance(point, Point3D):
        raise TypeError(f"expected Point3D, got {type(point).__name__}")
    return NormalizedPoint(x=_scale(point.x), y=_scale(point.y), z=_scale(point.z))


def normalize_points(start: Point3D, end: Point3D) -> Tuple[NormalizedPoint, NormalizedPoint]:
    return normalize_point(start), normalize_point(end)


def squared_distance(a: NormalizedPoint, b: NormalizedPoint) -> int:
    """Integer squared Euclidean distance between two normalized points."""
    dx = b.x - a.x
    dy = b.y - a.y
    dz = b.z - a.z
    return dx * dx + dy * dy + dz * dz


def build_pipeline_input(start: NormalizedPoint, end: NormalizedPoint) -> Dict[str, Any]:
    """Build the input.json document consumed by witness generation."""
    return {
        "point1": start.as_list(),
        "point2": end.as_list(),
        "distance_squared": squared_distance(start, end),
    }
