"""
Unit tests for coordinate normalization and the pipeline input document.
"""

import pytest
from pydantic import ValidationError

from apps.services.proof_service.schemas import NormalizedPoint, Point3D
from apps.services.proof_service.services.normalizer import (
    SCALE_FACTOR,
    build_pipeline_input,
    normalize_point,
    normalize_points,
    squared_distance,
)


class TestNormalizePoint:
    def test_unit_meter_scales_to_factor(self):
        assert normalize_point(Point3D(x=1.0, y=0.0, z=0.0)) == NormalizedPoint(
            x=SCALE_FACTOR, y=0, z=0
        )

    def test_sign_preserved(self):
        point = normalize_point(Point3D(x=-0.5, y=0.25, z=-1.5))
        assert point.as_list() == [-50000, 25000, -150000]

    def test_rounds_half_away_from_zero(self):
        point = normalize_point(Point3D(x=0.000005, y=-0.000005, z=0.000004))
        assert point.as_list() == [1, -1, 0]

    def test_decimal_inputs_are_exact(self):
        # 0.1 * 100000 is 10000.000000000002 in binary floating point
        assert normalize_point(Point3D(x=0.1, y=0.2, z=0.3)).as_list() == [10000, 20000, 30000]

    def test_rejects_already_normalized(self):
        with pytest.raises(TypeError):
            normalize_point(NormalizedPoint(x=1, y=2, z=3))

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            normalize_point({"x": 1.0, "y": 0.0, "z": 0.0})

    def test_non_finite_rejected_at_parse(self):
        with pytest.raises(ValidationError):
            Point3D(x=float("nan"), y=0.0, z=0.0)


class TestDistance:
    def test_origin_to_unit_x(self):
        start, end = normalize_points(Point3D(x=0, y=0, z=0), Point3D(x=1, y=0, z=0))
        assert squared_distance(start, end) == 10_000_000_000

    def test_symmetric(self):
        a = NormalizedPoint(x=3, y=-4, z=12)
        b = NormalizedPoint(x=-1, y=7, z=0)
        assert squared_distance(a, b) == squared_distance(b, a)

    def test_no_overflow_for_large_distances(self):
        a = NormalizedPoint(x=-10**9, y=-10**9, z=-10**9)
        b = NormalizedPoint(x=10**9, y=10**9, z=10**9)
        assert squared_distance(a, b) == 3 * (2 * 10**9) ** 2


class TestBuildPipelineInput:
    def test_document_shape(self):
        start = NormalizedPoint(x=0, y=0, z=0)
        end = NormalizedPoint(x=300, y=400, z=0)
        assert build_pipeline_input(start, end) == {
            "point1": [0, 0, 0],
            "point2": [300, 400, 0],
            "distance_squared": 250000,
        }
