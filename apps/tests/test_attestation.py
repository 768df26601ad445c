"""
Tests for lazy attestation merging on status reads.
"""

import json

import pytest

from apps.services.proof_service.schemas import MeasurementStatus
from apps.services.proof_service.services.attestation import AttestationMerger
from apps.tests.fakes import make_measurement


@pytest.fixture
def merger(store, tmp_path):
    return AttestationMerger(store, tmp_path / "proofs")


def _publish(merger, measurement_id, content):
    path = merger.attestation_path(measurement_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content if isinstance(content, str) else json.dumps(content))


class TestAttestationMerger:
    @pytest.mark.asyncio
    async def test_unknown_returns_none(self, merger):
        assert await merger.merge("missing") is None

    @pytest.mark.asyncio
    async def test_completed_without_file(self, merger, store):
        record = make_measurement(store, status=MeasurementStatus.COMPLETED)
        merged = await merger.merge(record.id)
        assert merged.attestation is None

    @pytest.mark.asyncio
    async def test_attaches_published_attestation(self, merger, store):
        record = make_measurement(store, status=MeasurementStatus.COMPLETED)
        _publish(
            merger,
            record.id,
            {"attestationId": 12, "merklePath": ["0x01", "0x02"], "leafCount": 8, "index": 3},
        )

        merged = await merger.merge(record.id)

        assert merged.attestation.attestation_id == 12
        assert merged.attestation.merkle_path == ["0x01", "0x02"]
        assert store.snapshot(record.id).attestation == merged.attestation

    @pytest.mark.asyncio
    async def test_missing_optional_fields_default(self, merger, store):
        record = make_measurement(store, status=MeasurementStatus.COMPLETED)
        _publish(merger, record.id, {"attestationId": 5})
        merged = await merger.merge(record.id)
        assert merged.attestation.leaf_count == 0
        assert merged.attestation.index == 0

    @pytest.mark.asyncio
    async def test_malformed_file_ignored(self, merger, store):
        record = make_measurement(store, status=MeasurementStatus.COMPLETED)
        _publish(merger, record.id, "{not json")
        merged = await merger.merge(record.id)
        assert merged.status is MeasurementStatus.COMPLETED
        assert merged.attestation is None

    @pytest.mark.asyncio
    async def test_non_utf8_file_ignored(self, merger, store):
        record = make_measurement(store, status=MeasurementStatus.COMPLETED)
        path = merger.attestation_path(record.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b'{"attestationId": 1, "merklePath": ["\xff\xfe"]}')

        merged = await merger.merge(record.id)

        assert merged.status is MeasurementStatus.COMPLETED
        assert merged.attestation is None
        assert store.snapshot(record.id).attestation is None

    @pytest.mark.asyncio
    async def test_attested_once(self, merger, store):
        record = make_measurement(store, status=MeasurementStatus.COMPLETED)
        _publish(merger, record.id, {"attestationId": 1})
        first = await merger.merge(record.id)

        _publish(merger, record.id, {"attestationId": 2})
        second = await merger.merge(record.id)

        assert first.attestation.attestation_id == 1
        assert second.attestation.attestation_id == 1

    @pytest.mark.asyncio
    async def test_non_completed_not_enriched(self, merger, store):
        record = make_measurement(store, status=MeasurementStatus.PROCESSING)
        _publish(merger, record.id, {"attestationId": 1})
        merged = await merger.merge(record.id)
        assert merged.attestation is None
