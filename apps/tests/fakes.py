"""
Test doubles for the proof service.

FakeToolGateway stands in for node/snarkjs: it records every call, can be
told to fail a tool, and can hold a tool until the test releases it.
"""

import asyncio
import time
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from apps.services.proof_service.config import PROVE_TOOL, VERIFY_TOOL, WITNESS_TOOL
from apps.services.proof_service.schemas import Measurement, MeasurementStatus, NormalizedPoint
from apps.services.proof_service.services.record_store import RecordStore
from apps.services.proof_service.services.tool_gateway import ToolGateway, ToolRun
from libs.core.exceptions import ToolInvocationError


class FakeToolGateway(ToolGateway):
    def __init__(self):
        self.calls: List[Tuple[str, str]] = []
        # tool -> number of calls that should still fail
        self.failures: Dict[str, int] = {}
        self.held: Dict[str, asyncio.Event] = {}

    def fail(self, tool: str, times: int = 1_000_000) -> None:
        self.failures[tool] = times

    def hold(self, tool: str) -> asyncio.Event:
        """Block the tool until the returned event is set."""
        event = asyncio.Event()
        self.held[tool] = event
        return event

    def calls_for(self, tool: str) -> List[str]:
        return [mid for name, mid in self.calls if name == tool]

    async def generate_witness(self, circuit_wasm, input_path: Path, witness_path: Path) -> ToolRun:
        return await self._call(WITNESS_TOOL, Path(input_path).parent.name)

    async def generate_proof(
        self, proving_key, witness_path: Path, proof_path: Path, public_path: Path
    ) -> ToolRun:
        return await self._call(PROVE_TOOL, Path(witness_path).parent.name)

    async def submit_verification(self, measurement_id: str) -> ToolRun:
        return await self._call(VERIFY_TOOL, measurement_id)

    async def _call(self, tool: str, measurement_id: str) -> ToolRun:
        self.calls.append((tool, measurement_id))
        if tool in self.held:
            await self.held[tool].wait()
        if self.failures.get(tool, 0) > 0:
            self.failures[tool] -= 1
            raise ToolInvocationError(f"{tool} failed with exit code 1", tool, exit_code=1)
        return ToolRun(tool=tool, exit_code=0, duration_ms=1)


class RecordingStore(RecordStore):
    """RecordStore that keeps the status sequence of every record."""

    def __init__(self, shard_count: int = 4):
        super().__init__(shard_count)
        self.history: Dict[str, List[MeasurementStatus]] = {}

    def create(self, measurement_id: str, record: Measurement) -> None:
        super().create(measurement_id, record)
        self.history[measurement_id] = [record.status]

    def mutate(self, measurement_id, fn):
        updated = super().mutate(measurement_id, fn)
        if self.history[measurement_id][-1] is not updated.status:
            self.history[measurement_id].append(updated.status)
        return updated


def make_measurement(
    store: Optional[RecordStore] = None,
    status: MeasurementStatus = MeasurementStatus.PENDING,
    start: Tuple[int, int, int] = (0, 0, 0),
    end: Tuple[int, int, int] = (100000, 0, 0),
) -> Measurement:
    """Build a record (optionally stored) in the given status."""
    measurement_id = str(uuid.uuid4())
    record = Measurement(
        id=measurement_id,
        image_path=f"uploads/{measurement_id}.jpg",
        start_point=NormalizedPoint(x=start[0], y=start[1], z=start[2]),
        end_point=NormalizedPoint(x=end[0], y=end[1], z=end[2]),
    )
    if status is not MeasurementStatus.PENDING:
        record = record.transition(MeasurementStatus.PROCESSING)
        if status is not MeasurementStatus.PROCESSING:
            record = record.transition(status)
    if store is not None:
        store.create(measurement_id, record)
    return record


async def wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)
