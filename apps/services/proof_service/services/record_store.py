"""
In-memory record store for measurements.

Records are frozen pydantic models, so a snapshot can be handed out without
copying and read across any number of awaits. Writes go through `mutate`,
which applies a synchronous transition function under the lock of the shard
owning the identity. Nothing that can block or suspend may run inside that
function; the API is synchronous so an await there is impossible.

The map is split into shards keyed by a stable hash of the identity, so
unrelated measurements never contend on the same lock.
"""

from __future__ import annotations

import logging
import threading
import zlib
from typing import Callable, Dict, List, Optional

from apps.services.proof_service.schemas import Measurement
from libs.core.exceptions import DuplicateMeasurementError, MeasurementNotFoundError

logger = logging.getLogger(__name__)


class _Shard:
    __slots__ = ("lock", "records")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.records: Dict[str, Measurement] = {}


class RecordStore:
    def __init__(self, shard_count: int = 16):
        if shard_count < 1:
            raise ValueError("shard_count must be >= 1")
        self._shards = [_Shard() for _ in range(shard_count)]

    @property
    def shard_count(self) -> int:
        return len(self._shards)

    def _shard_for(self, measurement_id: str) -> _Shard:
        return self._shards[zlib.crc32(measurement_id.encode("utf-8")) % len(self._shards)]

    # ------------------------------------------------------------------ #
    # Public API

    def create(self, measurement_id: str, record: Measurement) -> None:
        if record.id != measurement_id:
            raise ValueError(f"record id {record.id} does not match key {measurement_id}")
        shard = self._shard_for(measurement_id)
        with shard.lock:
            if measurement_id in shard.records:
                raise DuplicateMeasurementError(measurement_id)
            shard.records[measurement_id] = record
        logger.debug(f"[RecordStore] Created {measurement_id}")

    def snapshot(self, measurement_id: str) -> Optional[Measurement]:
        shard = self._shard_for(measurement_id)
        with shard.lock:
            return shard.records.get(measurement_id)

    def require(self, measurement_id: str) -> Measurement:
        record = self.snapshot(measurement_id)
        if record is None:
            raise MeasurementNotFoundError(measurement_id)
        return record

    def mutate(
        self, measurement_id: str, fn: Callable[[Measurement], Measurement]
    ) -> Measurement:
        """
        Replace a record with fn(record) under exclusive access.

        Exceptions raised by fn propagate and leave the record untouched.

        Raises:
            MeasurementNotFoundError: if no record exists for the identity
        """
        shard = self._shard_for(measurement_id)
        with shard.lock:
            current = shard.records.get(measurement_id)
            if current is None:
                raise MeasurementNotFoundError(measurement_id)
            updated = fn(current)
            if not isinstance(updated, Measurement) or updated.id != measurement_id:
                raise ValueError(f"transition for {measurement_id} returned an invalid record")
            shard.records[measurement_id] = updated
            return updated

    def list_active(self) -> List[Measurement]:
        """Records that have not reached a terminal status."""
        active: List[Measurement] = []
        for shard in self._shards:
            with shard.lock:
                active.extend(r for r in shard.records.values() if not r.status.is_terminal)
        return sorted(active, key=lambda r: r.created_at)

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.records)
        return total

    def __contains__(self, measurement_id: str) -> bool:
        return self.snapshot(measurement_id) is not None
