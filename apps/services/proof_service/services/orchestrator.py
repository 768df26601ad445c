"""
Pipeline Orchestrator

Drives a measurement from Pending to a terminal status in the background,
decoupled from the request that submitted it.

Stages:
    prove   Pending -> Processing, write input.json, witness -> proof.
            Success hands the measurement to the verify stage; any failure
            ends in Failed and verification is never attempted.
    verify  Submit to the verification network. Success -> Completed,
            any failure -> Failed.

Each stage has its own queue and worker pool, so a slow verification
network never starves proof generation. A stage decides what to do from the
stored status alone (prove acts only on Pending, verify only on Processing),
which makes a repeated message harmless.

Store mutations are single synchronous transitions; no lock is ever held
while a tool runs.
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from apps.services.proof_service.config import (
    PROVE_TOOL,
    VERIFY_TOOL,
    WITNESS_TOOL,
    ProofServiceConfig,
)
from apps.services.proof_service.schemas import Measurement, MeasurementStatus
from apps.services.proof_service.services.normalizer import build_pipeline_input
from apps.services.proof_service.services.record_store import RecordStore
from apps.services.proof_service.services.tool_gateway import ToolGateway
from apps.services.proof_service.services.tool_policy import ToolPolicy
from libs.core.exceptions import (
    ArtifactStorageError,
    IllegalTransitionError,
    MeasurementNotFoundError,
    ToolInvocationError,
)
from libs.core.logging_config import log_stage, log_transition

logger = logging.getLogger(__name__)

PROVE_STAGE = "prove"
VERIFY_STAGE = "verify"

CANCELLED_REASON = "cancelled"

INPUT_FILE = "input.json"
WITNESS_FILE = "witness.wtns"
PROOF_FILE = "proof.json"
PUBLIC_FILE = "public.json"


def build_policies(config: ProofServiceConfig) -> Dict[str, ToolPolicy]:
    """Build the per-tool deadline/retry policies from configuration."""
    return {
        WITNESS_TOOL: ToolPolicy(
            WITNESS_TOOL,
            timeout=config.witness_timeout,
            max_attempts=config.witness_max_attempts,
            backoff_factor=config.tool_backoff_factor,
        ),
        PROVE_TOOL: ToolPolicy(
            PROVE_TOOL,
            timeout=config.proof_timeout,
            max_attempts=config.proof_max_attempts,
            backoff_factor=config.tool_backoff_factor,
        ),
        VERIFY_TOOL: ToolPolicy(
            VERIFY_TOOL,
            timeout=config.verify_timeout,
            max_attempts=config.verify_max_attempts,
            backoff_factor=config.tool_backoff_factor,
        ),
    }


class PipelineOrchestrator:
    def __init__(
        self,
        store: RecordStore,
        gateway: ToolGateway,
        config: ProofServiceConfig,
        policies: Optional[Dict[str, ToolPolicy]] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.config = config
        self.policies = policies or build_policies(config)

        self._worker_counts = {
            PROVE_STAGE: config.prove_workers,
            VERIFY_STAGE: config.verify_workers,
        }
        self._handlers: Dict[str, Callable[[str], Awaitable[None]]] = {
            PROVE_STAGE: self._prove,
            VERIFY_STAGE: self._verify,
        }
        self._queues: Dict[str, asyncio.Queue] = {}
        self._workers: List[asyncio.Task] = []
        self._inflight: Dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------ #
    # Lifecycle

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Create the stage queues and spawn the worker pools."""
        if self.running:
            return
        self._queues = {stage: asyncio.Queue() for stage in self._handlers}
        for stage, count in self._worker_counts.items():
            for index in range(count):
                self._workers.append(
                    asyncio.create_task(self._worker(stage), name=f"pipeline-{stage}-{index}")
                )
        logger.info(
            f"[Pipeline] Started {self._worker_counts[PROVE_STAGE]} prove and "
            f"{self._worker_counts[VERIFY_STAGE]} verify workers"
        )

    async def stop(self) -> None:
        """Cancel all workers. In-flight tools are killed before this returns."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

        stages = list(self._inflight.values())
        for task in stages:
            task.cancel()
        await asyncio.gather(*stages, return_exceptions=True)
        logger.info(f"[Pipeline] Stopped {len(workers)} workers")

    async def drain(self) -> None:
        """Wait until every queued message has been processed."""
        if not self._queues:
            raise RuntimeError("pipeline orchestrator is not started")
        await self._queues[PROVE_STAGE].join()
        await self._queues[VERIFY_STAGE].join()

    # ------------------------------------------------------------------ #
    # Public API

    def submit(self, measurement_id: str) -> None:
        """Schedule a freshly created measurement. Returns immediately."""
        self._enqueue(PROVE_STAGE, measurement_id)

    def cancel(self, measurement_id: str) -> Dict[str, Any]:
        """
        Cancel a measurement that has not finished yet.

        The record moves to Failed (a Pending record passes through Processing
        in the same mutation) and any running tool is killed.

        Raises:
            MeasurementNotFoundError: unknown identity
        """
        record = self.store.require(measurement_id)
        if record.status.is_terminal:
            return {
                "ok": False,
                "message": f"Measurement already {record.status.value}",
                "measurement_id": measurement_id,
            }

        def _cancel(current: Measurement) -> Measurement:
            if current.status is MeasurementStatus.PENDING:
                current = current.transition(MeasurementStatus.PROCESSING)
            return current.transition(MeasurementStatus.FAILED, reason=CANCELLED_REASON)

        try:
            self.store.mutate(measurement_id, _cancel)
        except IllegalTransitionError:
            current = self.store.require(measurement_id)
            return {
                "ok": False,
                "message": f"Measurement already {current.status.value}",
                "measurement_id": measurement_id,
            }

        task = self._inflight.get(measurement_id)
        if task is not None:
            task.cancel()
        logger.info(f"[Pipeline] Cancelled {measurement_id}")
        return {"ok": True, "message": "Measurement cancelled", "measurement_id": measurement_id}

    def stats(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "workers": dict(self._worker_counts),
            "queued": {stage: q.qsize() for stage, q in self._queues.items()},
            "inflight": len(self._inflight),
            "tools": {name: policy.get_stats() for name, policy in self.policies.items()},
        }

    # ------------------------------------------------------------------ #
    # Workers

    def _enqueue(self, stage: str, measurement_id: str) -> None:
        if not self._queues:
            raise RuntimeError("pipeline orchestrator is not started")
        self._queues[stage].put_nowait(measurement_id)
        logger.debug(f"[Pipeline] {measurement_id} queued for {stage}")

    async def _worker(self, stage: str) -> None:
        queue = self._queues[stage]
        while True:
            measurement_id = await queue.get()
            try:
                await self._run_tracked(stage, measurement_id)
            finally:
                queue.task_done()

    async def _run_tracked(self, stage: str, measurement_id: str) -> None:
        # The stage runs as its own task so cancel() can interrupt it
        # without taking the worker down.
        task = asyncio.create_task(
            self._handlers[stage](measurement_id), name=f"{stage}:{measurement_id}"
        )
        self._inflight[measurement_id] = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            # The stage unwinds (child killed and reaped) before the worker exits
            task.cancel()
            await asyncio.wait({task})
            raise
        finally:
            self._inflight.pop(measurement_id, None)

        if task.cancelled():
            log_stage(logger, measurement_id, stage, "CANCELLED")
            return

        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, MeasurementNotFoundError):
            logger.warning(f"[Pipeline] {measurement_id} disappeared during {stage}, abandoning")
        elif isinstance(exc, IllegalTransitionError):
            logger.warning(
                f"[Pipeline] {measurement_id} {stage} superseded: {exc.current} -> {exc.target}"
            )
        else:
            logger.error(
                f"[Pipeline] {measurement_id} {stage} crashed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            self._fail_quietly(measurement_id, f"internal error: {exc}")

    # ------------------------------------------------------------------ #
    # Stages

    async def _prove(self, measurement_id: str) -> None:
        record = self.store.snapshot(measurement_id)
        if record is None:
            logger.warning(f"[Pipeline] Measurement not found: {measurement_id}")
            return
        if record.status is not MeasurementStatus.PENDING:
            logger.info(
                f"[Pipeline] {measurement_id} is {record.status.value}, skipping {PROVE_STAGE}"
            )
            return

        self._transition(measurement_id, MeasurementStatus.PROCESSING)
        start_time = time.time()
        log_stage(logger, measurement_id, PROVE_STAGE, "START")

        try:
            await self._generate_proof(record)
        except (ToolInvocationError, ArtifactStorageError) as e:
            log_stage(logger, measurement_id, PROVE_STAGE, "FAILED", _elapsed_ms(start_time))
            logger.warning(f"[Pipeline] Proof generation failed for {measurement_id}: {e.message}")
            self._transition(measurement_id, MeasurementStatus.FAILED, reason=e.message)
            return

        log_stage(logger, measurement_id, PROVE_STAGE, "DONE", _elapsed_ms(start_time))
        self._enqueue(VERIFY_STAGE, measurement_id)

    async def _generate_proof(self, record: Measurement) -> None:
        proof_dir = self.config.proof_dir(record.id)
        input_path = proof_dir / INPUT_FILE
        witness_path = proof_dir / WITNESS_FILE
        proof_path = proof_dir / PROOF_FILE
        public_path = proof_dir / PUBLIC_FILE

        payload = build_pipeline_input(record.start_point, record.end_point)
        await asyncio.to_thread(_write_input, input_path, payload)

        await self.policies[WITNESS_TOOL].execute(
            self.gateway.generate_witness,
            self.config.circuit_wasm,
            input_path,
            witness_path,
            label=record.id,
        )
        await self.policies[PROVE_TOOL].execute(
            self.gateway.generate_proof,
            self.config.proving_key,
            witness_path,
            proof_path,
            public_path,
            label=record.id,
        )

    async def _verify(self, measurement_id: str) -> None:
        record = self.store.snapshot(measurement_id)
        if record is None:
            logger.warning(f"[Pipeline] Measurement not found: {measurement_id}")
            return
        if record.status is not MeasurementStatus.PROCESSING:
            logger.info(
                f"[Pipeline] {measurement_id} is {record.status.value}, skipping {VERIFY_STAGE}"
            )
            return

        start_time = time.time()
        log_stage(logger, measurement_id, VERIFY_STAGE, "START")

        try:
            await self.policies[VERIFY_TOOL].execute(
                self.gateway.submit_verification, measurement_id, label=measurement_id
            )
        except ToolInvocationError as e:
            log_stage(logger, measurement_id, VERIFY_STAGE, "FAILED", _elapsed_ms(start_time))
            logger.warning(f"[Pipeline] Proof {measurement_id} verification failed: {e.message}")
            self._transition(measurement_id, MeasurementStatus.FAILED, reason=e.message)
            return

        log_stage(logger, measurement_id, VERIFY_STAGE, "DONE", _elapsed_ms(start_time))
        logger.info(f"[Pipeline] Proof {measurement_id} verified successfully")
        self._transition(measurement_id, MeasurementStatus.COMPLETED)

    # ------------------------------------------------------------------ #
    # Helpers

    def _transition(
        self,
        measurement_id: str,
        target: MeasurementStatus,
        reason: Optional[str] = None,
    ) -> Measurement:
        before: List[MeasurementStatus] = []

        def _apply(current: Measurement) -> Measurement:
            before.append(current.status)
            return current.transition(target, reason=reason)

        updated = self.store.mutate(measurement_id, _apply)
        log_transition(logger, measurement_id, before[0].value, target.value)
        return updated

    def _fail_quietly(self, measurement_id: str, reason: str) -> None:
        try:
            self._transition(measurement_id, MeasurementStatus.FAILED, reason=reason)
        except (IllegalTransitionError, MeasurementNotFoundError) as e:
            logger.debug(f"[Pipeline] {measurement_id} not marked Failed: {e.message}")


def _write_input(path: Path, payload: Dict[str, Any]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    except OSError as e:
        raise ArtifactStorageError(f"Failed to write input file: {e}", {"path": str(path)}) from e


def _elapsed_ms(start_time: float) -> float:
    return (time.time() - start_time) * 1000
