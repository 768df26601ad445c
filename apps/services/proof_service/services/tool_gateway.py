"""
External Tool Gateway - process-invocation boundary to the proving stack.

Three tools are involved, each an opaque external process whose only
contract is "zero exit status means success":

- witness: circuit wasm + input.json -> witness.wtns
- prove:   proving key + witness -> proof.json + public.json
- verify:  measurement id -> submits proof.json/public.json to the
           verification network, which later publishes attestation.json

The core depends only on ToolGateway; SubprocessToolGateway is the production
implementation driven by the argv templates of the tool registry.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from apps.services.proof_service.config import PROVE_TOOL, VERIFY_TOOL, WITNESS_TOOL
from libs.core.exceptions import ToolInvocationError

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 2000


@dataclass
class ToolRun:
    """Result of a successful tool invocation."""

    tool: str
    exit_code: int
    duration_ms: int
    stderr_tail: str = ""


class ToolGateway(ABC):
    """Contract for the external proving and verification tools."""

    @abstractmethod
    async def generate_witness(
        self, circuit_wasm: str, input_path: Path, witness_path: Path
    ) -> ToolRun:
        ...

    @abstractmethod
    async def generate_proof(
        self, proving_key: str, witness_path: Path, proof_path: Path, public_path: Path
    ) -> ToolRun:
        ...

    @abstractmethod
    async def submit_verification(self, measurement_id: str) -> ToolRun:
        ...


class SubprocessToolGateway(ToolGateway):
    """
    Runs each tool as a child process.

    Features:
    - argv built from registry templates (no shell involved)
    - stdout/stderr captured; stderr tail kept for diagnostics
    - cancelling the awaiting task kills the child process
    """

    def __init__(self, commands: Dict[str, List[str]], workdir: Optional[Path] = None):
        missing = {WITNESS_TOOL, PROVE_TOOL, VERIFY_TOOL} - set(commands)
        if missing:
            raise ValueError(f"tool registry missing: {', '.join(sorted(missing))}")
        self.commands = commands
        self.workdir = Path(workdir) if workdir else Path(".")

    async def generate_witness(
        self, circuit_wasm: str, input_path: Path, witness_path: Path
    ) -> ToolRun:
        return await self._run(
            WITNESS_TOOL,
            circuit_wasm=circuit_wasm,
            input_path=input_path,
            witness_path=witness_path,
        )

    async def generate_proof(
        self, proving_key: str, witness_path: Path, proof_path: Path, public_path: Path
    ) -> ToolRun:
        return await self._run(
            PROVE_TOOL,
            proving_key=proving_key,
            witness_path=witness_path,
            proof_path=proof_path,
            public_path=public_path,
        )

    async def submit_verification(self, measurement_id: str) -> ToolRun:
        return await self._run(VERIFY_TOOL, measurement_id=measurement_id)

    # ------------------------------------------------------------------ #
    # Internal

    def _render(self, tool: str, **values) -> List[str]:
        try:
            return [part.format(**{k: str(v) for k, v in values.items()}) for part in self.commands[tool]]
        except (KeyError, IndexError, ValueError) as e:
            raise ToolInvocationError(f"Bad argv template for {tool}: {e}", tool) from e

    async def _run(self, tool: str, **values) -> ToolRun:
        argv = self._render(tool, **values)
        start_time = time.time()
        logger.debug(f"[ToolGateway] {tool}: {' '.join(argv)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.workdir),
            )
        except OSError as e:
            raise ToolInvocationError(f"Failed to execute {tool}: {e}", tool) from e

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            _kill(process)
            await process.wait()
            logger.warning(f"[ToolGateway] {tool} interrupted, killed pid {process.pid}")
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        stderr_tail = stderr.decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:]

        if process.returncode != 0:
            if stderr_tail:
                logger.debug(f"[ToolGateway] {tool} stderr: {stderr_tail}")
            raise ToolInvocationError(
                f"{tool} failed with exit code {process.returncode}",
                tool,
                exit_code=process.returncode,
                context={"stderr": stderr_tail, "duration_ms": duration_ms},
            )

        return ToolRun(
            tool=tool,
            exit_code=process.returncode,
            duration_ms=duration_ms,
            stderr_tail=stderr_tail,
        )


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
