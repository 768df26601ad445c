"""
Deadline and Bounded Retry for External Tool Invocations

Every call into the tool gateway goes through a ToolPolicy so a hung prover
or verifier cannot leave a measurement in Processing forever. A timed-out
attempt is cancelled, which kills the child process.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from libs.core.exceptions import ToolInvocationError, ToolTimeoutError

logger = logging.getLogger(__name__)


class ToolPolicy:
    """
    Per-tool deadline plus bounded retry with exponential backoff.

    Only tool failures (non-zero exit, spawn error, timeout) are retried.
    Cancellation is never swallowed.
    """

    def __init__(
        self,
        name: str,
        timeout: float,
        max_attempts: int = 1,
        backoff_factor: float = 2.0,
        base_delay: float = 1.0,
    ):
        """
        Args:
            name: Tool name (for logging)
            timeout: Deadline per attempt in seconds
            max_attempts: Total attempts, including the first
            backoff_factor: Multiplier applied to the delay after each failure
            base_delay: Delay before the first retry in seconds
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.name = name
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self.base_delay = base_delay

        # Statistics
        self.total_calls = 0
        self.timeouts = 0
        self.failures = 0
        self.retries = 0
        self.successes = 0

    def retry_delay(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return self.base_delay * (self.backoff_factor ** (attempt - 1))

    async def execute(
        self,
        fn: Callable[..., Awaitable[Any]],
        *args,
        label: Optional[str] = None,
        **kwargs,
    ) -> Any:
        """
        Run fn(*args, **kwargs) under the policy.

        Raises:
            ToolInvocationError: last failure once attempts are exhausted
        """
        self.total_calls += 1
        tag = f"{self.name}:{label}" if label else self.name
        last_error: Optional[ToolInvocationError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await asyncio.wait_for(fn(*args, **kwargs), timeout=self.timeout)
                self.successes += 1
                if attempt > 1:
                    logger.info(f"[ToolPolicy:{tag}] Succeeded on attempt {attempt}")
                return result

            except asyncio.TimeoutError:
                self.timeouts += 1
                last_error = ToolTimeoutError(self.name, self.timeout)
                logger.warning(
                    f"[ToolPolicy:{tag}] Timed out after {self.timeout}s "
                    f"(attempt {attempt}/{self.max_attempts})"
                )

            except ToolInvocationError as e:
                self.failures += 1
                last_error = e
                logger.warning(
                    f"[ToolPolicy:{tag}] {e.message} (attempt {attempt}/{self.max_attempts})"
                )

            if attempt < self.max_attempts:
                self.retries += 1
                wait_time = self.retry_delay(attempt)
                logger.info(f"[ToolPolicy:{tag}] Retrying in {wait_time}s...")
                await asyncio.sleep(wait_time)

        logger.error(f"[ToolPolicy:{tag}] Giving up after {self.max_attempts} attempt(s)")
        raise last_error

    def get_stats(self) -> dict:
        success_rate = 0.0
        if self.total_calls > 0:
            success_rate = self.successes / self.total_calls

        return {
            "name": self.name,
            "total_calls": self.total_calls,
            "successes": self.successes,
            "timeouts": self.timeouts,
            "failures": self.failures,
            "retries": self.retries,
            "success_rate": f"{success_rate * 100:.1f}%",
            "timeout_seconds": self.timeout,
            "max_attempts": self.max_attempts,
        }
