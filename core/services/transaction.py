"""
Optimistic local updates with explicit compensation.

Protocol: apply a change to the in-memory store, register how to undo it,
then either ``commit()`` once the durable write succeeded or ``compensate()``
to roll every registered change back in reverse order.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import structlog

from core.config import PersistenceConfig
from core.domain.exceptions import PersistenceFailure
from core.services.ports import Result

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class Compensation:
    """One undo step for a locally applied change."""

    description: str
    undo: Callable[[], object]


@dataclass
class PendingTransaction:
    """Small log of pending compensations for one optimistic operation."""

    name: str
    compensations: list[Compensation] = field(default_factory=list)
    state: str = "pending"  # pending, committed, compensated
    # False once the snapshot the changes were applied to has been replaced
    guard: Callable[[], bool] | None = None

    def record(self, description: str, undo: Callable[[], object]) -> None:
        if self.state != "pending":
            raise RuntimeError(f"Transaction {self.name} already {self.state}")
        self.compensations.append(Compensation(description, undo))

    def commit(self) -> None:
        self.state = "committed"
        self.compensations.clear()

    def compensate(self) -> list[str]:
        """Undo registered changes newest first; returns descriptions of failed undos."""
        failed: list[str] = []
        log = logger.bind(transaction=self.name)
        if self.guard is not None and not self.guard():
            log.warning("compensation_discarded", steps=len(self.compensations))
            self.compensations.clear()
            self.state = "compensated"
            return failed
        for step in reversed(self.compensations):
            try:
                step.undo()
                log.info("compensation_applied", step=step.description)
            except Exception as e:
                failed.append(step.description)
                log.exception("compensation_failed", step=step.description, error=str(e))
        self.compensations.clear()
        self.state = "compensated"
        return failed


class PersistencePolicy:
    """
    Timeout and retry applied to durable writes.

    Retries are only safe because backend writes are idempotent per entity id.
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        retry_attempts: int = 2,
        retry_delay_seconds: float = 0.2,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = retry_attempts
        self.retry_delay_seconds = retry_delay_seconds

    @classmethod
    def from_config(cls, config: PersistenceConfig) -> "PersistencePolicy":
        return cls(timeout_seconds=config.timeout_seconds, retry_attempts=config.retry_attempts)

    async def run(
        self, operation: str, call: Callable[[], Awaitable[Result[T, Exception]]]
    ) -> Result[T, PersistenceFailure]:
        """Run a durable write, mapping timeouts and errors to PersistenceFailure."""
        last_error: BaseException | str = "no attempt made"
        attempts = self.retry_attempts + 1

        for attempt in range(1, attempts + 1):
            try:
                result = await asyncio.wait_for(call(), timeout=self.timeout_seconds)
                if result.is_ok():
                    return Result.ok(result.unwrap())
                last_error = result.unwrap_err()
            except TimeoutError as e:
                last_error = e
                logger.warning("persistence_timeout", operation=operation, attempt=attempt)
            except Exception as e:
                last_error = e

            logger.warning(
                "persistence_attempt_failed",
                operation=operation,
                attempt=attempt,
                max_attempts=attempts,
                error=str(last_error),
            )
            if attempt < attempts:
                await asyncio.sleep(self.retry_delay_seconds * attempt)

        return Result.err(PersistenceFailure(operation, last_error))
