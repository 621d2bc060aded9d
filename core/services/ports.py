"""
Boundary contracts between the adherence core and its collaborators.

Key patterns:
- Protocol-based dependency injection for persistence and notification
- A generic Result type so expected failures stay visible in signatures
"""

from typing import Generic, Protocol, TypeVar

from core.domain.models import IntakeLog, MedicalProfile, Medicine

# Generic Result type for explicit error handling
ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    Used for durable writes and identity checks, where failure is ordinary
    business logic that the caller must decide about (retry, revert, notice).
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error

    def __repr__(self) -> str:
        if self._error is not None:
            return f"Result.err({self._error!r})"
        return f"Result.ok({self._value!r})"


class PersistenceBackend(Protocol):
    """
    Durable mirror of the entity store, scoped per identity.

    Writes are keyed by entity id and must be idempotent, so callers may retry
    ``save_medicine`` and ``append_log`` safely.
    """

    async def load_medicines(self, identity: str) -> Result[list[Medicine], Exception]: ...

    async def load_logs(self, identity: str) -> Result[list[IntakeLog], Exception]: ...

    async def save_medicine(
        self, identity: str, medicine: Medicine
    ) -> Result[Medicine, Exception]: ...

    async def delete_medicine(self, identity: str, medicine_id: str) -> Result[str, Exception]: ...

    async def append_log(self, identity: str, log: IntakeLog) -> Result[IntakeLog, Exception]: ...

    async def load_profile(self, identity: str) -> Result[MedicalProfile, Exception]:
        """Saved profile, or an empty ``MedicalProfile`` when none exists."""
        ...

    async def save_profile(
        self, identity: str, profile: MedicalProfile
    ) -> Result[MedicalProfile, Exception]: ...


class Notifier(Protocol):
    """Fire-and-forget user notification. Permission handling is the notifier's concern."""

    def notify(self, title: str, body: str) -> None: ...
