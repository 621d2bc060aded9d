"""
Error taxonomy for the adherence core.

Expected failures (persistence, missing identity) are carried inside a
``Result`` rather than raised; validation errors are raised at the boundary
before anything reaches the store.
"""


class MediMindError(Exception):
    """Base class for all domain errors."""


class ValidationError(MediMindError, ValueError):
    """Malformed medicine or intake input, rejected before mutation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class DuplicateIntakeError(ValidationError):
    """A Taken/Skipped log already exists for this medicine and day."""

    def __init__(self, medicine_id: str, date_str: str) -> None:
        super().__init__(
            f"Intake already logged for medicine {medicine_id} on {date_str}",
            field="medicine_id",
        )
        self.medicine_id = medicine_id
        self.date_str = date_str


class PersistenceFailure(MediMindError):
    """A durable write did not complete. Recoverable: retry or revert."""

    def __init__(self, operation: str, reason: str | BaseException) -> None:
        super().__init__(f"{operation} failed: {reason}")
        self.operation = operation
        self.reason = reason


class NotPermitted(MediMindError):
    """No active identity for the session."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation} requires an active identity")
        self.operation = operation
