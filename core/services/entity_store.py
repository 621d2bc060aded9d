"""
In-memory entity store for one identity.

Holds the medicine catalog, the intake ledger and the medical profile. The
snapshot is authoritative for immediate reads; callers mirror changes to a
``PersistenceBackend`` and compensate locally when the durable write fails.
Without an active identity every operation is a no-op.
"""

from collections.abc import Callable, Iterable

import structlog

from core.domain.models import IntakeLog, LogStatus, MedicalProfile, Medicine

logger = structlog.get_logger(__name__)


class EntityStore:
    """Owns the Medicine and IntakeLog collections for the active session."""

    def __init__(self, identity: str | None = None) -> None:
        self._identity: str | None = identity
        self._generation = 0
        self._medicines: dict[str, Medicine] = {}
        self._logs: list[IntakeLog] = []
        self._profile: MedicalProfile | None = None
        self.logger = logger.bind(component="entity_store")

    @property
    def identity(self) -> str | None:
        return self._identity

    @property
    def is_active(self) -> bool:
        return self._identity is not None

    @property
    def generation(self) -> int:
        """Incremented on every bind and clear; stale undo steps compare against it."""
        return self._generation

    def snapshot_guard(self) -> Callable[[], bool]:
        """True while the snapshot bound now is still the one in place."""
        generation = self._generation
        return lambda: self._generation == generation

    def bind(
        self,
        identity: str,
        medicines: Iterable[Medicine] = (),
        logs: Iterable[IntakeLog] = (),
        profile: MedicalProfile | None = None,
    ) -> None:
        """Replace the snapshot with data loaded for ``identity``."""
        self._identity = identity
        self._generation += 1
        self._medicines = {m.id: m for m in medicines}
        self._logs = list(logs)
        self._profile = profile
        self.logger.info(
            "store_bound", medicines=len(self._medicines), logs=len(self._logs)
        )

    def clear(self) -> None:
        """Drop all data and the identity (logout)."""
        self._identity = None
        self._generation += 1
        self._medicines = {}
        self._logs = []
        self._profile = None
        self.logger.info("store_cleared")

    def _permitted(self, operation: str) -> bool:
        if self._identity is None:
            self.logger.warning("store_operation_not_permitted", operation=operation)
            return False
        return True

    # Reads

    def list_medicines(self) -> list[Medicine]:
        if self._identity is None:
            return []
        return list(self._medicines.values())

    def list_logs(self) -> list[IntakeLog]:
        if self._identity is None:
            return []
        return list(self._logs)

    def get_medicine(self, medicine_id: str) -> Medicine | None:
        if self._identity is None:
            return None
        return self._medicines.get(medicine_id)

    def get_profile(self) -> MedicalProfile | None:
        if self._identity is None:
            return None
        return self._profile

    def logs_for(self, medicine_id: str, date_str: str) -> list[IntakeLog]:
        return [
            log
            for log in self.list_logs()
            if log.medicine_id == medicine_id and log.date_str == date_str
        ]

    def has_log(
        self, medicine_id: str, date_str: str, statuses: Iterable[LogStatus]
    ) -> bool:
        wanted = set(statuses)
        return any(log.status in wanted for log in self.logs_for(medicine_id, date_str))

    # Writes

    def upsert_medicine(self, medicine: Medicine) -> bool:
        if not self._permitted("upsert_medicine"):
            return False
        self._medicines[medicine.id] = medicine
        return True

    def delete_medicine(self, medicine_id: str) -> Medicine | None:
        """Remove a medicine; its historical logs stay in the ledger."""
        if not self._permitted("delete_medicine"):
            return None
        return self._medicines.pop(medicine_id, None)

    def append_log(self, log: IntakeLog) -> bool:
        if not self._permitted("append_log"):
            return False
        self._logs.append(log)
        return True

    def remove_log(self, log_id: str) -> bool:
        """Compensation for a failed append; logs are otherwise never removed."""
        if not self._permitted("remove_log"):
            return False
        before = len(self._logs)
        self._logs = [log for log in self._logs if log.id != log_id]
        return len(self._logs) != before

    def update_medicine_stock(self, medicine_id: str, new_stock: int) -> Medicine | None:
        if not self._permitted("update_medicine_stock"):
            return None
        medicine = self._medicines.get(medicine_id)
        if medicine is None:
            return None
        updated = medicine.with_stock(new_stock)
        self._medicines[medicine_id] = updated
        return updated

    def set_profile(self, profile: MedicalProfile | None) -> bool:
        if not self._permitted("set_profile"):
            return False
        self._profile = profile
        return True
