"""
Intake transaction handler.

Records a Taken/Skipped decision against the ledger and keeps inventory in
step with it. Local changes are applied first (so readers see them at once)
and compensated if the durable writes fail; stock and log either both commit
or neither does.
"""

from collections import deque
from collections.abc import Callable
from datetime import datetime

import structlog

from core.config import IntakeConfig
from core.domain.exceptions import DuplicateIntakeError, MediMindError, NotPermitted
from core.domain.models import IntakeLog, LogStatus, LowStockEvent, Medicine
from core.services.entity_store import EntityStore
from core.services.notifier import dispatch_notification
from core.services.ports import Notifier, PersistenceBackend, Result
from core.services.transaction import PendingTransaction, PersistencePolicy

logger = structlog.get_logger(__name__)


class IntakeTransactionHandler:
    """Applies intake decisions atomically from the caller's point of view."""

    def __init__(
        self,
        store: EntityStore,
        backend: PersistenceBackend,
        notifier: Notifier,
        config: IntakeConfig | None = None,
        policy: PersistencePolicy | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.backend = backend
        self.notifier = notifier
        self.config = config or IntakeConfig()
        self.policy = policy or PersistencePolicy()
        self._clock = clock
        self.low_stock_history: deque[LowStockEvent] = deque(maxlen=100)
        self.logger = logger.bind(component="intake_handler")

    def _check_duplicate(self, log: IntakeLog) -> DuplicateIntakeError | None:
        if not self.config.enforce_one_log_per_day:
            return None
        if log.status not in (LogStatus.TAKEN, LogStatus.SKIPPED):
            return None
        if self.store.has_log(log.medicine_id, log.date_str, (LogStatus.TAKEN, LogStatus.SKIPPED)):
            return DuplicateIntakeError(log.medicine_id, log.date_str)
        return None

    async def record_intake(
        self, medicine_id: str, status: LogStatus
    ) -> Result[IntakeLog, MediMindError]:
        """
        Record one intake decision.

        Steps:
        1. Build the log from the current local instant.
        2. Append it to the ledger.
        3. On Taken with stock above zero, decrement stock by one.
        4. Persist stock, then the log; compensate everything on failure.
        5. After commit, emit a low-stock event when stock is at or below threshold.

        Returns:
            Result[IntakeLog]: the committed log, or PersistenceFailure,
            NotPermitted or DuplicateIntakeError.
        """
        identity = self.store.identity
        if identity is None:
            return Result.err(NotPermitted("record_intake"))

        log = IntakeLog.create(medicine_id, status, self._clock())
        duplicate = self._check_duplicate(log)
        if duplicate is not None:
            self.logger.info(
                "duplicate_intake_rejected", medicine_id=medicine_id, date=log.date_str
            )
            return Result.err(duplicate)

        still_current = self.store.snapshot_guard()
        tx = PendingTransaction(name=f"intake:{log.id}", guard=still_current)
        self.store.append_log(log)
        tx.record("remove intake log", lambda: self.store.remove_log(log.id))

        previous: Medicine | None = None
        updated: Medicine | None = None
        medicine = self.store.get_medicine(medicine_id)
        if (
            status == LogStatus.TAKEN
            and medicine is not None
            and medicine.current_stock is not None
            and medicine.current_stock > 0
        ):
            previous = medicine
            updated = self.store.update_medicine_stock(medicine_id, medicine.current_stock - 1)
            tx.record("restore stock", lambda: self.store.upsert_medicine(previous))

        if updated is not None:
            saved = await self.policy.run(
                "save_medicine", lambda: self.backend.save_medicine(identity, updated)
            )
            if saved.is_err():
                self._rollback(tx, log, saved.unwrap_err())
                return Result.err(saved.unwrap_err())

        appended = await self.policy.run(
            "append_log", lambda: self.backend.append_log(identity, log)
        )
        if appended.is_err():
            if previous is not None:
                await self._restore_durable_stock(identity, previous)
            self._rollback(tx, log, appended.unwrap_err())
            return Result.err(appended.unwrap_err())

        tx.commit()
        self.logger.info(
            "intake_recorded",
            medicine_id=medicine_id,
            status=status.value,
            date=log.date_str,
            remaining_stock=updated.current_stock if updated else None,
        )

        # Nothing to notify once another snapshot was bound during the writes
        if updated is not None and updated.current_stock is not None and still_current():
            if updated.current_stock <= updated.effective_threshold:
                self._emit_low_stock(updated)

        return Result.ok(log)

    async def _restore_durable_stock(self, identity: str, previous: Medicine) -> None:
        restored = await self.policy.run(
            "restore_medicine", lambda: self.backend.save_medicine(identity, previous)
        )
        if restored.is_err():
            # Durable stock is now one lower than the ledger implies
            self.logger.error(
                "durable_stock_restore_failed",
                medicine_id=previous.id,
                error=str(restored.unwrap_err()),
            )

    def _rollback(self, tx: PendingTransaction, log: IntakeLog, error: Exception) -> None:
        self.logger.warning(
            "intake_reverted", medicine_id=log.medicine_id, log_id=log.id, error=str(error)
        )
        tx.compensate()

    def _emit_low_stock(self, medicine: Medicine) -> LowStockEvent:
        event = LowStockEvent(
            medicine_id=medicine.id,
            medicine_name=medicine.name,
            remaining=medicine.current_stock or 0,
        )
        self.low_stock_history.append(event)
        dispatch_notification(self.notifier, event.title, event.body)
        self.logger.info("low_stock", medicine_id=medicine.id, remaining=event.remaining)
        return event
