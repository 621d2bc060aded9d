"""
Minute-resolution reminder scheduler.

Runs as a recurring task on the event loop. Each tick compares the current
local ``HH:mm`` with every medicine's scheduled time and today's ledger, and
emits at most one reminder per medicine per matching minute.

Per medicine, per day:
    PENDING  -> scheduled minute not reached, or reached but not yet notified
    NOTIFIED -> reminder emitted, nothing logged yet
    RESOLVED -> a resolving log (Taken; optionally Skipped) exists for today

All guard state lives on the instance, so independent schedulers never
interfere. Minutes during which the process was not running are not
backfilled.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog

from core.config import SchedulerConfig
from core.domain.models import (
    LogStatus,
    Medicine,
    ReminderEvent,
    ReminderState,
    is_valid_time,
    local_date_str,
    minute_str,
)
from core.services.entity_store import EntityStore
from core.services.notifier import dispatch_notification
from core.services.ports import Notifier

logger = structlog.get_logger(__name__)


class ReminderScheduler:
    """Polls the entity store and notifies when a medicine is due."""

    def __init__(
        self,
        store: EntityStore,
        notifier: Notifier,
        config: SchedulerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.config = config or SchedulerConfig()
        self._clock = clock
        self.logger = logger.bind(component="reminder_scheduler")

        self._last_checked_minute: str | None = None
        self._notified: dict[tuple[str, str], str] = {}
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _resolving_statuses(self) -> set[LogStatus]:
        if self.config.skipped_resolves_reminder:
            return {LogStatus.TAKEN, LogStatus.SKIPPED}
        return {LogStatus.TAKEN}

    def _resolved_today(self, today: str) -> set[str]:
        statuses = self._resolving_statuses()
        return {
            log.medicine_id
            for log in self.store.list_logs()
            if log.date_str == today and log.status in statuses
        }

    def state_for(self, medicine_id: str, date_str: str) -> ReminderState:
        if medicine_id in self._resolved_today(date_str):
            return ReminderState.RESOLVED
        if (medicine_id, date_str) in self._notified:
            return ReminderState.NOTIFIED
        return ReminderState.PENDING

    def _due(self, medicine: Medicine, minute: str, today: str, resolved: set[str]) -> bool:
        if not isinstance(medicine.time, str) or not is_valid_time(medicine.time):
            raise ValueError(f"malformed scheduled time {medicine.time!r}")
        if medicine.id in resolved:
            return False
        if medicine.time != minute:
            return False
        return self._notified.get((medicine.id, today)) != minute

    def evaluate(self, now: datetime | None = None) -> list[ReminderEvent]:
        """
        Run one tick.

        Re-evaluation inside an already evaluated minute is a no-op, which
        absorbs several timer firings landing in the same minute window.
        """
        if self._cancelled:
            return []

        now = now or self._clock()
        minute = minute_str(now)
        today = local_date_str(now)
        minute_key = f"{today} {minute}"
        if minute_key == self._last_checked_minute:
            return []
        self._last_checked_minute = minute_key

        # forget previous days
        self._notified = {key: m for key, m in self._notified.items() if key[1] == today}

        resolved = self._resolved_today(today)
        events: list[ReminderEvent] = []
        for medicine in self.store.list_medicines():
            try:
                due = self._due(medicine, minute, today, resolved)
            except Exception as e:
                self.logger.warning(
                    "medicine_skipped", medicine_id=getattr(medicine, "id", None), error=str(e)
                )
                continue
            if not due:
                continue
            if self._cancelled:
                break

            event = ReminderEvent.for_medicine(medicine, today)
            self._notified[(medicine.id, today)] = minute
            dispatch_notification(self.notifier, event.title, event.body)
            events.append(event)
            self.logger.info("reminder_emitted", medicine_id=medicine.id, minute=minute)

        return events

    async def run(self) -> None:
        """Tick until cancelled, compensating the sleep for tick duration."""
        interval = self.config.poll_interval_seconds
        self.logger.info("reminder_scheduler_started", interval_seconds=interval)

        try:
            while not self._cancelled:
                tick_start = time.perf_counter()
                try:
                    self.evaluate()
                except Exception as e:
                    self.logger.exception("reminder_tick_failed", error=str(e))

                elapsed = time.perf_counter() - tick_start
                await asyncio.sleep(max(0.0, interval - elapsed))
        except asyncio.CancelledError:
            self.logger.info("reminder_scheduler_cancelled")
            raise

    def start(self) -> None:
        """Schedule ``run`` on the running loop; no-op if already running."""
        if self.is_running:
            return
        self._cancelled = False
        self._task = asyncio.get_running_loop().create_task(
            self.run(), name="reminder-scheduler"
        )

    async def stop(self) -> None:
        """Cancel the recurring task. No reminder fires after this returns."""
        self._cancelled = True
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.info("reminder_scheduler_stopped")

    def reset(self) -> None:
        """Forget per-minute and per-day guard state (new session)."""
        self._last_checked_minute = None
        self._notified = {}

    @asynccontextmanager
    async def running(self) -> AsyncIterator["ReminderScheduler"]:
        """Run the scheduler for the duration of the block."""
        self.start()
        try:
            yield self
        finally:
            await self.stop()
