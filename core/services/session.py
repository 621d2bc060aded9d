"""
Identity events and the per-user medication session.

``IdentitySession`` replaces a process-wide auth listener list: it is an
event emitter owned by whoever constructs it, with its own subscribers.
``MedicationSession`` wires the core together for one session: it loads the
user's data on login, runs the reminder scheduler while someone is logged in,
and tears everything down on logout.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime

import structlog

from core.config import AppConfig, get_config
from core.domain.exceptions import PersistenceFailure
from core.domain.models import AdherenceSummary, UserIdentity
from core.services import adherence
from core.services.catalog import MedicineCatalog
from core.services.entity_store import EntityStore
from core.services.intake import IntakeTransactionHandler
from core.services.ports import Notifier, PersistenceBackend, Result
from core.services.reminder_scheduler import ReminderScheduler
from core.services.transaction import PersistencePolicy

logger = structlog.get_logger(__name__)

AuthListener = Callable[[UserIdentity | None], Awaitable[None] | None]


class IdentitySession:
    """Current user plus a login/logout subscriber registry."""

    def __init__(self) -> None:
        self._current: UserIdentity | None = None
        self._listeners: list[AuthListener] = []
        self.logger = logger.bind(component="identity_session")

    @property
    def current_user(self) -> UserIdentity | None:
        return self._current

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, user: UserIdentity | None) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(user)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                self.logger.error("auth_listener_failed", error=str(e))

    async def login(self, user: UserIdentity) -> None:
        self._current = user
        self.logger.info("login", uid=user.uid)
        await self._emit(user)

    async def logout(self) -> None:
        self._current = None
        self.logger.info("logout")
        await self._emit(None)

    def close(self) -> None:
        """Drop all subscribers (session teardown)."""
        self._listeners.clear()


class MedicationSession:
    """
    Orchestrates the core for one running application.

    Design:
    - Store, scheduler, intake handler and catalog share one EntityStore
    - Login loads medicines, logs and profile concurrently, then starts reminders
    - Logout cancels reminders before the store is cleared
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        notifier: Notifier,
        identity: IdentitySession | None = None,
        config: AppConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or get_config()
        self.backend = backend
        self.notifier = notifier
        self.identity = identity or IdentitySession()
        self.store = EntityStore()
        policy = PersistencePolicy.from_config(self.config.persistence)

        self.scheduler = ReminderScheduler(self.store, notifier, self.config.scheduler, clock)
        self.intake = IntakeTransactionHandler(
            self.store, backend, notifier, self.config.intake, policy, clock
        )
        self.catalog = MedicineCatalog(self.store, backend, policy)
        self._clock = clock
        self._unsubscribe = self.identity.subscribe(self._on_auth_change)
        self.logger = logger.bind(component="medication_session")

    async def _on_auth_change(self, user: UserIdentity | None) -> None:
        if user is None:
            await self._teardown()
            return
        result = await self._load(user.uid)
        if result.is_err():
            self.logger.error("session_load_failed", uid=user.uid, error=str(result.unwrap_err()))
            return
        self.scheduler.start()

    async def _load(self, uid: str) -> Result[int, PersistenceFailure]:
        # Switching users: stop the previous user's reminders first
        await self.scheduler.stop()
        self.scheduler.reset()
        self.store.clear()

        medicines, logs, profile = await asyncio.gather(
            self.backend.load_medicines(uid),
            self.backend.load_logs(uid),
            self.backend.load_profile(uid),
        )
        for name, result in (("load_medicines", medicines), ("load_logs", logs)):
            if result.is_err():
                return Result.err(PersistenceFailure(name, result.unwrap_err()))

        self.store.bind(
            uid,
            medicines.unwrap(),
            logs.unwrap(),
            profile.unwrap_or(None),  # type: ignore[arg-type]
        )
        return Result.ok(len(self.store.list_medicines()))

    async def _teardown(self) -> None:
        await self.scheduler.stop()
        self.scheduler.reset()
        self.store.clear()

    async def close(self) -> None:
        """Stop reminders and detach from the identity session."""
        await self._teardown()
        self._unsubscribe()

    def summary(self) -> AdherenceSummary:
        """Adherence statistics for the current snapshot."""
        return adherence.summarize(
            self.store.list_medicines(),
            self.store.list_logs(),
            window_days=self.config.adherence.window_days,
            history_days=self.config.adherence.history_days,
            now=self._clock(),
        )
