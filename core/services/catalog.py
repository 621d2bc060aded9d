"""
Medicine catalog and medical profile edits.

Same protocol as intake: change the store optimistically, persist, and
compensate on failure so the displayed catalog never drifts from storage.
"""

from typing import Any

import structlog

from core.domain.exceptions import MediMindError, NotPermitted
from core.domain.models import MedicalProfile, Medicine
from core.services.entity_store import EntityStore
from core.services.ports import PersistenceBackend, Result
from core.services.transaction import PendingTransaction, PersistencePolicy

logger = structlog.get_logger(__name__)


class MedicineCatalog:
    """Add, edit and remove medicines; save the medical profile."""

    def __init__(
        self,
        store: EntityStore,
        backend: PersistenceBackend,
        policy: PersistencePolicy | None = None,
    ) -> None:
        self.store = store
        self.backend = backend
        self.policy = policy or PersistencePolicy()
        self.logger = logger.bind(component="medicine_catalog")

    async def add_medicine(self, **fields: Any) -> Result[Medicine, MediMindError]:
        """
        Validate form input and save a new medicine.

        Raises:
            ValidationError: input is malformed; nothing was changed.
        """
        medicine = Medicine.from_input(**fields)
        return await self.save_medicine(medicine)

    async def save_medicine(self, medicine: Medicine) -> Result[Medicine, MediMindError]:
        """Insert or replace a medicine. Saving an identical payload twice is a no-op."""
        identity = self.store.identity
        if identity is None:
            return Result.err(NotPermitted("save_medicine"))

        previous = self.store.get_medicine(medicine.id)
        tx = PendingTransaction(
            name=f"save_medicine:{medicine.id}", guard=self.store.snapshot_guard()
        )
        self.store.upsert_medicine(medicine)
        if previous is None:
            tx.record("remove added medicine", lambda: self.store.delete_medicine(medicine.id))
        else:
            tx.record("restore medicine", lambda: self.store.upsert_medicine(previous))

        saved = await self.policy.run(
            "save_medicine", lambda: self.backend.save_medicine(identity, medicine)
        )
        if saved.is_err():
            self.logger.warning("save_medicine_reverted", medicine_id=medicine.id)
            tx.compensate()
            return Result.err(saved.unwrap_err())

        tx.commit()
        self.logger.info("medicine_saved", medicine_id=medicine.id, created=previous is None)
        return Result.ok(medicine)

    async def delete_medicine(self, medicine_id: str) -> Result[str, MediMindError]:
        """Remove a medicine from the catalog. Its intake history is kept."""
        identity = self.store.identity
        if identity is None:
            return Result.err(NotPermitted("delete_medicine"))

        removed = self.store.delete_medicine(medicine_id)
        tx = PendingTransaction(
            name=f"delete_medicine:{medicine_id}", guard=self.store.snapshot_guard()
        )
        if removed is not None:
            tx.record("restore deleted medicine", lambda: self.store.upsert_medicine(removed))

        deleted = await self.policy.run(
            "delete_medicine", lambda: self.backend.delete_medicine(identity, medicine_id)
        )
        if deleted.is_err():
            self.logger.warning("delete_medicine_reverted", medicine_id=medicine_id)
            tx.compensate()
            return Result.err(deleted.unwrap_err())

        tx.commit()
        self.logger.info("medicine_deleted", medicine_id=medicine_id)
        return Result.ok(medicine_id)

    async def save_profile(self, profile: MedicalProfile) -> Result[MedicalProfile, MediMindError]:
        identity = self.store.identity
        if identity is None:
            return Result.err(NotPermitted("save_profile"))

        previous = self.store.get_profile()
        tx = PendingTransaction(
            name="save_profile", guard=self.store.snapshot_guard()
        )
        self.store.set_profile(profile)
        tx.record("restore profile", lambda: self.store.set_profile(previous))

        saved = await self.policy.run(
            "save_profile", lambda: self.backend.save_profile(identity, profile)
        )
        if saved.is_err():
            tx.compensate()
            return Result.err(saved.unwrap_err())

        tx.commit()
        return Result.ok(profile)
