"""
In-memory persistence backend.

Keeps serialized records keyed by (identity, entity type, entity id), so it
behaves like the file backend (including camelCase round-tripping) without
touching disk. Useful for demos and as the default in tests.
"""

from collections import defaultdict
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from core.domain.models import IntakeLog, MedicalProfile, Medicine
from core.services.ports import Result

logger = structlog.get_logger(__name__)

MEDICINES = "medicines"
LOGS = "logs"
PROFILE = "profile"
PROFILE_KEY = "medical"


class InMemoryPersistence:
    """PersistenceBackend holding records in nested dictionaries."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, dict[str, dict[str, Any]]]] = defaultdict(
            lambda: {MEDICINES: {}, LOGS: {}, PROFILE: {}}
        )
        self.logger = logger.bind(component="memory_persistence")

    def records(self, identity: str, entity_type: str) -> dict[str, dict[str, Any]]:
        return dict(self._records[identity][entity_type])

    async def load_medicines(self, identity: str) -> Result[list[Medicine], Exception]:
        return Result.ok(
            [Medicine.model_validate(r) for r in self._records[identity][MEDICINES].values()]
        )

    async def load_logs(self, identity: str) -> Result[list[IntakeLog], Exception]:
        return Result.ok(
            [IntakeLog.model_validate(r) for r in self._records[identity][LOGS].values()]
        )

    async def save_medicine(self, identity: str, medicine: Medicine) -> Result[Medicine, Exception]:
        self._records[identity][MEDICINES][medicine.id] = medicine.to_record()
        return Result.ok(medicine)

    async def delete_medicine(self, identity: str, medicine_id: str) -> Result[str, Exception]:
        self._records[identity][MEDICINES].pop(medicine_id, None)
        return Result.ok(medicine_id)

    async def append_log(self, identity: str, log: IntakeLog) -> Result[IntakeLog, Exception]:
        self._records[identity][LOGS][log.id] = log.to_record()
        return Result.ok(log)

    async def load_profile(self, identity: str) -> Result[MedicalProfile, Exception]:
        record = self._records[identity][PROFILE].get(PROFILE_KEY)
        if not record:
            return Result.ok(MedicalProfile())
        try:
            return Result.ok(MedicalProfile.model_validate(record))
        except PydanticValidationError as e:
            self.logger.warning("invalid_record_skipped", entity_type=PROFILE, error=str(e))
            return Result.ok(MedicalProfile())

    async def save_profile(
        self, identity: str, profile: MedicalProfile
    ) -> Result[MedicalProfile, Exception]:
        self._records[identity][PROFILE][PROFILE_KEY] = profile.to_record()
        return Result.ok(profile)
