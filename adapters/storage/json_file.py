"""
JSON file persistence backend.

Layout on disk::

    {
      "<identity>": {
        "medicines": {"<id>": {...}},
        "logs":      {"<id>": {...}},
        "profile":   {"medical": {...}}
      }
    }

Every write rewrites the whole file through a temporary file and an atomic
replace, so a crash never leaves a half-written ledger. Blocking I/O runs in a
worker thread; an asyncio lock serializes read-modify-write cycles.
"""

import asyncio
import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError as PydanticValidationError

from core.domain.models import IntakeLog, MedicalProfile, Medicine
from core.services.ports import Result

logger = structlog.get_logger(__name__)

MEDICINES = "medicines"
LOGS = "logs"
PROFILE = "profile"
PROFILE_KEY = "medical"

ModelT = TypeVar("ModelT", Medicine, IntakeLog)
Document = dict[str, dict[str, dict[str, dict[str, Any]]]]


class JsonFilePersistence:
    """PersistenceBackend storing every identity's records in one JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component="json_persistence", path=str(self.path))

    # File access (runs in worker threads)

    def _read(self) -> Document:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def _write(self, document: Document) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _section(document: Document, identity: str, entity_type: str) -> dict[str, dict[str, Any]]:
        user = document.setdefault(identity, {})
        return user.setdefault(entity_type, {})

    async def _mutate(
        self, operation: str, change: Callable[[Document], None]
    ) -> Exception | None:
        async with self._lock:
            try:
                document = await asyncio.to_thread(self._read)
                change(document)
                await asyncio.to_thread(self._write, document)
                return None
            except (OSError, ValueError) as e:
                self.logger.error("json_write_failed", operation=operation, error=str(e))
                return e

    async def _load(
        self, identity: str, entity_type: str, model: type[ModelT]
    ) -> Result[list[ModelT], Exception]:
        async with self._lock:
            try:
                document = await asyncio.to_thread(self._read)
            except (OSError, ValueError) as e:
                self.logger.error("json_read_failed", entity_type=entity_type, error=str(e))
                return Result.err(e)

        items: list[ModelT] = []
        for entity_id, record in document.get(identity, {}).get(entity_type, {}).items():
            try:
                items.append(model.model_validate(record))
            except PydanticValidationError as e:
                self.logger.warning(
                    "invalid_record_skipped",
                    entity_type=entity_type,
                    entity_id=entity_id,
                    error=str(e),
                )
        return Result.ok(items)

    # PersistenceBackend

    async def load_medicines(self, identity: str) -> Result[list[Medicine], Exception]:
        return await self._load(identity, MEDICINES, Medicine)

    async def load_logs(self, identity: str) -> Result[list[IntakeLog], Exception]:
        loaded = await self._load(identity, LOGS, IntakeLog)
        if loaded.is_err():
            return loaded
        return Result.ok(sorted(loaded.unwrap(), key=lambda log: log.timestamp))

    async def save_medicine(self, identity: str, medicine: Medicine) -> Result[Medicine, Exception]:
        def change(document: Document) -> None:
            self._section(document, identity, MEDICINES)[medicine.id] = medicine.to_record()

        error = await self._mutate("save_medicine", change)
        return Result.err(error) if error else Result.ok(medicine)

    async def delete_medicine(self, identity: str, medicine_id: str) -> Result[str, Exception]:
        def change(document: Document) -> None:
            self._section(document, identity, MEDICINES).pop(medicine_id, None)

        error = await self._mutate("delete_medicine", change)
        return Result.err(error) if error else Result.ok(medicine_id)

    async def append_log(self, identity: str, log: IntakeLog) -> Result[IntakeLog, Exception]:
        def change(document: Document) -> None:
            self._section(document, identity, LOGS)[log.id] = log.to_record()

        error = await self._mutate("append_log", change)
        return Result.err(error) if error else Result.ok(log)

    async def load_profile(self, identity: str) -> Result[MedicalProfile, Exception]:
        async with self._lock:
            try:
                document = await asyncio.to_thread(self._read)
            except (OSError, ValueError) as e:
                return Result.err(e)
        record = document.get(identity, {}).get(PROFILE, {}).get(PROFILE_KEY)
        if not record:
            return Result.ok(MedicalProfile())
        try:
            return Result.ok(MedicalProfile.model_validate(record))
        except PydanticValidationError as e:
            self.logger.warning(
                "invalid_record_skipped", entity_type=PROFILE, entity_id=PROFILE_KEY, error=str(e)
            )
            return Result.ok(MedicalProfile())

    async def save_profile(
        self, identity: str, profile: MedicalProfile
    ) -> Result[MedicalProfile, Exception]:
        def change(document: Document) -> None:
            self._section(document, identity, PROFILE)[PROFILE_KEY] = profile.to_record()

        error = await self._mutate("save_profile", change)
        return Result.err(error) if error else Result.ok(profile)
