"""
Tests for the persistence adapters.

Covers:
- JSON layout per identity and entity type
- Reload through a fresh instance (what a restarted process sees)
- Idempotent writes keyed by entity id
- Corrupt records and unreadable files
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from adapters.storage.factory import create_backend
from adapters.storage.json_file import JsonFilePersistence
from adapters.storage.memory import InMemoryPersistence
from core.config import PersistenceConfig
from core.domain.models import IntakeLog, LogStatus, MedicalProfile, Medicine


@pytest.fixture
def medicine() -> Medicine:
    return Medicine(id="med-1", name="Metformin", dosage="500mg", time="08:00", current_stock=12)


@pytest.fixture
def log() -> IntakeLog:
    return IntakeLog.create("med-1", LogStatus.TAKEN, datetime(2024, 1, 3, 8, 1))


class TestJsonFilePersistence:
    async def test_layout_on_disk(self, tmp_path: Path, medicine: Medicine, log: IntakeLog) -> None:
        path = tmp_path / "ledger.json"
        backend = JsonFilePersistence(path)

        await backend.save_medicine("u1", medicine)
        await backend.append_log("u1", log)
        await backend.save_profile("u1", MedicalProfile(blood_type="O-"))

        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["u1"]["medicines"]["med-1"]["currentStock"] == 12
        assert document["u1"]["logs"][log.id]["dateStr"] == "2024-01-03"
        assert document["u1"]["profile"]["medical"]["bloodType"] == "O-"

    async def test_fresh_instance_reads_committed_state(
        self, tmp_path: Path, medicine: Medicine, log: IntakeLog
    ) -> None:
        path = tmp_path / "ledger.json"
        writer = JsonFilePersistence(path)
        await writer.save_medicine("u1", medicine)
        await writer.append_log("u1", log)

        reader = JsonFilePersistence(path)
        assert (await reader.load_medicines("u1")).unwrap() == [medicine]
        assert (await reader.load_logs("u1")).unwrap() == [log]

    async def test_identities_are_isolated(self, tmp_path: Path, medicine: Medicine) -> None:
        backend = JsonFilePersistence(tmp_path / "ledger.json")
        await backend.save_medicine("u1", medicine)

        assert (await backend.load_medicines("u2")).unwrap() == []

    async def test_missing_file_loads_empty(self, tmp_path: Path) -> None:
        backend = JsonFilePersistence(tmp_path / "absent.json")

        assert (await backend.load_medicines("u1")).unwrap() == []
        assert (await backend.load_logs("u1")).unwrap() == []
        assert (await backend.load_profile("u1")).unwrap() == MedicalProfile()

    async def test_writes_are_idempotent(
        self, tmp_path: Path, medicine: Medicine, log: IntakeLog
    ) -> None:
        path = tmp_path / "ledger.json"
        backend = JsonFilePersistence(path)

        await backend.save_medicine("u1", medicine)
        await backend.append_log("u1", log)
        once = path.read_text(encoding="utf-8")
        await backend.save_medicine("u1", medicine)
        await backend.append_log("u1", log)

        assert path.read_text(encoding="utf-8") == once

    async def test_delete_medicine_keeps_logs(
        self, tmp_path: Path, medicine: Medicine, log: IntakeLog
    ) -> None:
        backend = JsonFilePersistence(tmp_path / "ledger.json")
        await backend.save_medicine("u1", medicine)
        await backend.append_log("u1", log)

        assert (await backend.delete_medicine("u1", "med-1")).unwrap() == "med-1"
        assert (await backend.load_medicines("u1")).unwrap() == []
        assert (await backend.load_logs("u1")).unwrap() == [log]

    async def test_invalid_records_are_skipped(self, tmp_path: Path, medicine: Medicine) -> None:
        path = tmp_path / "ledger.json"
        path.write_text(
            json.dumps(
                {
                    "u1": {
                        "medicines": {
                            "med-1": medicine.to_record(),
                            "bad": {"id": "bad", "name": "X", "dosage": "1", "time": "8am"},
                        }
                    }
                }
            ),
            encoding="utf-8",
        )
        backend = JsonFilePersistence(path)

        assert (await backend.load_medicines("u1")).unwrap() == [medicine]

    async def test_invalid_profile_loads_as_empty(self, tmp_path: Path, medicine: Medicine) -> None:
        path = tmp_path / "ledger.json"
        path.write_text(
            json.dumps(
                {
                    "u1": {
                        "medicines": {"med-1": medicine.to_record()},
                        "profile": {"medical": {"bloodType": 42}},
                    }
                }
            ),
            encoding="utf-8",
        )
        backend = JsonFilePersistence(path)

        assert (await backend.load_profile("u1")).unwrap() == MedicalProfile()
        assert (await backend.load_medicines("u1")).unwrap() == [medicine]

    async def test_logs_reload_in_chronological_order(self, tmp_path: Path) -> None:
        path = tmp_path / "ledger.json"
        backend = JsonFilePersistence(path)
        earlier = IntakeLog.create("med-1", LogStatus.TAKEN, datetime(2024, 1, 3, 8, 0))
        later = IntakeLog.create("med-1", LogStatus.SKIPPED, datetime(2024, 1, 4, 8, 0))
        # Ids that sort opposite to time
        earlier = earlier.model_copy(update={"id": "zz-earlier"})
        later = later.model_copy(update={"id": "aa-later"})

        await backend.append_log("u1", earlier)
        await backend.append_log("u1", later)

        reloaded = (await JsonFilePersistence(path).load_logs("u1")).unwrap()
        assert [log.id for log in reloaded] == ["zz-earlier", "aa-later"]

    async def test_corrupt_file_is_an_error(self, tmp_path: Path, medicine: Medicine) -> None:
        path = tmp_path / "ledger.json"
        path.write_text("{not json", encoding="utf-8")
        backend = JsonFilePersistence(path)

        assert (await backend.load_medicines("u1")).is_err()
        assert (await backend.save_medicine("u1", medicine)).is_err()
        assert path.read_text(encoding="utf-8") == "{not json"


class TestCreateBackend:
    def test_memory_backend(self) -> None:
        assert isinstance(create_backend(PersistenceConfig(backend="memory")), InMemoryPersistence)

    def test_json_backend_uses_configured_path(self, tmp_path: Path) -> None:
        path = tmp_path / "ledger.json"
        backend = create_backend(PersistenceConfig(backend="json", data_file_path=str(path)))

        assert isinstance(backend, JsonFilePersistence)
        assert backend.path == path


class TestInMemoryPersistence:
    async def test_round_trip(self, medicine: Medicine, log: IntakeLog) -> None:
        backend = InMemoryPersistence()
        await backend.save_medicine("u1", medicine)
        await backend.append_log("u1", log)

        assert (await backend.load_medicines("u1")).unwrap() == [medicine]
        assert (await backend.load_logs("u1")).unwrap() == [log]
        assert (await backend.load_profile("u1")).unwrap() == MedicalProfile()

    async def test_records_are_serialized(self, medicine: Medicine) -> None:
        backend = InMemoryPersistence()
        await backend.save_medicine("u1", medicine)

        assert backend.records("u1", "medicines")["med-1"]["lowStockThreshold"] == 5

    async def test_invalid_profile_loads_as_empty(self) -> None:
        backend = InMemoryPersistence()
        await backend.save_profile("u1", MedicalProfile(blood_type="AB+"))
        backend._records["u1"]["profile"]["medical"] = {"bloodType": ["not", "text"]}

        assert (await backend.load_profile("u1")).unwrap() == MedicalProfile()
