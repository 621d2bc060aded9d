"""
Tests for domain models in `core/domain/models.py`.

Covers:
- Medicine validation at the boundary (blank fields, malformed time, negative stock)
- Low-stock threshold defaulting when stock tracking is enabled
- IntakeLog derivation of timestamp and calendar date from one instant
- camelCase record serialization
- Immutability of ledger entries
"""

from __future__ import annotations

from datetime import datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from core.domain.exceptions import ValidationError
from core.domain.models import (
    Frequency,
    IntakeLog,
    LogStatus,
    LowStockEvent,
    Medicine,
    ReminderEvent,
)


class TestMedicineValidation:
    def test_valid_medicine_defaults(self) -> None:
        medicine = Medicine.from_input(name="Aspirin", dosage="81mg", time="07:30")

        assert medicine.frequency == Frequency.DAILY
        assert medicine.current_stock is None
        assert medicine.low_stock_threshold is None
        assert medicine.id

    @pytest.mark.parametrize(
        "fields",
        [
            {"name": "", "dosage": "81mg", "time": "07:30"},
            {"name": "Aspirin", "dosage": "   ", "time": "07:30"},
            {"name": "Aspirin", "dosage": "81mg", "time": "7:30"},
            {"name": "Aspirin", "dosage": "81mg", "time": "24:00"},
            {"name": "Aspirin", "dosage": "81mg", "time": "08:60"},
            {"name": "Aspirin", "dosage": "81mg"},
            {"name": "Aspirin", "dosage": "81mg", "time": "08:00", "current_stock": -1},
        ],
    )
    def test_malformed_input_is_rejected(self, fields: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            Medicine.from_input(**fields)

    def test_validation_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            Medicine.from_input(name="", dosage="1", time="08:00")

    def test_threshold_defaults_to_five_when_tracking_stock(self) -> None:
        medicine = Medicine(name="Aspirin", dosage="81mg", time="08:00", current_stock=30)
        assert medicine.low_stock_threshold == 5
        assert medicine.effective_threshold == 5

    def test_explicit_threshold_is_kept(self) -> None:
        medicine = Medicine(
            name="Aspirin", dosage="81mg", time="08:00", current_stock=30, low_stock_threshold=0
        )
        assert medicine.low_stock_threshold == 0

    def test_with_stock_returns_new_instance(self) -> None:
        medicine = Medicine(name="Aspirin", dosage="81mg", time="08:00", current_stock=3)
        updated = medicine.with_stock(2)

        assert updated.current_stock == 2
        assert medicine.current_stock == 3
        assert updated.id == medicine.id

    def test_with_stock_rejects_negative(self) -> None:
        medicine = Medicine(name="Aspirin", dosage="81mg", time="08:00", current_stock=0)
        with pytest.raises(ValidationError):
            medicine.with_stock(-1)

    def test_record_uses_camel_case_and_round_trips(self) -> None:
        medicine = Medicine(
            name="Aspirin",
            dosage="81mg",
            time="08:00",
            frequency=Frequency.AS_NEEDED,
            current_stock=4,
        )
        record = medicine.to_record()

        assert record["currentStock"] == 4
        assert record["lowStockThreshold"] == 5
        assert record["frequency"] == "As Needed"
        assert "notes" not in record
        assert Medicine.model_validate(record) == medicine


class TestIntakeLog:
    def test_create_derives_date_from_same_instant(self) -> None:
        at = datetime(2024, 3, 9, 23, 59, 59)
        log = IntakeLog.create("med-1", LogStatus.TAKEN, at)

        assert log.date_str == "2024-03-09"
        assert datetime.fromtimestamp(log.timestamp / 1000).date().isoformat() == log.date_str

    @given(
        at=st.datetimes(min_value=datetime(2000, 1, 2), max_value=datetime(2099, 12, 30)),
        status=st.sampled_from(list(LogStatus)),
    )
    def test_date_str_matches_timestamp_local_date(self, at: datetime, status: LogStatus) -> None:
        log = IntakeLog.create("med-1", status, at)
        local = datetime.fromtimestamp(log.timestamp / 1000)
        assert local.date().isoformat() == log.date_str

    def test_logs_are_immutable(self) -> None:
        log = IntakeLog.create("med-1", LogStatus.TAKEN, datetime(2024, 1, 1, 8))
        with pytest.raises(ValueError, match="frozen"):
            log.status = LogStatus.SKIPPED  # type: ignore[misc]

    def test_record_keys(self) -> None:
        log = IntakeLog.create("med-1", LogStatus.SKIPPED, datetime(2024, 1, 1, 8))
        record = log.to_record()
        assert set(record) == {"id", "medicineId", "timestamp", "status", "dateStr"}
        assert record["status"] == "skipped"


class TestEvents:
    def test_reminder_text(self) -> None:
        medicine = Medicine(name="Metformin", dosage="500mg", time="08:00")
        event = ReminderEvent.for_medicine(medicine, "2024-01-01")

        assert event.title == "Time for Metformin"
        assert event.body == "It's 08:00. Please take 500mg."
        assert event.minute == "08:00"

    def test_low_stock_text(self) -> None:
        event = LowStockEvent(medicine_id="m", medicine_name="Metformin", remaining=0)
        assert event.title == "Refill Warning"
        assert event.body == "Low stock for Metformin. Only 0 doses left!"
