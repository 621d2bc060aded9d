"""
Domain models for medication adherence.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; serialized records keep the camelCase keys
the persisted ledger has always used (``medicineId``, ``dateStr``, ...).
"""

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from core.domain.exceptions import ValidationError

DEFAULT_LOW_STOCK_THRESHOLD = 5

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _new_id() -> str:
    return str(uuid.uuid4())


def to_epoch_ms(moment: datetime) -> int:
    """Epoch milliseconds for a datetime (naive values are local time)."""
    return int(moment.timestamp() * 1000)


def local_date_str(moment: datetime) -> str:
    return moment.date().isoformat()


def minute_str(moment: datetime) -> str:
    """Truncate to minute resolution as ``HH:mm``."""
    return moment.strftime("%H:%M")


def is_valid_time(value: str) -> bool:
    return bool(_TIME_PATTERN.match(value))


class Frequency(str, Enum):
    """How often a medicine is scheduled."""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    AS_NEEDED = "As Needed"


class LogStatus(str, Enum):
    """Outcome recorded for one intake decision."""

    TAKEN = "taken"
    SKIPPED = "skipped"
    MISSED = "missed"


class ReminderState(str, Enum):
    """Per medicine, per day reminder lifecycle."""

    PENDING = "pending"
    NOTIFIED = "notified"
    RESOLVED = "resolved"


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,  # Immutable; edits go through model_copy(update=...)
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Medicine(_Record):
    """A scheduled medicine in the user's cabinet."""

    id: str = Field(default_factory=_new_id)
    name: str
    dosage: str
    time: str = Field(description="Scheduled local time, HH:mm 24-hour")
    frequency: Frequency = Frequency.DAILY
    notes: str | None = None
    color: str | None = None
    current_stock: int | None = Field(default=None, ge=0)
    low_stock_threshold: int | None = Field(default=None, ge=0)

    @field_validator("name", "dosage")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("time")
    @classmethod
    def valid_time(cls, v: str) -> str:
        v = v.strip()
        if not is_valid_time(v):
            raise ValueError("time must be HH:mm (24-hour)")
        return v

    @model_validator(mode="before")
    @classmethod
    def default_threshold_when_tracking(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        stock = data.get("currentStock", data.get("current_stock"))
        threshold = data.pop("lowStockThreshold", None)
        threshold = data.pop("low_stock_threshold", threshold)
        if stock is not None and threshold is None:
            threshold = DEFAULT_LOW_STOCK_THRESHOLD
        data["lowStockThreshold"] = threshold
        return data

    @classmethod
    def from_input(cls, **data: Any) -> Self:
        """Build a medicine from form input, raising the domain ValidationError."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ValidationError(f"Invalid medicine: {first['msg']}", field=field) from e

    @property
    def tracks_stock(self) -> bool:
        return self.current_stock is not None

    @property
    def effective_threshold(self) -> int:
        if self.low_stock_threshold is None:
            return DEFAULT_LOW_STOCK_THRESHOLD
        return self.low_stock_threshold

    def with_stock(self, new_stock: int) -> "Medicine":
        if new_stock < 0:
            raise ValidationError("stock cannot be negative", field="current_stock")
        return self.model_copy(update={"current_stock": new_stock})


class IntakeLog(_Record):
    """One recorded intake decision. Never mutated after creation."""

    id: str = Field(default_factory=_new_id)
    medicine_id: str
    timestamp: int = Field(ge=0, description="Epoch milliseconds")
    status: LogStatus
    date_str: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")

    @classmethod
    def create(cls, medicine_id: str, status: LogStatus, at: datetime) -> "IntakeLog":
        """Derive timestamp and calendar date from the same local instant."""
        return cls(
            medicine_id=medicine_id,
            timestamp=to_epoch_ms(at),
            status=status,
            date_str=local_date_str(at),
        )


class MedicalProfile(_Record):
    """Single per-user medical record; persisted, never computed over."""

    blood_type: str = ""
    allergies: str = ""
    conditions: str = ""
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""


class UserIdentity(BaseModel):
    """Authenticated user for the active session."""

    model_config = ConfigDict(frozen=True)

    uid: str = Field(min_length=1)
    display_name: str | None = None
    email: str | None = None


class ReminderEvent(BaseModel):
    """Due reminder emitted by the scheduler."""

    model_config = ConfigDict(frozen=True)

    medicine_id: str
    title: str
    body: str
    date_str: str
    minute: str

    @classmethod
    def for_medicine(cls, medicine: Medicine, date_str: str) -> "ReminderEvent":
        return cls(
            medicine_id=medicine.id,
            title=f"Time for {medicine.name}",
            body=f"It's {medicine.time}. Please take {medicine.dosage}.",
            date_str=date_str,
            minute=medicine.time,
        )


class LowStockEvent(BaseModel):
    """Remaining doses fell to or below the refill threshold."""

    model_config = ConfigDict(frozen=True)

    medicine_id: str
    medicine_name: str
    remaining: int = Field(ge=0)

    @property
    def title(self) -> str:
        return "Refill Warning"

    @property
    def body(self) -> str:
        return f"Low stock for {self.medicine_name}. Only {self.remaining} doses left!"


class StreakStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: int = Field(default=0, ge=0)
    longest: int = Field(default=0, ge=0)


class DailyAdherence(BaseModel):
    """Taken/skipped counts for one calendar day."""

    model_config = ConfigDict(frozen=True)

    date_str: str
    taken: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.taken + self.skipped


class TodayProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    completed: int
    total: int
    percent: int = Field(ge=0)

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.completed)


class AdherenceSummary(BaseModel):
    """Everything the history view shows, computed in one pass."""

    model_config = ConfigDict(frozen=True)

    window_days: int
    adherence_rate: float = Field(ge=0.0, le=1.0)
    streaks: StreakStats
    total_taken: int
    total_skipped: int
    daily: list[DailyAdherence]
    low_stock_medicine_ids: list[str] = Field(default_factory=list)
