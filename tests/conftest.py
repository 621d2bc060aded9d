"""Shared fixtures for the adherence core tests."""

from __future__ import annotations

import pytest

from core.domain.models import Medicine
from core.services.entity_store import EntityStore
from core.services.transaction import PersistencePolicy
from tests.doubles import RecordingNotifier


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store() -> EntityStore:
    return EntityStore(identity="user-1")


@pytest.fixture
def fast_policy() -> PersistencePolicy:
    """No retries and no backoff, so failure paths run instantly."""
    return PersistencePolicy(timeout_seconds=1.0, retry_attempts=0, retry_delay_seconds=0.0)


@pytest.fixture
def morning_medicine() -> Medicine:
    return Medicine(id="med-1", name="Metformin", dosage="500mg", time="08:00")
