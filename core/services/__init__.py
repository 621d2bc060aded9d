"""
Core services for the application.

This package contains the main service implementations: the entity store,
reminder scheduling, intake transactions, catalog edits and adherence statistics.
"""

from .catalog import MedicineCatalog
from .entity_store import EntityStore
from .intake import IntakeTransactionHandler
from .ports import Notifier, PersistenceBackend, Result
from .reminder_scheduler import ReminderScheduler
from .session import IdentitySession, MedicationSession
from .transaction import PendingTransaction, PersistencePolicy

__all__ = [
    "EntityStore",
    "IdentitySession",
    "IntakeTransactionHandler",
    "MedicationSession",
    "MedicineCatalog",
    "Notifier",
    "PendingTransaction",
    "PersistenceBackend",
    "PersistencePolicy",
    "ReminderScheduler",
    "Result",
]
